"""apt-probeset-genotype table reader.

Reads the calls, confidences and summary tables in lockstep. Each table
may be gzipped, starts with optional "#" comment lines and a header:

#%affymetrix-algorithm-param-...
probeset_id     NA12878.CEL     NA12891.CEL
AX-11086525     0               2

Summary tables split the intensities of one probe set over two lines:

AX-11086525-A   1543.2          802.5
AX-11086525-B   611.9           2010.3
"""

import logging
from pathlib import Path

import numpy as np

from affy2vcf.errors import (
    InvalidCallCodeError,
    MissingCompanionLineError,
    ProbeSetMismatchError,
    TableFormatError,
)
from affy2vcf.io_utils import LineReader
from affy2vcf.models import SampleRecord
from affy2vcf.utils import sample_name_from_cel

logger = logging.getLogger(__name__)

VALID_CALLS = {-1, 0, 1, 2}


class _Table:
    """One open table with its parsed header."""

    def __init__(self, label: str, path: Path) -> None:
        self.label = label
        self.reader = LineReader(path)
        header = self.reader.skip_comments()
        if header is None:
            self.reader.close()
            raise TableFormatError(f"Empty file: {path}")
        fields = header.split("\t")
        if fields[0] != "probeset_id":
            self.reader.close()
            raise TableFormatError(
                f"Malformed first line from {label} file: {path}\n{header}"
            )
        self.samples = [sample_name_from_cel(name) for name in fields[1:]]

    def next_fields(self, n_samples: int) -> list[str] | None:
        line = self.reader.readline()
        if line is None:
            return None
        fields = line.split("\t")
        if len(fields) != 1 + n_samples:
            raise TableFormatError(
                f"Expected {1 + n_samples} columns but {len(fields)} columns found "
                f"in the {self.label} file"
            )
        return fields

    def close(self) -> None:
        if not self.reader.at_end():
            logger.warning(f"Warning: End of {self.label} file was not reached")
        self.reader.close()


def _parse_floats(fields: list[str], label: str) -> np.ndarray:
    try:
        return np.array([float(x) for x in fields], dtype=np.float32)
    except ValueError as e:
        raise TableFormatError(f"Invalid value in the {label} file: {e}") from None


def _parse_calls(fields: list[str], probe_set_id: str) -> np.ndarray:
    calls = np.empty(len(fields), dtype=np.int8)
    for i, value in enumerate(fields):
        try:
            code = int(value)
        except ValueError:
            code = None
        if code not in VALID_CALLS:
            raise InvalidCallCodeError(
                f"Genotype for Probe Set ID {probe_set_id} is malformed: {value}"
            )
        calls[i] = code
    return calls


def signals_to_delta_size(norm_x: np.ndarray, norm_y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Convert (signal A, signal B) to (log2 ratio, mean log2 intensity).

    Example:
        >>> delta, size = signals_to_delta_size(np.array([100.0]), np.array([25.0]))
        >>> float(delta[0])
        2.0
    """
    with np.errstate(divide="ignore", invalid="ignore"):
        log2x = np.log2(norm_x)
        log2y = np.log2(norm_y)
    return (log2x - log2y).astype(np.float32), ((log2x + log2y) * 0.5).astype(np.float32)


class TableSampleIterator:
    """Step through calls, confidences and summary tables in lockstep.

    The first table given defines the sample names; any other table must
    list the same number of samples. Iteration stops when any table is
    exhausted. The yielded SampleRecord is reused between steps.

    Example:
        with TableSampleIterator(calls_file=calls, summary_file=summary) as it:
            for record in it:
                print(record.probe_set_id, record.genotypes)
    """

    def __init__(
        self,
        calls_file: Path | None = None,
        confidences_file: Path | None = None,
        summary_file: Path | None = None,
    ) -> None:
        self.calls: _Table | None = None
        self.confidences: _Table | None = None
        self.summary: _Table | None = None
        self.samples: list[str] = []
        first: _Table | None = None

        try:
            for attr, label, path in (
                ("calls", "calls", calls_file),
                ("confidences", "confidences", confidences_file),
                ("summary", "summary", summary_file),
            ):
                if path is None:
                    continue
                table = _Table(label, Path(path))
                setattr(self, attr, table)
                if first is None:
                    first = table
                    self.samples = table.samples
                elif len(table.samples) != len(self.samples):
                    raise TableFormatError(
                        f"The {label} file lists {len(table.samples)} samples "
                        f"while {len(self.samples)} were expected"
                    )
        except Exception:
            self._close_tables(warn=False)
            raise

        if self.calls is None and self.confidences is None and self.summary is None:
            raise TableFormatError("At least one of calls, confidences or summary is required")

        self.record = SampleRecord.allocate(len(self.samples))
        self.record.calls_loaded = self.calls is not None
        self.record.confidences_loaded = self.confidences is not None
        self.record.intensities_loaded = self.summary is not None

    @property
    def n_samples(self) -> int:
        return len(self.samples)

    def _check_probe_set_id(self, probe_set_id: str) -> None:
        if not self.record.probe_set_id:
            self.record.probe_set_id = probe_set_id
        elif self.record.probe_set_id != probe_set_id:
            raise ProbeSetMismatchError(
                f"Probe Set Name mismatch: {self.record.probe_set_id} {probe_set_id}"
            )

    def advance(self) -> bool:
        """Read the next probe set from every table.

        Returns:
            False when any table is exhausted

        Raises:
            TableFormatError: If a row has the wrong number of fields
            InvalidCallCodeError: If a call is not -1, 0, 1 or 2
            MissingCompanionLineError: If a "-A" summary line lacks its "-B" line
            ProbeSetMismatchError: If the tables disagree on the probe set
        """
        n = self.n_samples
        record = self.record
        record.probe_set_id = ""

        if self.calls is not None:
            fields = self.calls.next_fields(n)
            if fields is None:
                return False
            record.genotypes[:] = _parse_calls(fields[1:], fields[0])
            self._check_probe_set_id(fields[0])

        if self.confidences is not None:
            fields = self.confidences.next_fields(n)
            if fields is None:
                return False
            record.confidences[:] = _parse_floats(fields[1:], "confidences")
            self._check_probe_set_id(fields[0])

        if self.summary is not None:
            fields = self.summary.next_fields(n)
            if fields is None:
                return False
            name = fields[0]
            if not name.endswith("-A"):
                raise MissingCompanionLineError(
                    f"Found Probe Set ID {name} while a -A was expected"
                )
            probe_set_id = name[:-2]
            b_fields = self.summary.next_fields(n)
            if b_fields is None or b_fields[0] != f"{probe_set_id}-B":
                raise MissingCompanionLineError(
                    f"Probe Set ID {name} is not followed by {probe_set_id}-B "
                    f"in the summary file"
                )
            record.norm_x[:] = _parse_floats(fields[1:], "summary")
            record.norm_y[:] = _parse_floats(b_fields[1:], "summary")
            record.delta[:], record.size[:] = signals_to_delta_size(record.norm_x, record.norm_y)
            self._check_probe_set_id(probe_set_id)

        return True

    def __iter__(self) -> "TableSampleIterator":
        return self

    def __next__(self) -> SampleRecord:
        if not self.advance():
            raise StopIteration
        return self.record

    def _close_tables(self, warn: bool) -> None:
        for table in (self.calls, self.confidences, self.summary):
            if table is None:
                continue
            if warn:
                table.close()
            else:
                table.reader.close()

    def close(self) -> None:
        """Close all tables, warning about any with unread lines."""
        self._close_tables(warn=True)

    def __enter__(self) -> "TableSampleIterator":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
