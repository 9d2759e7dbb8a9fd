"""Lockstep genotype/intensity reader over CHP containers.

Every CHP written by apt-probeset-genotype holds one sample in the
"Genotype" data set of its "MultiData" group, one row per probe set:

    ProbeSetName | Call | Confidence | Log Ratio | Strength | Forced Call   (Axiom)
    ProbeSetName | Call | Confidence | Signal A  | Signal B | Forced Call   (birdseed, brlmm-p)

Rows of all containers are read together and must name the same probe set.
"""

from collections.abc import Sequence
from enum import Enum, auto

import numpy as np

from affy2vcf.errors import (
    ContainerContentError,
    InvalidCallCodeError,
    ProbeSetMismatchError,
)
from affy2vcf.formats import Container
from affy2vcf.formats.calvin import CalvinFile
from affy2vcf.formats.cursor import RowCursor
from affy2vcf.models import Call, SampleRecord
from affy2vcf.parsers.tables import signals_to_delta_size

GENOTYPE_DATA_TYPE = "affymetrix-multi-data-type-analysis"
GENOTYPE_GROUP = "MultiData"
GENOTYPE_DATA_SET = "Genotype"

# Low nibble of the Call column
CALL_CODES: dict[int, Call] = {
    6: Call.AA,
    7: Call.BB,
    8: Call.AB,
    11: Call.NO_CALL,
}


class IntensityEncoding(Enum):
    """How a CHP stores the two intensity columns."""

    LOG_RATIO = auto()  # Log Ratio / Strength (delta, size)
    SIGNAL = auto()  # Signal A / Signal B


def decode_call(code: int) -> Call:
    """Map a Call column value to a genotype.

    Raises:
        InvalidCallCodeError: If the low nibble is not a known call code
    """
    call = CALL_CODES.get(code & 0x0F)
    if call is None:
        raise InvalidCallCodeError(f"Invalid genotype call code {code & 0x0F}")
    return call


def genotype_encoding(container: Container) -> IntensityEncoding:
    """Check the layout of a CHP genotype data set and return its encoding.

    Raises:
        ContainerContentError: If the container is not a genotype CHP
    """
    if not isinstance(container, CalvinFile) or container.header.data_type_id != GENOTYPE_DATA_TYPE:
        raise ContainerContentError(
            f"AGCC CHP file {container.path} does not contain multi data type analysis"
        )
    if not container.groups or container.groups[0].name != GENOTYPE_GROUP:
        raise ContainerContentError(f"AGCC CHP file {container.path} does not contain multi data")
    group = container.groups[0]
    if not group.data_sets or group.data_sets[0].name != GENOTYPE_DATA_SET:
        raise ContainerContentError(f"AGCC CHP file {container.path} does not contain genotype data")

    names = group.data_sets[0].column_names
    if (
        len(names) < 6
        or names[0] != "ProbeSetName"
        or names[1] != "Call"
        or names[2] != "Confidence"
        or names[5] != "Forced Call"
    ):
        raise ContainerContentError(
            f"AGCC CHP file {container.path} does not contain genotype data in the expected format"
        )
    if names[3] == "Log Ratio" and names[4] == "Strength":
        return IntensityEncoding.LOG_RATIO
    if names[3] == "Signal A" and names[4] == "Signal B":
        return IntensityEncoding.SIGNAL
    raise ContainerContentError(
        f"AGCC CHP file {container.path} does not contain intensities data in the expected format"
    )


class ChpSampleIterator:
    """Step through the genotype data sets of several CHP files in lockstep.

    The yielded SampleRecord is reused between steps. Iteration ends as
    soon as any container runs out of rows.

    Attributes:
        containers: Open CHP containers, one per sample
        samples: Sample names (container display names)
        encodings: Intensity encoding of each container
    """

    def __init__(self, containers: Sequence[Container]) -> None:
        self.encodings = [genotype_encoding(c) for c in containers]
        self.containers: list[CalvinFile] = list(containers)  # type: ignore[arg-type]
        self.samples = [c.display_name for c in self.containers]
        self.cursors = [
            RowCursor(c.groups[0].data_sets[0], c.stream) for c in self.containers
        ]
        for cursor in self.cursors:
            cursor.seek_to_first_row()

        n = len(self.containers)
        self._log_ratio = np.array(
            [e is IntensityEncoding.LOG_RATIO for e in self.encodings], dtype=bool
        )
        self._first = np.zeros(n, dtype=np.float32)
        self._second = np.zeros(n, dtype=np.float32)

        self.record = SampleRecord.allocate(n)
        self.record.calls_loaded = True
        self.record.confidences_loaded = True
        self.record.intensities_loaded = True

    @property
    def n_samples(self) -> int:
        return len(self.samples)

    def advance(self) -> bool:
        """Decode one row from every container.

        Returns:
            False when any container has no rows left

        Raises:
            ProbeSetMismatchError: If the containers disagree on the probe set
            InvalidCallCodeError: If a call code is not recognised
        """
        record = self.record
        record.probe_set_id = ""
        for i, cursor in enumerate(self.cursors):
            if cursor.rows_remaining == 0:
                return False
            row = cursor.decode_next_row()
            probe_set_id = row[0]
            if i == 0:
                record.probe_set_id = probe_set_id
            elif probe_set_id != record.probe_set_id:
                raise ProbeSetMismatchError(
                    f"Probe Set Name mismatch: {record.probe_set_id} {probe_set_id}"
                )
            record.genotypes[i] = decode_call(row[1])
            record.confidences[i] = row[2]
            self._first[i] = row[3]
            self._second[i] = row[4]

        axiom = self._log_ratio
        signal = ~axiom
        if axiom.any():
            record.delta[axiom] = self._first[axiom]
            record.size[axiom] = self._second[axiom]
            record.norm_x[axiom] = np.exp2(self._second[axiom] + self._first[axiom] * 0.5)
            record.norm_y[axiom] = np.exp2(self._second[axiom] - self._first[axiom] * 0.5)
        if signal.any():
            record.norm_x[signal] = self._first[signal]
            record.norm_y[signal] = self._second[signal]
            delta, size = signals_to_delta_size(self._first[signal], self._second[signal])
            record.delta[signal] = delta
            record.size[signal] = size
        return True

    def __iter__(self) -> "ChpSampleIterator":
        return self

    def __next__(self) -> SampleRecord:
        if not self.advance():
            raise StopIteration
        return self.record

    def close(self) -> None:
        for container in self.containers:
            container.close()

    def __enter__(self) -> "ChpSampleIterator":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
