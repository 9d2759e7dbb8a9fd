"""XDA (binary version 4) CEL file reader.

XDA CEL layout (little-endian):
    magic (i32 = 64), version (i32 = 4), rows, cols, cells,
    header text, algorithm text, parameters text (each i32 length + bytes),
    cell margin, outlier count, masked count, sub-grid count,
    cells[cells], masked[masked], outliers[outliers], sub-grids[sub-grids]

Cell entries are (mean f32, stdev f32, pixels i16) packed to 10 bytes.
"""

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np

from affy2vcf.errors import (
    BadMagicError,
    DecodeError,
    TrailingDataError,
    UnsupportedVersionError,
)
from affy2vcf.formats.stream import ByteStream

XDA_CEL_MAGIC = 64
XDA_CEL_VERSION = 4

CELL_DTYPE = np.dtype([("mean", "<f4"), ("stdev", "<f4"), ("pixels", "<i2")])
COORD_DTYPE = np.dtype([("x", "<i2"), ("y", "<i2")])
SUB_GRID_DTYPE = np.dtype(
    [
        ("row", "<i4"),
        ("col", "<i4"),
        ("upper_left_x", "<f4"),
        ("upper_left_y", "<f4"),
        ("upper_right_x", "<f4"),
        ("upper_right_y", "<f4"),
        ("lower_left_x", "<f4"),
        ("lower_left_y", "<f4"),
        ("lower_right_x", "<f4"),
        ("lower_right_y", "<f4"),
        ("left_cell", "<i4"),
        ("top_cell", "<i4"),
        ("right_cell", "<i4"),
        ("bottom_cell", "<i4"),
    ]
)


@dataclass
class XdaCel:
    """Decoded XDA CEL file.

    Arrays are empty when the file was read in header-only mode.
    """

    path: str
    version: int
    rows: int
    cols: int
    cell_count: int
    header: str
    algorithm: str
    parameters: str
    cell_margin: int
    outlier_count: int
    masked_count: int
    sub_grid_count: int
    header_only: bool = False
    cells: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=CELL_DTYPE))
    masked: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=COORD_DTYPE))
    outliers: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=COORD_DTYPE))
    sub_grids: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=SUB_GRID_DTYPE))

    @property
    def file_name(self) -> str:
        return Path(self.path).name

    @property
    def dat_header(self) -> str | None:
        """Return the DAT header string from the "DatHeader=" header line."""
        start = self.header.find("\nDatHeader=[")
        if start < 0:
            return None
        bracket = self.header.find("]", start + 12)
        if bracket < 0:
            return None
        end = self.header.find("\n", bracket)
        if end < 0:
            return None
        return self.header[bracket + 1:end]

    def validate(self) -> list[str]:
        """Check geometry invariants and return a list of violations."""
        errors: list[str] = []
        if self.cell_count != self.rows * self.cols:
            errors.append(
                f"cell count {self.cell_count} != rows * cols ({self.rows} x {self.cols})"
            )
        for label, coords in (("masked", self.masked), ("outlier", self.outliers)):
            if len(coords) == 0:
                continue
            bad = (
                (coords["x"] < 0) | (coords["x"] >= self.cols)
                | (coords["y"] < 0) | (coords["y"] >= self.rows)
            )
            if bad.any():
                errors.append(f"{int(bad.sum())} {label} coordinates outside the grid")
        return errors


def _read_text(stream: ByteStream) -> str:
    n = stream.read_i32()
    if n < 0:
        raise DecodeError(f"Negative text block length {n} in {stream.name}")
    return stream.read(n).decode("latin-1") if n else ""


def _read_array(stream: ByteStream, dtype: np.dtype, count: int) -> np.ndarray:
    if count < 0:
        raise DecodeError(f"Negative element count {count} in {stream.name}")
    data = stream.read(count * dtype.itemsize)
    return np.frombuffer(data, dtype=dtype, count=count)


def read_xda(stream: ByteStream, header_only: bool = False) -> XdaCel:
    """Decode an XDA CEL file from a little-endian stream.

    Args:
        stream: Stream positioned at the first byte of the file
        header_only: Skip the four arrays (used when many files are open)

    Returns:
        XdaCel with header fields and, unless header_only, all arrays

    Raises:
        BadMagicError: If the magic number is not 64
        UnsupportedVersionError: If the version is not 4
        TruncatedStreamError: If the file ends early
        TrailingDataError: If bytes remain after the last array
    """
    magic = stream.read_i32()
    if magic != XDA_CEL_MAGIC:
        raise BadMagicError(
            f"XDA CEL file {stream.name} magic number is {magic} while it should be {XDA_CEL_MAGIC}"
        )
    version = stream.read_i32()
    if version != XDA_CEL_VERSION:
        raise UnsupportedVersionError(
            f"Cannot read XDA CEL file {stream.name}. "
            f"Unsupported XDA CEL file format version: {version}"
        )

    rows = stream.read_i32()
    cols = stream.read_i32()
    cell_count = stream.read_i32()
    header = _read_text(stream)
    algorithm = _read_text(stream)
    parameters = _read_text(stream)
    cell_margin = stream.read_i32()
    outlier_count = stream.read_u32()
    masked_count = stream.read_u32()
    sub_grid_count = stream.read_i32()

    cel = XdaCel(
        path=stream.name,
        version=version,
        rows=rows,
        cols=cols,
        cell_count=cell_count,
        header=header,
        algorithm=algorithm,
        parameters=parameters,
        cell_margin=cell_margin,
        outlier_count=outlier_count,
        masked_count=masked_count,
        sub_grid_count=sub_grid_count,
        header_only=header_only,
    )
    if header_only:
        return cel

    # Masked entries precede outliers on disk even though the counts are
    # stored the other way round
    cel.cells = _read_array(stream, CELL_DTYPE, cell_count)
    cel.masked = _read_array(stream, COORD_DTYPE, masked_count)
    cel.outliers = _read_array(stream, COORD_DTYPE, outlier_count)
    cel.sub_grids = _read_array(stream, SUB_GRID_DTYPE, sub_grid_count)

    if not stream.at_end():
        raise TrailingDataError(
            f"XDA CEL reader did not reach the end of file {stream.name} "
            f"at position {stream.tell()}"
        )
    return cel


def open_xda(filepath: Path, header_only: bool = False) -> XdaCel:
    """Read an XDA CEL file from disk. The file is closed before returning."""
    with open(filepath, "rb") as f:
        return read_xda(ByteStream(f, name=str(filepath), byteorder="<"), header_only)
