"""Calvin / AGCC generic data file reader (CHP and CEL files).

File layout (big-endian):
    magic (u8 = 59), version (u8 = 1), data group count (i32),
    offset of first data group (u32), generic data header (recursive),
    data groups -> data sets -> rows

The structure (headers, groups, data set descriptors) is decoded eagerly;
row payloads are left on disk and decoded lazily through RowCursor. A
CalvinFile therefore keeps its stream open until close() is called.
"""

import struct
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path

from affy2vcf.errors import (
    BadMagicError,
    ContainerContentError,
    TrailingDataError,
    UnknownTypeTagError,
    UnsupportedVersionError,
)
from affy2vcf.formats.stream import ByteStream

CALVIN_MAGIC = 59
CALVIN_VERSION = 1

# Parameters whose values can make a header very large
INSTRUMENT_PARAMETER_PREFIX = "affymetrix-algorithm-param-apt-opt-cel"

# Algorithm names appended to CHP file names by apt-probeset-genotype
ALGORITHM_SUFFIXES = ("AxiomGT1", "birdseed-v2", "brlmm-p")


class ParameterType(Enum):
    """Decoded type of a Calvin parameter value."""

    INT8 = "text/x-calvin-integer-8"
    UINT8 = "text/x-calvin-unsigned-integer-8"
    INT16 = "text/x-calvin-integer-16"
    UINT16 = "text/x-calvin-unsigned-integer-16"
    INT32 = "text/x-calvin-integer-32"
    UINT32 = "text/x-calvin-unsigned-integer-32"
    FLOAT = "text/x-calvin-float"
    ASCII = "text/ascii"
    WIDE = "text/plain"


class ColumnType(IntEnum):
    """Column type tags stored in data set descriptors."""

    INT8 = 0
    UINT8 = 1
    INT16 = 2
    UINT16 = 3
    INT32 = 4
    UINT32 = 5
    FLOAT = 6
    STRING = 7
    WSTRING = 8


# (bit width, signed) for integer parameter types
_INTEGER_WIDTHS: dict[ParameterType, tuple[int, bool]] = {
    ParameterType.INT8: (8, True),
    ParameterType.UINT8: (8, False),
    ParameterType.INT16: (16, True),
    ParameterType.UINT16: (16, False),
    ParameterType.INT32: (32, True),
    ParameterType.UINT32: (32, False),
}


@dataclass
class Parameter:
    """Named, MIME-typed value from a header or data set.

    Attributes:
        name: Parameter name
        raw: Undecoded value bytes (None when empty or discarded)
        mime_type: MIME type string as stored in the file
        type: Decoded type derived from the MIME type
    """

    name: str | None
    raw: bytes | None
    mime_type: str
    type: ParameterType

    @property
    def value(self) -> int | float | str | None:
        """Decode the raw bytes according to the parameter type."""
        if self.raw is None:
            return None
        if self.type in _INTEGER_WIDTHS:
            bits, signed = _INTEGER_WIDTHS[self.type]
            word = struct.unpack(">I", self.raw[:4].ljust(4, b"\0"))[0]
            word &= (1 << bits) - 1
            if signed and word >= 1 << (bits - 1):
                word -= 1 << bits
            return word
        if self.type is ParameterType.FLOAT:
            return struct.unpack(">f", self.raw[:4].ljust(4, b"\0"))[0]
        if self.type is ParameterType.ASCII:
            return self.raw.split(b"\0", 1)[0].decode("latin-1")
        n = len(self.raw) // 2 * 2
        return self.raw[:n].decode("utf-16-be", errors="replace").split("\0", 1)[0]


@dataclass
class MetadataHeader:
    """Generic data header: typed parameters plus parent headers."""

    data_type_id: str
    guid: str | None
    datetime: str | None
    locale: str | None
    parameters: list[Parameter] = field(default_factory=list)
    parents: list["MetadataHeader"] = field(default_factory=list)

    def find_parameter(self, name: str) -> Parameter | None:
        """Return the first parameter of this header with the given name."""
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None

    def walk(self) -> Iterator["MetadataHeader"]:
        """Yield this header and all its ancestors depth-first."""
        yield self
        for parent in self.parents:
            yield from parent.walk()

    def parameter_count(self) -> int:
        """Total number of parameters across this header tree."""
        return sum(len(header.parameters) for header in self.walk())


@dataclass(slots=True)
class ColumnDescriptor:
    """Name, type tag and byte width of one data set column."""

    name: str
    type: ColumnType
    width: int


@dataclass
class DataSet:
    """Data set descriptor; rows stay on disk until read by a RowCursor.

    Attributes:
        first_row_offset: File offset of the first row
        next_data_set_offset: File offset of the next data set (0 if none)
        name: Data set name (e.g. "Genotype")
        parameters: Data set parameters
        columns: Column descriptors in row order
        row_count: Number of rows
        column_offsets: Byte offset of each column within a row
        row_width: Total bytes per row
        buffer: Reusable row buffer of row_width bytes
    """

    first_row_offset: int
    next_data_set_offset: int
    name: str
    parameters: list[Parameter]
    columns: list[ColumnDescriptor]
    row_count: int
    column_offsets: list[int] = field(default_factory=list)
    row_width: int = 0
    buffer: bytearray = field(default_factory=bytearray, repr=False)

    def __post_init__(self) -> None:
        offset = 0
        self.column_offsets = []
        for column in self.columns:
            self.column_offsets.append(offset)
            offset += column.width
        self.row_width = offset
        self.buffer = bytearray(offset)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def column_index(self, name: str) -> int:
        """Return the index of the named column.

        Raises:
            ContainerContentError: If the column does not exist
        """
        for i, column in enumerate(self.columns):
            if column.name == name:
                return i
        raise ContainerContentError(f"Column {name} not found in data set {self.name}")


@dataclass
class DataGroup:
    """Named run of data sets."""

    name: str
    next_group_offset: int
    first_data_set_offset: int
    data_sets: list[DataSet] = field(default_factory=list)

    def find_data_set(self, name: str) -> DataSet | None:
        for data_set in self.data_sets:
            if data_set.name == name:
                return data_set
        return None


@dataclass
class CalvinFile:
    """Decoded Calvin container with an open stream for lazy row access."""

    path: str
    magic: int
    version: int
    header: MetadataHeader
    groups: list[DataGroup]
    size: int
    display_name: str
    stream: ByteStream = field(repr=False)

    @property
    def file_name(self) -> str:
        return Path(self.path).name

    def find_group(self, name: str) -> DataGroup | None:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def close(self) -> None:
        if not self.stream.closed:
            self.stream.close()

    def __enter__(self) -> "CalvinFile":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def _decode_ascii(value: bytes | None) -> str | None:
    return value.decode("latin-1") if value is not None else None


def read_parameter(stream: ByteStream, drop_instrument_parameters: bool = False) -> Parameter:
    """Decode one name / value / MIME type triplet.

    Raises:
        UnknownTypeTagError: If the MIME type is not one of the Calvin types
    """
    name = stream.read_string16()
    raw = stream.read_string8()
    mime_type = stream.read_string16() or ""
    try:
        ptype = ParameterType(mime_type)
    except ValueError:
        raise UnknownTypeTagError(f"MIME type {mime_type} not allowed in {stream.name}") from None

    if (
        drop_instrument_parameters
        and name is not None
        and name.startswith(INSTRUMENT_PARAMETER_PREFIX)
    ):
        raw = None
    return Parameter(name=name, raw=raw, mime_type=mime_type, type=ptype)


def _read_parameters(stream: ByteStream, drop: bool) -> list[Parameter]:
    count = stream.read_i32()
    return [read_parameter(stream, drop) for _ in range(count)]


def read_metadata_header(stream: ByteStream, drop_instrument_parameters: bool = False) -> MetadataHeader:
    """Decode a generic data header and, recursively, its parents."""
    data_type_id = _decode_ascii(stream.read_string8()) or ""
    guid = _decode_ascii(stream.read_string8())
    datetime = stream.read_string16()
    locale = stream.read_string16()
    parameters = _read_parameters(stream, drop_instrument_parameters)
    n_parents = stream.read_i32()
    parents = [read_metadata_header(stream, drop_instrument_parameters) for _ in range(n_parents)]
    return MetadataHeader(
        data_type_id=data_type_id,
        guid=guid,
        datetime=datetime,
        locale=locale,
        parameters=parameters,
        parents=parents,
    )


def read_data_set(stream: ByteStream, drop_instrument_parameters: bool = False) -> DataSet:
    """Decode a data set descriptor and seek to the next one."""
    first_row_offset = stream.read_u32()
    next_data_set_offset = stream.read_u32()
    name = stream.read_string16() or ""
    parameters = _read_parameters(stream, drop_instrument_parameters)

    n_columns = stream.read_u32()
    columns: list[ColumnDescriptor] = []
    for _ in range(n_columns):
        col_name = stream.read_string16() or ""
        tag = stream.read_i8()
        width = stream.read_i32()
        try:
            col_type = ColumnType(tag)
        except ValueError:
            raise UnknownTypeTagError(
                f"Unknown type tag {tag} for column {col_name} in {stream.name}"
            ) from None
        columns.append(ColumnDescriptor(name=col_name, type=col_type, width=width))
    row_count = stream.read_u32()

    data_set = DataSet(
        first_row_offset=first_row_offset,
        next_data_set_offset=next_data_set_offset,
        name=name,
        parameters=parameters,
        columns=columns,
        row_count=row_count,
    )
    if next_data_set_offset:
        stream.seek(next_data_set_offset)
    return data_set


def read_data_group(stream: ByteStream, drop_instrument_parameters: bool = False) -> DataGroup:
    """Decode a data group and all its data sets."""
    next_group_offset = stream.read_u32()
    first_data_set_offset = stream.read_u32()
    n_data_sets = stream.read_i32()
    name = stream.read_string16() or ""

    group = DataGroup(
        name=name,
        next_group_offset=next_group_offset,
        first_data_set_offset=first_data_set_offset,
    )
    stream.seek(first_data_set_offset)
    for _ in range(n_data_sets):
        group.data_sets.append(read_data_set(stream, drop_instrument_parameters))
    if next_group_offset:
        stream.seek(next_group_offset)
    return group


def display_name_from_path(path: str) -> str:
    """Strip ".chp" and a trailing algorithm name from a file name.

    Example:
        >>> display_name_from_path("/data/NA12878.AxiomGT1.chp")
        "NA12878"
    """
    name = Path(path).name
    stem, dot, ext = name.rpartition(".")
    if not dot or ext != "chp":
        return name
    base, dot, algorithm = stem.rpartition(".")
    if dot and algorithm in ALGORITHM_SUFFIXES:
        return base
    return stem


def read_calvin(stream: ByteStream, drop_instrument_parameters: bool = False) -> CalvinFile:
    """Decode the structure of a Calvin container.

    Args:
        stream: Big-endian stream positioned at the start of the file
        drop_instrument_parameters: Discard values of high-volume
            apt-opt-cel parameters to bound memory

    Returns:
        CalvinFile holding the stream for later row decoding

    Raises:
        BadMagicError: If the magic number is not 59
        UnsupportedVersionError: If the version is not 1
        TrailingDataError: If the last group does not end at end-of-stream
    """
    magic = stream.read_u8()
    if magic != CALVIN_MAGIC:
        raise BadMagicError(
            f"AGCC file {stream.name} magic number is {magic} while it should be {CALVIN_MAGIC}"
        )
    version = stream.read_u8()
    if version != CALVIN_VERSION:
        raise UnsupportedVersionError(
            f"Cannot read AGCC file {stream.name}. "
            f"Unsupported AGCC file format version: {version}"
        )
    n_groups = stream.read_i32()
    first_group_offset = stream.read_u32()

    header = read_metadata_header(stream, drop_instrument_parameters)

    stream.seek(first_group_offset)
    groups = [read_data_group(stream, drop_instrument_parameters) for _ in range(n_groups)]

    if not stream.at_end():
        raise TrailingDataError(
            f"AGCC reader did not reach the end of file {stream.name} at position {stream.tell()}"
        )
    size = stream.size()

    return CalvinFile(
        path=stream.name,
        magic=magic,
        version=version,
        header=header,
        groups=groups,
        size=size,
        display_name=display_name_from_path(stream.name),
        stream=stream,
    )


def open_calvin(filepath: Path, drop_instrument_parameters: bool = False) -> CalvinFile:
    """Open a Calvin file; the returned CalvinFile owns the open stream."""
    stream = ByteStream(open(filepath, "rb"), name=str(filepath), byteorder=">")
    try:
        return read_calvin(stream, drop_instrument_parameters)
    except Exception:
        stream.close()
        raise
