"""Sequential row decoding for Calvin data sets.

A RowCursor owns the read position of its container's stream. Each call to
decode_next_row() reads one fixed-width row into the data set's reusable
buffer; field values are decoded from that buffer only when accessed.

Example:
    cursor = RowCursor(data_set, calvin.stream)
    for row in cursor:
        probe_set_id = row["ProbeSetName"]
"""

import struct
from collections.abc import Callable, Iterator

from affy2vcf.errors import DecodeError, RowExhaustedError
from affy2vcf.formats.calvin import ColumnType, DataSet
from affy2vcf.formats.stream import ByteStream

_U32 = struct.Struct(">I")

Decoder = Callable[[bytearray, int, int], int | float | str]


def _scalar(fmt: str) -> Decoder:
    s = struct.Struct(">" + fmt)

    def decode(buffer: bytearray, offset: int, width: int) -> int | float:
        return s.unpack_from(buffer, offset)[0]

    return decode


def _decode_string(buffer: bytearray, offset: int, width: int) -> str:
    n = _U32.unpack_from(buffer, offset)[0]
    if n > width - 4:
        raise DecodeError(f"String of length {n} overflows column of width {width}")
    return bytes(buffer[offset + 4:offset + 4 + n]).decode("latin-1")


def _decode_wstring(buffer: bytearray, offset: int, width: int) -> str:
    n = _U32.unpack_from(buffer, offset)[0]
    if 2 * n > width - 4:
        raise DecodeError(f"Wide string of length {n} overflows column of width {width}")
    return bytes(buffer[offset + 4:offset + 4 + 2 * n]).decode("utf-16-be", errors="replace")


DECODERS: dict[ColumnType, Decoder] = {
    ColumnType.INT8: _scalar("b"),
    ColumnType.UINT8: _scalar("B"),
    ColumnType.INT16: _scalar("h"),
    ColumnType.UINT16: _scalar("H"),
    ColumnType.INT32: _scalar("i"),
    ColumnType.UINT32: _scalar("I"),
    ColumnType.FLOAT: _scalar("f"),
    ColumnType.STRING: _decode_string,
    ColumnType.WSTRING: _decode_wstring,
}


class Row:
    """View of the most recently decoded row.

    Values are read from the data set's shared buffer, so a Row is only
    valid until the cursor decodes the next row.
    """

    __slots__ = ("_cursor",)

    def __init__(self, cursor: "RowCursor") -> None:
        self._cursor = cursor

    def __getitem__(self, key: int | str) -> int | float | str:
        index = self._cursor.column_index(key) if isinstance(key, str) else key
        data_set = self._cursor.data_set
        column = data_set.columns[index]
        return DECODERS[column.type](
            data_set.buffer, data_set.column_offsets[index], column.width
        )

    def __len__(self) -> int:
        return len(self._cursor.data_set.columns)

    def raw(self, key: int | str) -> bytes:
        """Return the undecoded bytes of one field."""
        index = self._cursor.column_index(key) if isinstance(key, str) else key
        data_set = self._cursor.data_set
        start = data_set.column_offsets[index]
        return bytes(data_set.buffer[start:start + data_set.columns[index].width])

    def values(self) -> list[int | float | str]:
        return [self[i] for i in range(len(self))]


class RowCursor:
    """Forward-only reader over the rows of one data set.

    Attributes:
        data_set: Data set being read
        stream: Stream of the container holding the data set
        rows_read: Number of rows decoded so far
    """

    def __init__(self, data_set: DataSet, stream: ByteStream) -> None:
        self.data_set = data_set
        self.stream = stream
        self.rows_read = 0
        self._positioned = False
        self._index = {column.name: i for i, column in enumerate(data_set.columns)}

    @property
    def rows_remaining(self) -> int:
        return self.data_set.row_count - self.rows_read

    def column_index(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"No column {name} in data set {self.data_set.name}") from None

    def seek_to_first_row(self) -> None:
        """Position the stream at the first row of the data set."""
        self.stream.seek(self.data_set.first_row_offset)
        self.rows_read = 0
        self._positioned = True

    def decode_next_row(self) -> Row:
        """Read the next row into the data set buffer.

        Raises:
            RowExhaustedError: If all rows have already been read
            TruncatedStreamError: If the stream ends inside the row
        """
        if self.rows_read >= self.data_set.row_count:
            raise RowExhaustedError(
                f"All {self.data_set.row_count} rows of data set "
                f"{self.data_set.name} in {self.stream.name} already read"
            )
        if not self._positioned:
            self.seek_to_first_row()
        self.stream.readinto(memoryview(self.data_set.buffer))
        self.rows_read += 1
        return Row(self)

    def __iter__(self) -> Iterator[Row]:
        while self.rows_remaining > 0:
            yield self.decode_next_row()
