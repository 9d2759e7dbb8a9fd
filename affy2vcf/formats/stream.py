"""Primitive decoder for seekable binary streams.

Calvin/AGCC containers store every multi-byte scalar in network (big-endian)
order; XDA CEL files are written little-endian by the instrument software.
A ByteStream is created with one byte order and keeps it for its lifetime.

Example:
    with open_stream(Path("sample.chp")) as stream:
        magic = stream.read_u8()
        n_groups = stream.read_i32()
"""

import io
import os
import struct
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Literal

from affy2vcf.errors import TruncatedStreamError

ByteOrder = Literal[">", "<"]

# Read size used when discarding bytes with skip()
_SKIP_CHUNK = 1 << 16


class ByteStream:
    """Exclusive reader over one seekable binary file object.

    Attributes:
        name: Name used in error messages (usually the file path)
        byteorder: ">" for big-endian, "<" for little-endian
    """

    def __init__(self, fileobj: BinaryIO, name: str = "<stream>", byteorder: ByteOrder = ">") -> None:
        self._fp = fileobj
        self.name = name
        self.byteorder = byteorder
        self._structs: dict[str, struct.Struct] = {}

    def _struct(self, fmt: str) -> struct.Struct:
        s = self._structs.get(fmt)
        if s is None:
            s = struct.Struct(self.byteorder + fmt)
            self._structs[fmt] = s
        return s

    # Positioning

    def tell(self) -> int:
        return self._fp.tell()

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._fp.seek(offset, whence)

    def size(self) -> int:
        """Return the total size of the stream in bytes."""
        pos = self._fp.tell()
        end = self._fp.seek(0, os.SEEK_END)
        self._fp.seek(pos)
        return end

    def at_end(self) -> bool:
        """Check whether the stream position is at end-of-stream."""
        return len(self.peek(1)) == 0

    # Raw bytes

    def peek(self, n: int) -> bytes:
        """Return up to n bytes without moving the stream position."""
        pos = self._fp.tell()
        data = self._fp.read(n)
        self._fp.seek(pos)
        return data

    def read(self, n: int) -> bytes:
        """Read exactly n bytes.

        Raises:
            TruncatedStreamError: If fewer than n bytes are available
        """
        data = self._fp.read(n)
        if len(data) < n:
            raise TruncatedStreamError(
                f"Failed to read {n} bytes from {self.name} at position "
                f"{self._fp.tell() - len(data)}: only {len(data)} available"
            )
        return data

    def readinto(self, buffer: bytearray | memoryview) -> None:
        """Fill buffer completely from the stream."""
        n = len(buffer)
        got = self._fp.readinto(buffer)
        if got is None or got < n:
            raise TruncatedStreamError(
                f"Failed to read {n} bytes from {self.name}: only {got or 0} available"
            )

    def skip(self, n: int) -> None:
        """Discard n bytes, failing if the stream ends first."""
        remaining = n
        while remaining > 0:
            chunk = self._fp.read(min(remaining, _SKIP_CHUNK))
            if not chunk:
                raise TruncatedStreamError(
                    f"Failed to reposition {self.name} forward {n} bytes"
                )
            remaining -= len(chunk)

    # Scalars

    def _unpack(self, fmt: str) -> int | float:
        s = self._struct(fmt)
        return s.unpack(self.read(s.size))[0]

    def read_i8(self) -> int:
        return self._unpack("b")  # type: ignore[return-value]

    def read_u8(self) -> int:
        return self._unpack("B")  # type: ignore[return-value]

    def read_i16(self) -> int:
        return self._unpack("h")  # type: ignore[return-value]

    def read_u16(self) -> int:
        return self._unpack("H")  # type: ignore[return-value]

    def read_i32(self) -> int:
        return self._unpack("i")  # type: ignore[return-value]

    def read_u32(self) -> int:
        return self._unpack("I")  # type: ignore[return-value]

    def read_f32(self) -> float:
        return self._unpack("f")  # type: ignore[return-value]

    # Length-prefixed strings

    def read_string8(self) -> bytes | None:
        """Read a 32-bit length followed by that many single-byte characters.

        Returns:
            The raw bytes, or None when the length is zero
        """
        n = self.read_i32()
        if n <= 0:
            return None
        return self.read(n)

    def read_string16(self) -> str | None:
        """Read a 32-bit length followed by that many 16-bit code units.

        Returns:
            The decoded string, or None when the length is zero
        """
        n = self.read_i32()
        if n <= 0:
            return None
        data = self.read(2 * n)
        codec = "utf-16-be" if self.byteorder == ">" else "utf-16-le"
        return data.decode(codec, errors="surrogatepass")

    def close(self) -> None:
        self._fp.close()

    @property
    def closed(self) -> bool:
        return self._fp.closed


def stream_from_bytes(data: bytes, name: str = "<bytes>", byteorder: ByteOrder = ">") -> ByteStream:
    """Wrap an in-memory buffer in a ByteStream."""
    return ByteStream(io.BytesIO(data), name=name, byteorder=byteorder)


@contextmanager
def open_stream(filepath: Path, byteorder: ByteOrder = ">") -> Iterator[ByteStream]:
    """Open a file as a ByteStream and close it on exit."""
    stream = ByteStream(open(filepath, "rb"), name=str(filepath), byteorder=byteorder)
    try:
        yield stream
    finally:
        stream.close()
