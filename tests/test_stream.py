"""Tests for the binary stream decoder."""

import struct
from pathlib import Path

import pytest

from affy2vcf.errors import TruncatedStreamError
from affy2vcf.formats.stream import open_stream, stream_from_bytes


class TestScalars:
    """Test fixed-width scalar reads in both byte orders."""

    def test_big_endian(self) -> None:
        """Calvin streams decode network byte order."""
        data = struct.pack(">BbhHiIf", 59, -2, -300, 65000, -70000, 4000000000, 1.5)
        stream = stream_from_bytes(data)

        assert stream.read_u8() == 59
        assert stream.read_i8() == -2
        assert stream.read_i16() == -300
        assert stream.read_u16() == 65000
        assert stream.read_i32() == -70000
        assert stream.read_u32() == 4000000000
        assert stream.read_f32() == 1.5
        assert stream.at_end()

    def test_little_endian(self) -> None:
        """XDA streams decode little-endian order."""
        stream = stream_from_bytes(struct.pack("<iI", 64, 4), byteorder="<")

        assert stream.read_i32() == 64
        assert stream.read_u32() == 4

    def test_truncated_read(self) -> None:
        """Reading past the end raises TruncatedStreamError."""
        stream = stream_from_bytes(b"\x00\x01")

        with pytest.raises(TruncatedStreamError):
            stream.read_i32()


class TestStrings:
    """Test length-prefixed string reads."""

    def test_string8(self) -> None:
        stream = stream_from_bytes(struct.pack(">i", 3) + b"abc")
        assert stream.read_string8() == b"abc"

    def test_string16(self) -> None:
        stream = stream_from_bytes(struct.pack(">i", 2) + "hi".encode("utf-16-be"))
        assert stream.read_string16() == "hi"

    def test_zero_length_is_none(self) -> None:
        """A zero length denotes an absent string."""
        stream = stream_from_bytes(struct.pack(">ii", 0, 0))

        assert stream.read_string8() is None
        assert stream.read_string16() is None

    def test_string16_truncated(self) -> None:
        """Length counts 16-bit code units, not bytes."""
        stream = stream_from_bytes(struct.pack(">i", 3) + b"ab")

        with pytest.raises(TruncatedStreamError):
            stream.read_string16()


class TestPositioning:
    """Test seek, peek and skip."""

    def test_peek_does_not_consume(self) -> None:
        stream = stream_from_bytes(b"abcd")

        assert stream.peek(2) == b"ab"
        assert stream.read(3) == b"abc"
        assert stream.tell() == 3

    def test_skip_past_end(self) -> None:
        stream = stream_from_bytes(b"abcd")

        with pytest.raises(TruncatedStreamError):
            stream.skip(10)

    def test_size_keeps_position(self) -> None:
        stream = stream_from_bytes(b"abcdef")
        stream.seek(2)

        assert stream.size() == 6
        assert stream.tell() == 2

    def test_open_stream_closes(self, tmp_path: Path) -> None:
        """open_stream closes the file on exit."""
        path = tmp_path / "data.bin"
        path.write_bytes(b"\x3b\x01")

        with open_stream(path) as stream:
            assert stream.read_u8() == 59
            assert stream.name == str(path)
        assert stream.closed
