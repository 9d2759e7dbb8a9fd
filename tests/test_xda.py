"""Tests for the XDA CEL reader and container dispatch."""

import struct
from pathlib import Path

import pytest

from builders import DAT_HEADER, chp_bytes, xda_bytes

from affy2vcf.errors import (
    BadMagicError,
    DecodeError,
    TrailingDataError,
    TruncatedStreamError,
    UnsupportedVersionError,
)
from affy2vcf.formats import CalvinFile, XdaCel, open_container, read_magic
from affy2vcf.formats.stream import stream_from_bytes
from affy2vcf.formats.xda import read_xda


def decode(data: bytes, header_only: bool = False) -> XdaCel:
    return read_xda(stream_from_bytes(data, name="test.CEL", byteorder="<"), header_only)


# Four cells of 10 bytes, then one masked and one outlier coordinate of 4 bytes
FULL_XDA = xda_bytes(masked=[(1, 0)], outliers=[(0, 1)])
ARRAYS_START = len(FULL_XDA) - 4 * 10 - 4 - 4


class TestReadXda:
    """Test decoding of XDA CEL files."""

    def test_geometry_and_cells(self) -> None:
        """Header fields and cell arrays are decoded."""
        cel = decode(xda_bytes(masked=[(1, 0)], outliers=[(0, 1), (1, 1)]))

        assert (cel.rows, cel.cols, cel.cell_count) == (2, 2, 4)
        assert cel.algorithm == "Percentile"
        assert cel.cell_margin == 2
        assert cel.cells["mean"].tolist() == [100.0, 101.0, 102.0, 103.0]
        assert cel.cells["pixels"].tolist() == [16, 16, 16, 16]
        assert cel.masked.tolist() == [(1, 0)]
        assert cel.outliers.tolist() == [(0, 1), (1, 1)]
        assert cel.validate() == []

    def test_dat_header(self) -> None:
        """The DAT header is taken from the DatHeader= line."""
        cel = decode(xda_bytes())
        assert cel.dat_header == DAT_HEADER

    def test_missing_dat_header(self) -> None:
        cel = decode(xda_bytes(header="Cols=2\nRows=2\n"))
        assert cel.dat_header is None

    def test_header_only(self) -> None:
        """Header-only mode leaves the arrays empty."""
        cel = decode(xda_bytes(), header_only=True)

        assert cel.header_only
        assert len(cel.cells) == 0
        assert cel.cell_count == 4

    def test_bad_magic(self) -> None:
        data = struct.pack("<i", 65) + xda_bytes()[4:]
        with pytest.raises(BadMagicError):
            decode(data)

    def test_unsupported_version(self) -> None:
        with pytest.raises(UnsupportedVersionError):
            decode(xda_bytes(version=3))

    def test_trailing_data(self) -> None:
        with pytest.raises(TrailingDataError):
            decode(xda_bytes() + b"\x00")

    def test_truncated(self) -> None:
        with pytest.raises(TruncatedStreamError):
            decode(xda_bytes()[:-3])

    @pytest.mark.parametrize("length", range(ARRAYS_START, len(FULL_XDA)))
    def test_truncated_in_arrays(self, length: int) -> None:
        """Cutting the file anywhere in the cell, mask or outlier arrays fails."""
        with pytest.raises(TruncatedStreamError):
            decode(FULL_XDA[:length])

    def test_validate_reports_bad_geometry(self) -> None:
        """Cell count and coordinates are checked against the grid."""
        cel = decode(xda_bytes(rows=2, cols=2, cells=[(1.0, 1.0, 1)] * 3, masked=[(5, 0)]))
        errors = cel.validate()

        assert any("cell count" in e for e in errors)
        assert any("masked" in e for e in errors)


class TestOpenContainer:
    """Test dispatch on the first byte of a file."""

    def test_opens_xda(self, tmp_path: Path) -> None:
        path = tmp_path / "a.CEL"
        path.write_bytes(xda_bytes())

        container = open_container(path)

        assert isinstance(container, XdaCel)
        assert container.file_name == "a.CEL"

    def test_opens_calvin(self, tmp_path: Path) -> None:
        path = tmp_path / "a.AxiomGT1.chp"
        path.write_bytes(chp_bytes([("AX-1", "AA", 0.1, 1.0, 10.0)]))

        container = open_container(path)
        try:
            assert isinstance(container, CalvinFile)
            assert container.display_name == "a"
        finally:
            container.close()

    def test_xda_chp_unsupported(self, tmp_path: Path) -> None:
        path = tmp_path / "old.chp"
        path.write_bytes(struct.pack("<i", 65))

        with pytest.raises(UnsupportedVersionError):
            open_container(path)

    def test_unknown_magic(self, tmp_path: Path) -> None:
        path = tmp_path / "text.CEL"
        path.write_text("[CEL]\nVersion=3\n")

        with pytest.raises(BadMagicError):
            open_container(path)

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.CEL"
        path.write_bytes(b"")

        with pytest.raises(DecodeError):
            read_magic(path)
