"""Tests for text renderings of CEL and CHP containers."""

import io
import struct

import pytest

from builders import (
    CHIP_SUMMARY_VALUES,
    DAT_HEADER,
    DAT_HEADER_FIELDS,
    calvin_cel_bytes,
    chip_summary_parameters,
    chp_bytes,
    parameter,
    xda_bytes,
)

from affy2vcf.errors import ContainerContentError
from affy2vcf.formats.calvin import Parameter, ParameterType, read_calvin
from affy2vcf.formats.stream import stream_from_bytes
from affy2vcf.formats.xda import read_xda
from affy2vcf.writers.dump import (
    CHIP_SUMMARY_PARAMETERS,
    cel_dat_header,
    dump_calvin,
    dump_container,
    format_parameter,
    parse_dat_header,
    write_cel_summary,
    write_chip_summary,
)

ROWS = [
    ("AX-1", "AA", 0.01, 2.0, 10.0),
    ("AX-2", "BB", 0.5, -2.0, 9.5),
    ("AX-3", "AB", 0.25, 0.0, 10.5),
    ("AX-4", "NC", 0.75, 0.5, 8.0),
]


def chp(name: str = "sample1.AxiomGT1.chp", params=None):
    return read_calvin(stream_from_bytes(chp_bytes(ROWS, header_parameters=params), name=name))


def xda(name: str = "sample1.CEL", header_only: bool = False):
    data = xda_bytes(masked=[(1, 0)], outliers=[(0, 1)])
    return read_xda(stream_from_bytes(data, name=name, byteorder="<"), header_only)


class TestDumpCalvin:
    """Test the metadata and row dump of Calvin files."""

    def test_metadata(self) -> None:
        out = io.StringIO()
        dump_calvin(chp(), out)
        text = out.getvalue()

        assert "#%File=sample1.AxiomGT1.chp\n" in text
        assert "#%Magic=59\n" in text
        assert "#%Version=1\n" in text
        assert "#%FileTypeIdentifier=affymetrix-multi-data-type-analysis\n" in text
        assert "#%FileLocale=en-US\n" in text
        assert "#%affymetrix-chipsummary-call_rate=99.500000\n" in text
        assert "#%affymetrix-chipsummary-computed_gender=female\n" in text
        assert "#%GroupName=MultiData\n" in text
        assert "#%SetName=Genotype\n" in text
        assert "#%Columns=6\n" in text
        assert "#%Rows=4\n" in text
        assert "ProbeSetName\tCall\tConfidence\tLog Ratio\tStrength\tForced Call\n" in text
        assert "... use --verbose to visualize Data Set ...\n" in text
        assert "AX-1" not in text

    def test_verbose_rows(self) -> None:
        """Verbose mode prints Genotype rows with two-letter calls."""
        out = io.StringIO()
        dump_calvin(chp(), out, verbose=True)
        lines = out.getvalue().splitlines()

        assert "AX-1\tAA\t0.01\t2\t10\tAA" in lines
        assert "AX-2\tBB\t0.5\t-2\t9.5\tBB" in lines
        assert "AX-3\tAB\t0.25\t0\t10.5\tAB" in lines
        assert "AX-4\tNC\t0.75\t0.5\t8\tNC" in lines

    def test_parent_headers_dumped(self) -> None:
        out = io.StringIO()
        dump_calvin(read_calvin(stream_from_bytes(calvin_cel_bytes(), name="a.CEL")), out, verbose=True)
        text = out.getvalue()

        assert "#%FileTypeIdentifier=affymetrix-calvin-scan-acquisition\n" in text
        assert "#%affymetrix-algorithm-name=Feature Extraction\n" in text
        assert "#%Rows=0\n" in text


class TestDumpXda:
    """Test the text CEL rendering of XDA files."""

    def test_summary(self) -> None:
        out = io.StringIO()
        dump_container(xda(), out)
        text = out.getvalue()

        assert text.startswith("[CEL]\nVersion=3\n\n[HEADER]\nCols=2\n")
        assert "[INTENSITY]\nNumberCells=4\n" in text
        assert "... use --verbose to visualize Cell Entries ...\n" in text
        assert "[MASKS]\nNumberCells=1\n" in text
        assert "[OUTLIERS]\nNumberCells=1\n" in text
        assert text.endswith("[MODIFIED]\nNumberCells=0\nCellHeader=X\tY\tORIGMEAN\n")

    def test_verbose_cells(self) -> None:
        out = io.StringIO()
        dump_container(xda(), out, verbose=True)
        lines = out.getvalue().splitlines()

        assert "  0\t  0\t100.0\t10.0\t 16" in lines
        assert "  1\t  1\t103.0\t10.0\t 16" in lines
        assert "1\t0" in lines


class TestFormatParameter:
    """Test parameter value rendering."""

    def test_float(self) -> None:
        p = Parameter(name="x", raw=struct.pack(">f", 1.5), mime_type="text/x-calvin-float", type=ParameterType.FLOAT)
        assert format_parameter(p) == "1.500000"

    def test_empty(self) -> None:
        p = Parameter(name="x", raw=None, mime_type="text/plain", type=ParameterType.WIDE)
        assert format_parameter(p) == ""


class TestChipSummary:
    """Test tabulation of chip summary parameters."""

    def test_rows(self) -> None:
        out = io.StringIO()
        write_chip_summary([chp("a.AxiomGT1.chp"), chp("b.AxiomGT1.chp")], out)
        lines = out.getvalue().splitlines()

        assert lines[0] == "chp_files\t" + "\t".join(CHIP_SUMMARY_PARAMETERS)
        assert len(lines) == 3
        fields = lines[1].split("\t")
        assert fields[0] == "a.AxiomGT1.chp"
        assert fields[1] == "female"
        assert fields[2] == "99.50000"
        assert fields[CHIP_SUMMARY_PARAMETERS.index("pm_mean") + 1] == "2000.00000"

    def test_missing_parameter(self) -> None:
        values = dict(CHIP_SUMMARY_VALUES)
        del values["pm_mean"]

        with pytest.raises(ContainerContentError, match="pm_mean"):
            write_chip_summary([chp(params=chip_summary_parameters(values))], io.StringIO())

    def test_unsupported_parameter_type(self) -> None:
        params = chip_summary_parameters()
        params[0] = parameter("affymetrix-chipsummary-computed_gender", 1, "int32")

        with pytest.raises(ContainerContentError):
            write_chip_summary([chp(params=params)], io.StringIO())

    def test_not_calvin(self) -> None:
        with pytest.raises(ContainerContentError):
            write_chip_summary([xda()], io.StringIO())


class TestDatHeader:
    """Test DAT header extraction and parsing."""

    def test_parse(self) -> None:
        assert parse_dat_header(DAT_HEADER) == DAT_HEADER_FIELDS

    @pytest.mark.parametrize(
        "dat_header",
        [
            "  no colon anywhere",
            DAT_HEADER.replace(".1sq", ".sq"),
            DAT_HEADER.split("\x14")[0],
        ],
    )
    def test_malformed(self, dat_header: str) -> None:
        with pytest.raises(ContainerContentError):
            parse_dat_header(dat_header)

    def test_from_xda(self) -> None:
        assert cel_dat_header(xda(header_only=True)) == DAT_HEADER

    def test_from_calvin(self) -> None:
        cel = read_calvin(stream_from_bytes(calvin_cel_bytes(), name="a.CEL"))
        assert cel_dat_header(cel) == DAT_HEADER

    def test_chp_is_not_cel(self) -> None:
        with pytest.raises(ContainerContentError):
            cel_dat_header(chp())

    def test_cel_summary(self) -> None:
        out = io.StringIO()
        calvin = read_calvin(stream_from_bytes(calvin_cel_bytes(), name="b.CEL"))
        write_cel_summary([xda("a.CEL", header_only=True), calvin], out)
        lines = out.getvalue().splitlines()

        assert lines[0].startswith("cel_files\tDAT Name\tCLS\tRWS")
        assert lines[1] == "a.CEL\t" + "\t".join(DAT_HEADER_FIELDS)
        assert lines[2] == "b.CEL\t" + "\t".join(DAT_HEADER_FIELDS)
