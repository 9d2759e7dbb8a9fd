"""Text renderings of CEL and CHP containers.

- dump_calvin: "#%key=value" metadata, data set headers and (verbose)
  Genotype rows of a Calvin file
- dump_xda: text CEL version 3 layout of an XDA CEL file
- write_chip_summary: one row of chip summary parameters per CHP file
- write_cel_summary: one row of DAT header fields per CEL file
"""

from collections.abc import Callable, Sequence
from typing import TextIO

from affy2vcf.errors import ContainerContentError
from affy2vcf.formats import Container
from affy2vcf.formats.calvin import (
    CalvinFile,
    DataGroup,
    DataSet,
    MetadataHeader,
    Parameter,
    ParameterType,
)
from affy2vcf.formats.cursor import RowCursor
from affy2vcf.formats.xda import XdaCel

CHIP_SUMMARY_PREFIX = "affymetrix-chipsummary-"

CHIP_SUMMARY_PARAMETERS = (
    "computed_gender",
    "call_rate",
    "total_call_rate",
    "het_rate",
    "total_het_rate",
    "hom_rate",
    "total_hom_rate",
    "cluster_distance_mean",
    "cluster_distance_stdev",
    "allele_summarization_mean",
    "allele_summarization_stdev",
    "allele_deviation_mean",
    "allele_deviation_stdev",
    "allele_mad_residuals_mean",
    "allele_mad_residuals_stdev",
    "cn-probe-chrXY-ratio_gender_meanX",
    "cn-probe-chrXY-ratio_gender_meanY",
    "cn-probe-chrXY-ratio_gender_ratio",
    "cn-probe-chrXY-ratio_gender",
    "pm_mean",
)

CEL_SUMMARY_COLUMNS = (
    "DAT Name",
    "CLS",
    "RWS",
    "XIN",
    "YIN",
    "VE",
    "Temp",
    "Power",
    "Date",
    "Scanner",
    "Num",
    "ChipType",
)

CEL_DATA_TYPE = "affymetrix-calvin-intensity"
SCAN_ACQUISITION_DATA_TYPE = "affymetrix-calvin-scan-acquisition"
PARTIAL_DAT_HEADER = "affymetrix-partial-dat-header"

# Two-character rendering of a call code, indexed by its low nibble
_CALL_FIRST = "......ABA..N...."
_CALL_SECOND = "......ABB..C...."


# =============================================================================
# Calvin
# =============================================================================


def format_parameter(parameter: Parameter) -> str:
    """Render a parameter value as in the metadata dump."""
    value = parameter.value
    if value is None:
        return ""
    if parameter.type is ParameterType.FLOAT:
        return "%f" % value
    return str(value)


def _write_parameters(parameters: list[Parameter], out: TextIO) -> None:
    for parameter in parameters:
        out.write(f"#%{parameter.name or ''}={format_parameter(parameter)}\n")


def _write_metadata_header(header: MetadataHeader, out: TextIO) -> None:
    if header.guid:
        out.write(f"#%FileIdentifier={header.guid}\n")
    out.write(f"#%FileTypeIdentifier={header.data_type_id}\n")
    out.write(f"#%FileLocale={header.locale or ''}\n")
    _write_parameters(header.parameters, out)
    for parent in header.parents:
        _write_metadata_header(parent, out)


def _format_call(value: int | float | str) -> str:
    code = int(value) & 0x0F
    return _CALL_FIRST[code] + _CALL_SECOND[code]


def _format_float(value: int | float | str) -> str:
    return "%g" % value


_COLUMN_FORMATTERS: dict[str, Callable[[int | float | str], str]] = {
    "ProbeSetName": str,
    "Call": _format_call,
    "Confidence": _format_float,
    "Log Ratio": _format_float,
    "Strength": _format_float,
    "Signal A": _format_float,
    "Signal B": _format_float,
    "Forced Call": _format_call,
}


def _write_data_set(data_set: DataSet, container: CalvinFile, out: TextIO, verbose: bool) -> None:
    out.write(f"#%SetName={data_set.name}\n")
    out.write(f"#%Columns={len(data_set.columns)}\n")
    out.write(f"#%Rows={data_set.row_count}\n")
    _write_parameters(data_set.parameters, out)
    out.write("\t".join(data_set.column_names) + "\n")
    if data_set.row_count == 0:
        return

    if not verbose:
        out.write("... use --verbose to visualize Data Set ...\n")
        return
    if data_set.name != "Genotype":
        out.write("... can only visualize Genotype Data Set ...\n")
        return

    formatters = []
    for column in data_set.columns:
        formatter = _COLUMN_FORMATTERS.get(column.name)
        if formatter is None:
            raise ContainerContentError(
                f"Unknown column type {column.name} in AGCC CHP file with type {int(column.type)}"
            )
        formatters.append(formatter)

    cursor = RowCursor(data_set, container.stream)
    for row in cursor:
        out.write("\t".join(fmt(row[j]) for j, fmt in enumerate(formatters)) + "\n")


def _write_data_group(group: DataGroup, container: CalvinFile, out: TextIO, verbose: bool) -> None:
    out.write(f"#%GroupName={group.name}\n")
    for data_set in group.data_sets:
        _write_data_set(data_set, container, out, verbose)


def dump_calvin(container: CalvinFile, out: TextIO, verbose: bool = False) -> None:
    """Print the structure of a Calvin file.

    Rows are only printed in verbose mode and only for the Genotype data
    set of CHP files.
    """
    out.write(f"#%File={container.path}\n")
    out.write(f"#%FileSize={container.size}\n")
    out.write(f"#%Magic={container.magic}\n")
    out.write(f"#%Version={container.version}\n")
    _write_metadata_header(container.header, out)
    for group in container.groups:
        _write_data_group(group, container, out, verbose)


# =============================================================================
# XDA
# =============================================================================


def dump_xda(cel: XdaCel, out: TextIO, verbose: bool = False) -> None:
    """Print an XDA CEL file in the text CEL version 3 layout."""
    out.write("[CEL]\n")
    out.write("Version=3\n")
    out.write("\n[HEADER]\n")
    out.write(cel.header)
    out.write("\n[INTENSITY]\n")
    out.write(f"NumberCells={cel.cell_count}\n")
    out.write("CellHeader=X\tY\tMEAN\tSTDV\tNPIXELS\n")
    if not verbose:
        out.write("... use --verbose to visualize Cell Entries ...\n")
    else:
        for i, (mean, stdev, pixels) in enumerate(cel.cells.tolist()):
            out.write(
                "%3d\t%3d\t%.1f\t%.1f\t%3d\n" % (i % cel.cols, i // cel.cols, mean, stdev, pixels)
            )

    for section, label, coords in (
        ("MASKS", "Masked", cel.masked),
        ("OUTLIERS", "Outlier", cel.outliers),
    ):
        out.write(f"\n[{section}]\n")
        out.write(f"NumberCells={cel.masked_count if section == 'MASKS' else cel.outlier_count}\n")
        out.write("CellHeader=X\tY\n")
        if not verbose:
            out.write(f"... use --verbose to visualize {label} Entries ...\n")
        else:
            for x, y in coords.tolist():
                out.write(f"{x}\t{y}\n")

    out.write("\n[MODIFIED]\n")
    out.write("NumberCells=0\n")
    out.write("CellHeader=X\tY\tORIGMEAN\n")


def dump_container(container: Container, out: TextIO, verbose: bool = False) -> None:
    """Print a single container in its native text rendering."""
    if isinstance(container, XdaCel):
        dump_xda(container, out, verbose)
    else:
        dump_calvin(container, out, verbose)


# =============================================================================
# Multi-file summaries
# =============================================================================


def _chip_summary_value(container: CalvinFile, name: str) -> str:
    parameter = container.header.find_parameter(CHIP_SUMMARY_PREFIX + name)
    if parameter is None:
        raise ContainerContentError(
            f"AGCC CHP file {container.path} is missing parameter {CHIP_SUMMARY_PREFIX}{name}"
        )
    if parameter.type is ParameterType.FLOAT:
        return "%.5f" % parameter.value
    if parameter.type is ParameterType.ASCII:
        return str(parameter.value or "")
    raise ContainerContentError(
        f"Unable to print parameter of type {parameter.mime_type} "
        f"from {container.path} AGCC CHP file"
    )


def write_chip_summary(containers: Sequence[Container], out: TextIO) -> None:
    """Tabulate the chip summary parameters of several CHP files.

    Raises:
        ContainerContentError: If a file is not a Calvin CHP or lacks a
            chip summary parameter
    """
    out.write("chp_files\t" + "\t".join(CHIP_SUMMARY_PARAMETERS) + "\n")
    for container in containers:
        if not isinstance(container, CalvinFile):
            raise ContainerContentError(f"File {container.path} is not an AGCC CHP file")
        values = [_chip_summary_value(container, name) for name in CHIP_SUMMARY_PARAMETERS]
        out.write(container.file_name + "\t" + "\t".join(values) + "\n")


def _fixed_field(s: str, start: int, width: int) -> str:
    return s[start:start + width].rstrip()


def parse_dat_header(dat_header: str) -> list[str]:
    """Split a DAT header into its twelve fixed and delimited fields.

    Field layout follows affxparser's parseDatHeaderString: a name up to
    ":", eight fixed-width scan parameters, the scan date, the scanner id
    and the chip type before ".1sq". Fields are separated by "\\x14 ".

    Returns:
        DAT name, CLS, RWS, XIN, YIN, VE, temperature, laser power, date,
        scanner, scanner number and chip type

    Raises:
        ContainerContentError: If a delimiter is missing
    """
    def malformed() -> ContainerContentError:
        return ContainerContentError("DAT header malformed")

    pos = 2
    colon = dat_header.find(":", pos)
    if colon < 0:
        raise malformed()
    fields = [dat_header[pos:colon]]

    pos = colon + 5
    for step, width in ((0, 5), (9, 5), (9, 3), (7, 3), (6, 3), (3, 7), (7, 4), (4, 18)):
        pos += step
        fields.append(_fixed_field(dat_header, pos, width))

    pos += 18
    space = dat_header.find(" ", pos)
    if space < 0:
        raise malformed()
    fields.append(dat_header[pos:space])

    pos = space + 2
    separator = dat_header.find("\x14 ", pos)
    if separator < 0:
        raise malformed()
    fields.append(dat_header[pos:separator].rstrip())

    pos = separator + 2
    separator = dat_header.find("\x14 ", pos)
    if separator < 0:
        raise malformed()
    pos = separator + 2
    end = dat_header.find(".1sq", pos)
    if end < 0:
        raise malformed()
    fields.append(dat_header[pos:end])

    return fields


def cel_dat_header(container: Container) -> str:
    """Extract the DAT header of a Calvin or XDA CEL file.

    Raises:
        ContainerContentError: If the file is not a CEL file or has no DAT header
    """
    if isinstance(container, XdaCel):
        dat_header = container.dat_header
        if dat_header is None:
            raise ContainerContentError(f"XDA CEL file {container.path} is missing DAT header")
        return dat_header

    if container.header.data_type_id != CEL_DATA_TYPE:
        raise ContainerContentError(
            f"AGCC CEL file {container.path} does not contain calvin intensities"
        )
    parents = container.header.parents
    if not parents or parents[0].data_type_id != SCAN_ACQUISITION_DATA_TYPE:
        raise ContainerContentError(
            f"AGCC CEL file {container.path} is missing scan acquisition information"
        )
    parameter = parents[0].find_parameter(PARTIAL_DAT_HEADER)
    if parameter is None or parameter.value is None:
        raise ContainerContentError(f"AGCC CEL file {container.path} is missing DAT header")
    return str(parameter.value)


def write_cel_summary(containers: Sequence[Container], out: TextIO) -> None:
    """Tabulate the DAT header fields of several CEL files."""
    out.write("cel_files\t" + "\t".join(CEL_SUMMARY_COLUMNS) + "\n")
    for container in containers:
        fields = parse_dat_header(cel_dat_header(container))
        out.write(container.file_name + "\t" + "\t".join(fields) + "\n")
