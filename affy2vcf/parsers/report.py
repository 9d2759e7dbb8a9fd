"""apt-probeset-genotype report parser.

The report is tab separated with "#" metadata lines and a header whose
second column is the computed gender:

cel_files       computed_gender call_rate ...
NA12878.CEL     female          99.12     ...
"""

from dataclasses import dataclass
from pathlib import Path

from affy2vcf.errors import TableFormatError
from affy2vcf.io_utils import LineReader
from affy2vcf.utils import sample_name_from_cel

# Sex codes as used in PLINK .fam and bcftools sex files
SEX_CODES = {"male": 1, "female": 2}


@dataclass(slots=True)
class ReportEntry:
    """One sample of a report file."""

    cel_file: str
    gender: str

    @property
    def sample(self) -> str:
        return sample_name_from_cel(self.cel_file)

    @property
    def sex_code(self) -> int:
        """1 for male, 2 for female, 0 otherwise."""
        return SEX_CODES.get(self.gender, 0)


def parse_report(filepath: Path) -> list[ReportEntry]:
    """Parse the cel_files and computed_gender columns of a report.

    Raises:
        TableFormatError: If the second column is not computed_gender or a
            line has fewer than two fields
    """
    entries: list[ReportEntry] = []
    with LineReader(filepath) as reader:
        header = reader.skip_comments()
        if header is None:
            raise TableFormatError(f"Empty file: {filepath}")
        fields = header.split("\t")
        if len(fields) < 2:
            raise TableFormatError(f"Missing information in report file: {filepath}")
        if fields[1] != "computed_gender":
            raise TableFormatError(f"Second column not genders in file: {filepath}")

        for line in reader:
            if not line:
                break
            fields = line.split("\t")
            if len(fields) < 2:
                raise TableFormatError(f"Missing information in report file: {filepath}")
            entries.append(ReportEntry(cel_file=fields[0], gender=fields[1]))

    return entries


def write_sex_file(entries: list[ReportEntry], output_path: Path) -> Path:
    """Write one "<sample>\\t<sex code>" line per report entry."""
    with open(output_path, "w") as f:
        for entry in entries:
            f.write(f"{entry.sample}\t{entry.sex_code}\n")
    return output_path
