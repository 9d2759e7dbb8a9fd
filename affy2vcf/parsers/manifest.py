"""Affymetrix CSV manifest (annotation file) parser.

Annotation files start with "#%" metadata lines followed by a quoted CSV
header; missing values are written as "---":

#%netaffx-annotation-tabular-format-version=1.0
"Probe Set ID","Affy SNP ID","dbSNP RS ID","Chromosome","Physical Position",...
"SNP_A-1780419","AFFX-SNP_10000979","rs6576700","1","84875173","-",...
"""

import logging
from collections.abc import Iterator
from pathlib import Path

import pandas as pd

from affy2vcf.errors import ManifestError
from affy2vcf.io_utils import iter_lines, smart_open
from affy2vcf.models import ManifestRecord

logger = logging.getLogger(__name__)

NULL_VALUE = "---"

PROBE_SET_ID = "Probe Set ID"
AFFY_SNP_ID = "Affy SNP ID"
DBSNP_RS_ID = "dbSNP RS ID"
CHROMOSOME = "Chromosome"
POSITION = "Physical Position"
STRAND = "Strand"
FLANK = "Flank"
ALLELE_A = "Allele A"
ALLELE_B = "Allele B"

REQUIRED_COLUMNS = (FLANK, ALLELE_A, ALLELE_B, DBSNP_RS_ID, CHROMOSOME, POSITION, STRAND)


class Manifest:
    """Manifest records in file order with lookup by probe set.

    Attributes:
        path: File the manifest was read from
        records: Records in file order
    """

    def __init__(self, records: list[ManifestRecord], path: Path | None = None) -> None:
        self.path = path
        self.records = records
        self._index: dict[str, int] = {}
        for i, record in enumerate(records):
            self._index.setdefault(record.probe_set_id, i)

    def get(self, probe_set_id: str) -> ManifestRecord | None:
        idx = self._index.get(probe_set_id)
        return self.records[idx] if idx is not None else None

    def __contains__(self, probe_set_id: str) -> bool:
        return probe_set_id in self._index

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ManifestRecord]:
        return iter(self.records)


def normalize_flank(flank: str, allele_a: str | None, allele_b: str | None) -> str:
    """List the alleles of a flank in A/B order.

    Some manifests write T/C and T/G SNPs as "[B/A]"; those are swapped so
    that the first bracketed allele is always allele A.

    Example:
        >>> normalize_flank("AC[G/T]TT", "T", "G")
        "AC[T/G]TT"
    """
    left = flank.find("[")
    middle = flank.find("/", left + 1)
    right = flank.find("]", middle + 1)
    if left < 0 or middle < 0 or right < 0 or allele_a is None or allele_b is None:
        return flank
    first = flank[left + 1:middle]
    second = flank[middle + 1:right]
    if first == allele_b and second == allele_a and first != second:
        return f"{flank[:left + 1]}{allele_a}/{allele_b}{flank[right:]}"
    return flank


def _count_comment_lines(filepath: Path) -> int:
    n = 0
    for line in iter_lines(filepath):
        if not line.startswith("#"):
            break
        n += 1
    return n


def _read_table(filepath: Path, skiprows: int, **kwargs) -> pd.DataFrame:
    with smart_open(filepath, "rt") as f:
        return pd.read_csv(
            f,
            skiprows=skiprows,
            dtype=str,
            keep_default_na=False,
            na_values=[NULL_VALUE],
            **kwargs,
        )


def _optional(value: object) -> str | None:
    if value is None or (isinstance(value, float) and value != value):
        return None
    return str(value)


def _strand(value: str | None) -> str | None:
    if value in ("+", "-"):
        return value
    return None


def load_manifest(filepath: Path) -> Manifest:
    """Load an Affymetrix CSV manifest.

    Args:
        filepath: Path to the annotation CSV (may be gzipped)

    Returns:
        Manifest with one record per probe set

    Raises:
        ManifestError: If "Probe Set ID" is not the first column or a
            required column is missing

    Example:
        >>> manifest = load_manifest(Path("GenomeWideSNP_6.na35.annot.csv"))
        >>> manifest.get("SNP_A-1780419").chromosome
        "1"
    """
    skiprows = _count_comment_lines(filepath)
    try:
        header = _read_table(filepath, skiprows, nrows=0)
    except pd.errors.EmptyDataError:
        raise ManifestError(f"Empty file: {filepath}") from None

    columns = list(header.columns)
    if not columns or columns[0] != PROBE_SET_ID:
        raise ManifestError(f"Probe Set ID not the first column in file: {filepath}")
    for name in REQUIRED_COLUMNS:
        if name not in columns:
            raise ManifestError(f"{name} missing from file: {filepath}")
    has_affy_snp_id = AFFY_SNP_ID in columns

    wanted = [PROBE_SET_ID, *REQUIRED_COLUMNS] + ([AFFY_SNP_ID] if has_affy_snp_id else [])
    df = _read_table(filepath, skiprows, usecols=wanted)

    positions = pd.to_numeric(df[POSITION], errors="coerce").fillna(0).astype(int)
    affy_snp_ids = df[AFFY_SNP_ID] if has_affy_snp_id else [None] * len(df)

    records: list[ManifestRecord] = []
    for probe_set_id, affy_snp_id, dbsnp, chrom, pos, strand, flank, allele_a, allele_b in zip(
        df[PROBE_SET_ID],
        affy_snp_ids,
        df[DBSNP_RS_ID],
        df[CHROMOSOME],
        positions,
        df[STRAND],
        df[FLANK],
        df[ALLELE_A],
        df[ALLELE_B],
    ):
        allele_a = _optional(allele_a)
        allele_b = _optional(allele_b)
        flank = _optional(flank)
        if flank is not None:
            flank = normalize_flank(flank, allele_a, allele_b)
        records.append(
            ManifestRecord(
                probe_set_id=str(probe_set_id),
                affy_snp_id=_optional(affy_snp_id),
                dbsnp_rs_id=_optional(dbsnp),
                chromosome=_optional(chrom),
                position=int(pos),
                strand=_strand(_optional(strand)),
                flank=flank,
                allele_a=allele_a,
                allele_b=allele_b,
            )
        )

    logger.debug(f"Loaded {len(records):,} manifest records from {filepath}")
    return Manifest(records, path=filepath)
