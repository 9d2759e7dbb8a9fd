"""VCF output through pysam.

Header layout:
- ##contig lines for every reference contig
- INFO ALLELE_A, ALLELE_B, DBSNP_RS_ID, AFFY_SNP_ID
- INFO cluster statistics (diploid, then haploid with a ".1" suffix) when
  models are loaded
- FORMAT GT, CONF, NORMX, NORMY, DELTA, SIZE, BAF, LRR depending on which
  inputs are loaded
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Literal

import numpy as np
import pysam

from affy2vcf.models import SnpModel, VariantRecord

logger = logging.getLogger(__name__)

GENOTYPES = ("AA", "AB", "BB")

# (INFO prefix, Cluster attribute, description template)
CLUSTER_STATISTICS = (
    ("meanX", "xm", "Mean of normalized DELTA for {gt} {ploidy} cluster"),
    ("varX", "xss", "Variance of normalized DELTA for {gt} {ploidy} cluster"),
    ("nObsMean", "k", "Number of {gt} calls in training set for {ploidy} mean"),
    ("nObsVar", "v", "Number of {gt} calls in training set for {ploidy} variance"),
    ("meanY", "ym", "Mean of normalized SIZE for {gt} {ploidy} cluster"),
    ("varY", "yss", "Variance of normalized SIZE for {gt} {ploidy} cluster"),
    ("covarXY", "xyss", "Covariance for {gt} {ploidy} cluster"),
)

HAPLOID_SUFFIX = ".1"

# --output-type to pysam write mode
WRITE_MODES = {
    "v": "w",
    "z": "wz",
    "u": "wbu",
    "b": "wb",
}

OutputType = Literal["v", "z", "u", "b"]


@dataclass(frozen=True)
class HeaderOptions:
    """Which optional header lines to write.

    Attributes:
        calls: Genotypes loaded (FORMAT GT)
        confidences: Confidences loaded (FORMAT CONF)
        intensities: Intensities loaded (FORMAT NORMX, NORMY, DELTA, SIZE)
        models: Cluster models loaded (INFO cluster statistics, and FORMAT
            BAF, LRR together with intensities)
    """

    calls: bool = False
    confidences: bool = False
    intensities: bool = False
    models: bool = False


def cluster_info_id(prefix: str, genotype: str, haploid: bool) -> str:
    return f"{prefix}_{genotype}{HAPLOID_SUFFIX if haploid else ''}"


def cluster_info(model: SnpModel, haploid: bool) -> dict[str, float]:
    """INFO fields describing the clusters of one model, in header order.

    Example:
        >>> info = cluster_info(model, haploid=False)
        >>> list(info)[:3]
        ["meanX_AA", "meanX_AB", "meanX_BB"]
    """
    clusters = (model.aa, model.ab, model.bb)
    info: dict[str, float] = {}
    for prefix, attr, _ in CLUSTER_STATISTICS:
        for genotype, cluster in zip(GENOTYPES, clusters):
            info[cluster_info_id(prefix, genotype, haploid)] = float(getattr(cluster, attr))
    return info


def build_header(
    contigs: list[tuple[str, int]],
    samples: list[str],
    options: HeaderOptions,
    extra_lines: list[str] | None = None,
) -> pysam.VariantHeader:
    """Build the VCF header for a conversion.

    Args:
        contigs: (name, length) of every reference contig
        samples: Sample names in column order
        options: Which inputs were loaded
        extra_lines: Additional "##key=value" lines (e.g. input file names)

    Returns:
        pysam VariantHeader ready for writing
    """
    header = pysam.VariantHeader()
    for name, length in contigs:
        header.contigs.add(name, length=length)

    header.info.add("ALLELE_A", 1, "Integer", "A allele")
    header.info.add("ALLELE_B", 1, "Integer", "B allele")
    header.info.add("DBSNP_RS_ID", 1, "String", "dbSNP RS ID")
    header.info.add("AFFY_SNP_ID", 1, "String", "Affymetrix SNP ID")

    if options.models:
        for haploid, ploidy in ((False, "diploid"), (True, "haploid")):
            for prefix, _, description in CLUSTER_STATISTICS:
                for genotype in GENOTYPES:
                    header.info.add(
                        cluster_info_id(prefix, genotype, haploid),
                        1,
                        "Float",
                        description.format(gt=genotype, ploidy=ploidy),
                    )

    if options.calls:
        header.formats.add("GT", 1, "String", "Genotype")
    if options.confidences:
        header.formats.add("CONF", 1, "Float", "Genotype confidences")
    if options.intensities:
        header.formats.add("NORMX", 1, "Float", "Normalized X intensity")
        header.formats.add("NORMY", 1, "Float", "Normalized Y intensity")
        header.formats.add("DELTA", 1, "Float", "Normalized contrast value")
        header.formats.add("SIZE", 1, "Float", "Normalized size value")
    if options.intensities and options.models:
        header.formats.add("BAF", 1, "Float", "B Allele Frequency")
        header.formats.add("LRR", 1, "Float", "Log R Ratio")

    for line in extra_lines or []:
        header.add_line(line)

    for sample in samples:
        header.add_sample(sample)

    return header


def version_lines(version: str, command: str) -> list[str]:
    """Header lines recording the program version and its command line.

    Example:
        >>> version_lines("1.0.0", "affy2vcf -c annot.csv")[0]
        "##affy2vcfVersion=1.0.0+pysam-0.22.0"
    """
    return [
        f"##affy2vcfVersion={version}+pysam-{pysam.__version__}",
        f"##affy2vcfCommand={command}; Date={time.asctime()}",
    ]


def _genotype_tuple(pair: np.ndarray) -> tuple[int | None, int | None]:
    a, b = int(pair[0]), int(pair[1])
    return (a if a >= 0 else None, b if b >= 0 else None)


class VcfWriter:
    """Append-only VCF/BCF sink.

    Usage:
        with VcfWriter(header, output=Path("out.vcf.gz"), output_type="z") as writer:
            for variant in variants:
                writer.write(variant)
    """

    def __init__(
        self,
        header: pysam.VariantHeader,
        output: Path | None = None,
        output_type: OutputType = "v",
        threads: int = 0,
    ) -> None:
        """Open the output and write the header.

        Args:
            header: Header from build_header()
            output: Output file, or None for standard output
            output_type: "v" plain VCF, "z" bgzip-compressed VCF, "u" uncompressed
                BCF, "b" compressed BCF
            threads: Extra compression threads
        """
        self.output = output
        # pysam counts the calling thread
        self._vcf = pysam.VariantFile(
            str(output) if output is not None else "-",
            WRITE_MODES[output_type],
            header=header,
            threads=threads + 1,
        )
        self.samples = list(header.samples)
        self.records_written = 0

    @property
    def header(self) -> pysam.VariantHeader:
        return self._vcf.header

    def write(self, variant: VariantRecord) -> None:
        """Serialize one record.

        Raises:
            ValueError: If the record names a contig or field missing from
                the header
        """
        record = self._vcf.new_record(
            contig=variant.chrom,
            start=variant.pos,
            stop=variant.pos + len(variant.alleles[0]),
            alleles=variant.alleles,
            id=variant.id,
        )
        for key, value in variant.info.items():
            record.info[key] = value

        if self.samples:
            if variant.genotypes is not None:
                for i, pair in enumerate(variant.genotypes):
                    record.samples[i]["GT"] = _genotype_tuple(pair)
            for key, values in variant.formats.items():
                for i, value in enumerate(values.tolist()):
                    record.samples[i][key] = value

        self._vcf.write(record)
        self.records_written += 1

    def close(self) -> None:
        self._vcf.close()

    def __enter__(self) -> "VcfWriter":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
