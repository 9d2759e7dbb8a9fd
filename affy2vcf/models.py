"""Data models for affy2vcf.

Data structures shared by the iterators, the model store,
the variant assembler and the VCF writer.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum, auto
from typing import Literal

import numpy as np


class Call(IntEnum):
    """Genotype call codes used in per-sample arrays."""

    NO_CALL = -1
    AA = 0
    AB = 1
    BB = 2


class ModelDialect(Enum):
    """Layout of an SNP posterior models file."""

    BRLMM_P = auto()  # (delta, size) space, tab/comma/colon separated
    BIRDSEED = auto()  # (signal A, signal B) space, semicolon/space/hyphen separated


@dataclass(slots=True)
class Cluster:
    """Posterior of one genotype cluster.

    Attributes:
        xm: Mean in the first dimension
        xss: Variance in the first dimension
        k: Strength of the mean (pseudo-observations)
        v: Strength of the variance (pseudo-observations)
        ym: Mean in the second dimension
        yss: Variance in the second dimension
        xyss: Covariance of both dimensions
    """

    xm: float
    xss: float
    k: float
    v: float
    ym: float
    yss: float
    xyss: float

    @classmethod
    def missing(cls) -> "Cluster":
        nan = float("nan")
        return cls(nan, nan, nan, nan, nan, nan, nan)


@dataclass
class SnpModel:
    """Cluster posteriors for one probe set and copy number."""

    probe_set_id: str
    copy_number: int
    aa: Cluster
    ab: Cluster
    bb: Cluster

    @property
    def is_haploid(self) -> bool:
        return self.copy_number == 1

    def copy(self) -> "SnpModel":
        return SnpModel(
            probe_set_id=self.probe_set_id,
            copy_number=self.copy_number,
            aa=replace(self.aa),
            ab=replace(self.ab),
            bb=replace(self.bb),
        )


@dataclass(slots=True)
class ManifestRecord:
    """Marker annotation from an Affymetrix CSV manifest.

    Attributes:
        probe_set_id: Probe set identifier
        affy_snp_id: Affymetrix SNP identifier (if present)
        dbsnp_rs_id: dbSNP rsID (if present)
        chromosome: Chromosome name as written in the manifest
        position: 1-based physical position (0 when missing)
        strand: "+", "-" or None when unknown
        flank: Flank sequence with the alleles in brackets, e.g. "AC[A/G]TT"
        allele_a: Allele A
        allele_b: Allele B
    """

    probe_set_id: str
    affy_snp_id: str | None
    dbsnp_rs_id: str | None
    chromosome: str | None
    position: int
    strand: Literal["+", "-"] | None
    flank: str | None
    allele_a: str | None = None
    allele_b: str | None = None


@dataclass(slots=True)
class OrientedAlleles:
    """Alleles of one marker oriented against the reference genome.

    Attributes:
        ref_base: Reference base at the marker position
        allele_a: Allele A on the forward strand
        allele_b: Allele B on the forward strand
        allele_b_index: 0 if B is REF, 1 if A is REF, 2 if neither is
    """

    ref_base: str
    allele_a: str
    allele_b: str
    allele_b_index: int

    @property
    def allele_a_index(self) -> int:
        return 0 if self.allele_b_index == 1 else 1

    @property
    def alleles(self) -> list[str]:
        """REF followed by ALT alleles."""
        if self.allele_b_index == 0:
            return [self.allele_b, self.allele_a]
        if self.allele_b_index == 1:
            return [self.allele_a, self.allele_b]
        return [self.ref_base, self.allele_a, self.allele_b]


@dataclass
class SampleRecord:
    """Per-sample values for one probe set.

    Arrays are owned by the iterator that fills them and are overwritten on
    each step; use copy() to keep a record past the next step.
    """

    probe_set_id: str
    genotypes: np.ndarray
    confidences: np.ndarray
    norm_x: np.ndarray
    norm_y: np.ndarray
    delta: np.ndarray
    size: np.ndarray
    calls_loaded: bool = False
    confidences_loaded: bool = False
    intensities_loaded: bool = False

    @classmethod
    def allocate(cls, n_samples: int) -> "SampleRecord":
        return cls(
            probe_set_id="",
            genotypes=np.full(n_samples, Call.NO_CALL, dtype=np.int8),
            confidences=np.zeros(n_samples, dtype=np.float32),
            norm_x=np.zeros(n_samples, dtype=np.float32),
            norm_y=np.zeros(n_samples, dtype=np.float32),
            delta=np.zeros(n_samples, dtype=np.float32),
            size=np.zeros(n_samples, dtype=np.float32),
        )

    @property
    def n_samples(self) -> int:
        return len(self.genotypes)

    def copy(self) -> "SampleRecord":
        return SampleRecord(
            probe_set_id=self.probe_set_id,
            genotypes=self.genotypes.copy(),
            confidences=self.confidences.copy(),
            norm_x=self.norm_x.copy(),
            norm_y=self.norm_y.copy(),
            delta=self.delta.copy(),
            size=self.size.copy(),
            calls_loaded=self.calls_loaded,
            confidences_loaded=self.confidences_loaded,
            intensities_loaded=self.intensities_loaded,
        )


@dataclass
class VariantRecord:
    """One VCF record handed to the writer.

    Attributes:
        id: Probe set identifier
        chrom: Contig name as known to the reference
        pos: 0-based position
        alleles: REF followed by ALT alleles
        info: INFO fields in output order
        genotypes: (n_samples, 2) allele indices, -1 for missing, or None
        formats: Per-sample FORMAT arrays keyed by field id, in output order
    """

    id: str
    chrom: str
    pos: int
    alleles: list[str]
    info: dict[str, int | float | str] = field(default_factory=dict)
    genotypes: np.ndarray | None = None
    formats: dict[str, np.ndarray] = field(default_factory=dict)


@dataclass
class Statistics:
    """Running counts for one conversion.

    Attributes:
        total: Records pulled (manifest records or iterator steps)
        missing_reference: Records whose alleles could not be oriented
        missing_models: Emitted records without a cluster model
        skipped: Records without usable coordinates, strand or flank
        not_in_manifest: Table rows whose probe set is not in the manifest
        written: Records handed to the writer
    """

    total: int = 0
    missing_reference: int = 0
    missing_models: int = 0
    skipped: int = 0
    not_in_manifest: int = 0
    written: int = 0

    def summary_line(self, models_loaded: bool) -> str:
        if models_loaded:
            return (
                "Lines   total/missing-reference/missing-models/skipped:\t"
                f"{self.total}/{self.missing_reference}/{self.missing_models}/{self.skipped}"
            )
        return (
            "Lines   total/missing-reference/skipped:\t"
            f"{self.total}/{self.missing_reference}/{self.skipped}"
        )
