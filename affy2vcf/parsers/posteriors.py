"""SNP posterior models parser.

Two layouts written by apt-probeset-genotype are accepted.

brlmm-p / AxiomGT1 (tab separated, header "id BB AB AA CV"):
    id                  BB                          AB      AA      CV
    AX-11086525         -1.9,0.02,84,84,10.9,0.04,0.003    ...     ...     ...
    AX-11086525:1       ...  (copy number 1 model)

Each cluster lists xm, xss, k, v, ym, yss, xyss in (delta, size) space.

birdseed (no tabs, ";" between clusters, " " between fields):
    SNP_A-1780419;1234.5 567.8 100.2 20.1 30.5 15;...;...
    SNP_A-1780419-1;AA-cluster;BB-cluster

Each cluster lists xm, ym, xss, xyss, yss, k in (signal A, signal B) space,
in the order AA, AB, BB; haploid models omit AB.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from affy2vcf.errors import ModelFormatError
from affy2vcf.io_utils import LineReader
from affy2vcf.models import Cluster, ModelDialect, SnpModel

logger = logging.getLogger(__name__)

BRLMMP_HEADER = "id\tBB\tAB\tAA\tCV"

DIPLOID = 2


@dataclass(frozen=True)
class _Separators:
    cluster: str
    field: str
    copy_number: str
    n_fields: int


_SEPARATORS = {
    ModelDialect.BRLMM_P: _Separators(cluster="\t", field=",", copy_number=":", n_fields=7),
    ModelDialect.BIRDSEED: _Separators(cluster=";", field=" ", copy_number="-", n_fields=6),
}


@dataclass
class ModelStore:
    """Cluster models indexed by probe set, in one bucket per ploidy.

    Attributes:
        dialect: Layout of the file the models were read from
        diploid: Models with copy number 2 (or no copy number)
        haploid: Models with any other copy number
    """

    dialect: ModelDialect
    diploid: dict[str, SnpModel] = field(default_factory=dict)
    haploid: dict[str, SnpModel] = field(default_factory=dict)

    @property
    def is_birdseed(self) -> bool:
        return self.dialect is ModelDialect.BIRDSEED

    def add(self, model: SnpModel) -> None:
        """Index a model.

        Raises:
            ModelFormatError: If the probe set already has a model of that ploidy
        """
        bucket = self.diploid if model.copy_number == DIPLOID else self.haploid
        if model.probe_set_id in bucket:
            raise ModelFormatError(
                f"Duplicate model for probeset {model.probe_set_id} "
                f"with copy number {model.copy_number}"
            )
        bucket[model.probe_set_id] = model

    def get(self, probe_set_id: str, ploidy: int) -> SnpModel | None:
        bucket = self.diploid if ploidy == DIPLOID else self.haploid
        return bucket.get(probe_set_id)

    def lookup(self, probe_set_id: str) -> SnpModel | None:
        """Return the diploid model if any, else the haploid one."""
        model = self.diploid.get(probe_set_id)
        if model is None:
            model = self.haploid.get(probe_set_id)
        return model

    def __len__(self) -> int:
        return len(self.diploid) + len(self.haploid)

    def __contains__(self, probe_set_id: str) -> bool:
        return probe_set_id in self.diploid or probe_set_id in self.haploid


def split_copy_number(name: str, separator: str) -> tuple[str, int]:
    """Split an optional copy number suffix off a probe set name.

    Example:
        >>> split_copy_number("AX-11086525:1", ":")
        ("AX-11086525", 1)
        >>> split_copy_number("AX-11086525", ":")
        ("AX-11086525", 2)
    """
    if len(name) > 2 and name[-2] == separator and name[-1].isdigit():
        return name[:-2], int(name[-1])
    return name, DIPLOID


def _parse_cluster(text: str, seps: _Separators, dialect: ModelDialect, line: str) -> Cluster:
    parts = text.split(seps.field)
    if len(parts) < seps.n_fields:
        raise ModelFormatError(f"Missing information for probeset {line} in SNP posterior models file")
    try:
        values = [float(x) for x in parts[:seps.n_fields]]
    except ValueError:
        raise ModelFormatError(f"Invalid cluster value for probeset {line} in SNP posterior models file") from None

    if dialect is ModelDialect.BRLMM_P:
        xm, xss, k, v, ym, yss, xyss = values
    else:
        xm, ym, xss, xyss, yss, k = values
        v = k
    return Cluster(xm=xm, xss=xss, k=k, v=v, ym=ym, yss=yss, xyss=xyss)


def parse_model_line(line: str, dialect: ModelDialect) -> SnpModel:
    """Parse one data line into a SnpModel.

    Raises:
        ModelFormatError: If clusters or cluster fields are missing
    """
    seps = _SEPARATORS[dialect]
    columns = line.split(seps.cluster)
    probe_set_id, copy_number = split_copy_number(columns[0], seps.copy_number)

    no_ab = dialect is ModelDialect.BIRDSEED and copy_number == 1
    if len(columns) < (3 if no_ab else 4):
        raise ModelFormatError(f"Missing information for probeset {line} in SNP posterior models file")

    if dialect is ModelDialect.BRLMM_P:
        bb = _parse_cluster(columns[1], seps, dialect, line)
        ab = _parse_cluster(columns[2], seps, dialect, line)
        aa = _parse_cluster(columns[3], seps, dialect, line)
    else:
        aa = _parse_cluster(columns[1], seps, dialect, line)
        if no_ab:
            ab = Cluster.missing()
            bb = _parse_cluster(columns[2], seps, dialect, line)
        else:
            ab = _parse_cluster(columns[2], seps, dialect, line)
            bb = _parse_cluster(columns[3], seps, dialect, line)

    return SnpModel(probe_set_id=probe_set_id, copy_number=copy_number, aa=aa, ab=ab, bb=bb)


def load_models(filepath: Path) -> ModelStore:
    """Load an SNP posterior models file.

    Args:
        filepath: Path to the posteriors file (may be gzipped)

    Returns:
        ModelStore with every model indexed by probe set and ploidy

    Raises:
        ModelFormatError: If the layout is not recognised or a line is malformed

    Example:
        >>> store = load_models(Path("AxiomGT1.snp-posteriors.txt"))
        >>> store.lookup("AX-11086525").aa.xm
        -1.93
    """
    with LineReader(filepath) as reader:
        first = reader.skip_comments()
        if first is None:
            raise ModelFormatError(f"Empty file: {filepath}")

        if first == BRLMMP_HEADER:
            dialect = ModelDialect.BRLMM_P
            first = reader.readline()
            if first is None:
                raise ModelFormatError(f"Missing information in SNP models file: {filepath}")
        elif "\t" not in first:
            dialect = ModelDialect.BIRDSEED
        else:
            raise ModelFormatError(f"Malformed SNP model file: {filepath}")

        store = ModelStore(dialect=dialect)
        line: str | None = first
        while line:
            store.add(parse_model_line(line, dialect))
            line = reader.readline()

    logger.debug(
        f"Loaded {len(store.diploid):,} diploid and {len(store.haploid):,} "
        f"haploid models from {filepath}"
    )
    return store
