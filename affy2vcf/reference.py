"""Reference genome access.

Markers are placed against an indexed FASTA read through pysam. Manifests
name chromosomes in several ways ("1", "chr1", "X", "23", "MT", "M"), so
contig names are resolved flexibly against the FASTA index.
"""

import logging
from pathlib import Path
from typing import Protocol

import pysam

logger = logging.getLogger(__name__)

# Numeric and pseudo-autosomal chromosome codes used by Affymetrix manifests
CHROMOSOME_ALIASES: dict[str, str] = {
    "23": "X",
    "XX": "X",
    "XY": "X",
    "PAR": "X",
    "25": "X",
    "24": "Y",
    "26": "MT",
    "M": "MT",
}


class ReferenceGenome(Protocol):
    """What the variant assembler needs from a reference genome."""

    @property
    def contigs(self) -> list[tuple[str, int]]: ...

    def resolve_contig(self, name: str | None) -> str | None: ...

    def fetch_base(self, contig: str, pos: int) -> str: ...


def contig_candidates(name: str) -> list[str]:
    """List the contig names a manifest chromosome may appear as.

    Example:
        >>> contig_candidates("23")
        ["23", "chr23", "X", "chrX"]
    """
    bare = name[3:] if name.startswith("chr") else name
    candidates = [name, bare, f"chr{bare}"]
    alias = CHROMOSOME_ALIASES.get(bare)
    if alias is not None:
        candidates += [alias, f"chr{alias}"]
    if alias == "MT" or bare == "MT":
        candidates += ["M", "chrM"]
    return list(dict.fromkeys(candidates))


class FastaReference:
    """Indexed FASTA reference backed by pysam.FastaFile.

    Attributes:
        path: FASTA file (a .fai index is built by pysam if missing)
    """

    def __init__(self, filepath: Path) -> None:
        self.path = Path(filepath)
        self._fasta = pysam.FastaFile(str(self.path))
        self._lengths = dict(zip(self._fasta.references, self._fasta.lengths))
        self._resolved: dict[str, str | None] = {}
        logger.debug(f"Opened reference {self.path} with {len(self._lengths):,} contigs")

    @property
    def contigs(self) -> list[tuple[str, int]]:
        """(name, length) of every contig in FASTA order."""
        return list(zip(self._fasta.references, self._fasta.lengths))

    def resolve_contig(self, name: str | None) -> str | None:
        """Return the FASTA contig matching a manifest chromosome, if any."""
        if not name:
            return None
        if name not in self._resolved:
            match = None
            for candidate in contig_candidates(name):
                if candidate in self._lengths:
                    match = candidate
                    break
            self._resolved[name] = match
        return self._resolved[name]

    def fetch_base(self, contig: str, pos: int) -> str:
        """Upper-case base at a 0-based position ("N" outside the contig)."""
        if pos < 0 or pos >= self._lengths.get(contig, 0):
            return "N"
        return self._fasta.fetch(contig, pos, pos + 1).upper() or "N"

    def close(self) -> None:
        self._fasta.close()

    def __enter__(self) -> "FastaReference":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
