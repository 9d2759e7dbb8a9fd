"""Utility functions for affy2vcf.

DNA complement helpers for flank sequences and sample name handling.
"""

# Complement table for DNA bases; flank brackets swap so they stay balanced
# after reversal
_REVCOMP_TABLE = str.maketrans("ACGTNacgtn[]", "TGCANtgcan][")


def reverse_complement(sequence: str) -> str:
    """Reverse complement a sequence.

    Example:
        >>> reverse_complement("AACG")
        "CGTT"
    """
    return sequence.translate(_REVCOMP_TABLE)[::-1]


def strip_suffix(name: str, suffix: str) -> str:
    """Remove the last ".<suffix>" from a name if present.

    Example:
        >>> strip_suffix("NA12878.CEL", "CEL")
        "NA12878"
    """
    stem, dot, ext = name.rpartition(".")
    if dot and ext == suffix:
        return stem
    return name


def sample_name_from_cel(name: str) -> str:
    """Sample name from a CEL file name as listed in APT outputs."""
    return strip_suffix(name, "CEL")


def is_indel_flank(flank: str) -> bool:
    """Check whether a flank sequence describes an insertion/deletion.

    Indel flanks use "-" for the missing allele, e.g. "AC[-/TG]TT".
    """
    return "-" in flank
