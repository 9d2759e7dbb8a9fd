"""Allele orientation against the reference genome.

Manifest flanks list the two alleles of a marker in brackets, e.g.
"TGCA[A/G]CCTA", on the strand given by the Strand column. Markers on the
minus strand are reverse complemented so that both alleles are expressed on
the forward strand, keeping allele A first.

The reference base at the marker decides which allele is REF:
1. Reference matches allele A - allele B index 1, alleles A,B
2. Reference matches allele B - allele B index 0, alleles B,A
3. Reference matches neither - allele B index 2, alleles REF,A,B
"""

from affy2vcf.errors import OrientationError
from affy2vcf.models import ManifestRecord, OrientedAlleles
from affy2vcf.reference import ReferenceGenome
from affy2vcf.utils import is_indel_flank, reverse_complement


def split_flank(flank: str) -> tuple[str, str]:
    """Extract the bracketed alleles of a flank sequence.

    Raises:
        OrientationError: If the flank has no "[A/B]" section

    Example:
        >>> split_flank("TGCA[A/G]CCTA")
        ("A", "G")
    """
    left = flank.find("[")
    middle = flank.find("/", left + 1)
    right = flank.find("]", middle + 1)
    if left < 0 or middle < 0 or right < 0:
        raise OrientationError(f"Flank sequence is malformed: {flank}")
    return flank[left + 1:middle], flank[middle + 1:right]


def allele_b_index(ref_base: str, allele_a: str, allele_b: str) -> int:
    """Position of allele B among the VCF alleles.

    Example:
        >>> allele_b_index("G", "A", "G")
        0
    """
    if ref_base == allele_a:
        return 1
    if ref_base == allele_b:
        return 0
    return 2


def orient_alleles(
    record: ManifestRecord,
    contig: str,
    pos: int,
    reference: ReferenceGenome,
) -> OrientedAlleles:
    """Orient the alleles of a marker on the forward strand.

    Args:
        record: Manifest record with strand and flank
        contig: Contig name as known to the reference
        pos: 0-based position of the marker
        reference: Reference genome to read the REF base from

    Returns:
        OrientedAlleles with the forward strand alleles and allele B index

    Raises:
        OrientationError: If the marker is an indel or the flank is malformed
    """
    if not record.flank:
        raise OrientationError(f"No flank sequence for Probe Set {record.probe_set_id}")

    flank = record.flank.upper()
    if is_indel_flank(flank):
        raise OrientationError(f"Unable to determine alleles for indel {record.probe_set_id}")

    allele_a, allele_b = split_flank(flank)
    if record.strand == "-":
        allele_a = reverse_complement(allele_a)
        allele_b = reverse_complement(allele_b)

    ref_base = reference.fetch_base(contig, pos)
    return OrientedAlleles(
        ref_base=ref_base,
        allele_a=allele_a,
        allele_b=allele_b,
        allele_b_index=allele_b_index(ref_base, allele_a, allele_b),
    )
