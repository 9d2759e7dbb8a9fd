"""Output writers for VCF records, container dumps and run summaries."""

from affy2vcf.writers.vcf import HeaderOptions, VcfWriter, build_header

__all__ = ["HeaderOptions", "VcfWriter", "build_header"]
