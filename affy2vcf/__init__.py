"""
affy2vcf: Affymetrix genotype data to VCF.

Reads Calvin (AGCC) and XDA CEL/CHP containers and apt-probeset-genotype
text outputs, and writes VCF records with genotypes, confidences,
normalized intensities, cluster statistics and BAF/LRR.
"""

__version__ = "1.0.0"
__author__ = "Data Tecnica International"
