"""Parsers for apt-probeset-genotype text outputs and Affymetrix manifests."""

from affy2vcf.parsers.manifest import Manifest, load_manifest
from affy2vcf.parsers.posteriors import ModelStore, load_models
from affy2vcf.parsers.report import ReportEntry, parse_report, write_sex_file
from affy2vcf.parsers.tables import TableSampleIterator

__all__ = [
    "Manifest",
    "ModelStore",
    "ReportEntry",
    "TableSampleIterator",
    "load_manifest",
    "load_models",
    "parse_report",
    "write_sex_file",
]
