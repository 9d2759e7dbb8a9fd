"""Pytest fixtures for affy2vcf tests."""

from pathlib import Path

import pytest

from builders import chp_bytes

from affy2vcf.logging_config import reset_logging

# Rows of the two synthetic CHP files:
# (probe set, call, confidence, log ratio, strength)
CHP_ROWS = {
    "sample1": [
        ("AX-1", "AA", 0.01, 2.0, 10.0),
        ("AX-2", "BB", 0.02, -2.0, 10.0),
        ("AX-3", "AB", 0.03, 0.0, 10.5),
        ("AX-4", "NC", 0.5, 0.1, 9.0),
    ],
    "sample2": [
        ("AX-1", "AB", 0.01, 0.0, 10.5),
        ("AX-2", "AA", 0.02, 2.0, 10.0),
        ("AX-3", "BB", 0.04, -2.0, 10.0),
        ("AX-4", "AA", 0.1, 2.0, 10.0),
    ],
}

# brlmm-p clusters in (delta, size) space: xm,xss,k,v,ym,yss,xyss
AA_CLUSTER = "2.0,0.05,50,50,10.0,0.1,0.01"
AB_CLUSTER = "0.0,0.05,40,40,10.5,0.1,0.01"
BB_CLUSTER = "-2.0,0.05,30,30,10.0,0.1,0.01"
CV = "0.1,0.2,0.3,0.4"


@pytest.fixture(autouse=True)
def clean_logging():
    """Drop handlers installed by setup_logging() after each test."""
    yield
    reset_logging()


@pytest.fixture
def reference_fasta(tmp_path: Path) -> Path:
    """Two-contig reference genome.

    chr1 (60 bp): ACGT repeated, so position p holds "ACGT"[(p - 1) % 4]
    chrX (40 bp): GGGGCCCCTT repeated, position 5 is C
    """
    fasta = tmp_path / "ref.fa"
    fasta.write_text(
        ">chr1\n"
        + "ACGT" * 15 + "\n"
        + ">chrX\n"
        + "GGGGCCCCTT" * 4 + "\n"
    )
    return fasta


@pytest.fixture
def manifest_csv(tmp_path: Path) -> Path:
    """Annotation CSV covering each orientation outcome.

    - AX-1: chr1:1 plus strand, REF is allele A
    - AX-2: chr1:2 plus strand, REF is allele B
    - AX-3: chromosome 23 (chrX:5) minus strand, REF matches neither allele
    - AX-4: no coordinates -> skipped
    - AX-5: indel -> missing reference
    """
    csv = tmp_path / "Axiom_test.na36.annot.csv"
    csv.write_text(
        "#%create_date=Tue Jan 01 00:00:00 2019\n"
        "#%genome-version=GRCh38\n"
        '"Probe Set ID","Affy SNP ID","dbSNP RS ID","Chromosome","Physical Position",'
        '"Strand","Flank","Allele A","Allele B"\n'
        '"AX-1","Affx-1","rs1","1","1","+","NN[A/G]CG","A","G"\n'
        '"AX-2","Affx-2","rs2","1","2","+","AA[T/C]GT","T","C"\n'
        '"AX-3","Affx-3","---","23","5","-","AA[C/T]GG","C","T"\n'
        '"AX-4","Affx-4","---","---","---","---","GG[A/C]TT","A","C"\n'
        '"AX-5","Affx-5","rs5","1","10","+","AC[-/TG]TT","-","TG"\n'
    )
    return csv


@pytest.fixture
def posteriors_file(tmp_path: Path) -> Path:
    """brlmm-p posteriors: AX-1 diploid, AX-3 diploid and haploid, AX-2 absent."""
    models = tmp_path / "AxiomGT1.snp-posteriors.txt"
    models.write_text(
        "#%SnpPosteriorFormatVer=1.0\n"
        "id\tBB\tAB\tAA\tCV\n"
        f"AX-1\t{BB_CLUSTER}\t{AB_CLUSTER}\t{AA_CLUSTER}\t{CV}\n"
        f"AX-3\t{BB_CLUSTER}\t{AB_CLUSTER}\t{AA_CLUSTER}\t{CV}\n"
        f"AX-3:1\t{BB_CLUSTER}\t{AB_CLUSTER}\t{AA_CLUSTER}\t{CV}\n"
    )
    return models


@pytest.fixture
def birdseed_models_file(tmp_path: Path) -> Path:
    """birdseed posteriors in (signal A, signal B) space: xm ym xss xyss yss k."""
    models = tmp_path / "birdseed-v2.snp-posteriors.txt"
    models.write_text(
        "SNP_A-1780419;1000 200 10 1 20 50;600 600 10 1 20 40;200 1000 10 1 20 30\n"
        "SNP_A-1780420-1;1000 200 10 1 20 50;200 1000 10 1 20 30\n"
    )
    return models


def write_chp_dir(directory: Path, encoding: str = "log_ratio") -> Path:
    directory.mkdir(exist_ok=True)
    for sample, rows in CHP_ROWS.items():
        (directory / f"{sample}.AxiomGT1.chp").write_bytes(chp_bytes(rows, encoding))
    return directory


@pytest.fixture
def chp_dir(tmp_path: Path) -> Path:
    """Directory with sample1.AxiomGT1.chp and sample2.AxiomGT1.chp."""
    return write_chp_dir(tmp_path / "cc-chp")


@pytest.fixture
def table_files(tmp_path: Path) -> dict[str, Path]:
    """apt-probeset-genotype calls, confidences and summary tables.

    AX-9 is not in the manifest; S2 has a no-call for AX-2.
    """
    header = "#%affymetrix-algorithm-param-apt-time-str=Jan 1 2019\nprobeset_id\tS1.CEL\tS2.CEL\n"
    calls = tmp_path / "AxiomGT1.calls.txt"
    calls.write_text(header + "AX-1\t0\t1\nAX-9\t2\t2\nAX-2\t2\t-1\n")
    confidences = tmp_path / "AxiomGT1.confidences.txt"
    confidences.write_text(header + "AX-1\t0.01\t0.02\nAX-9\t0.1\t0.1\nAX-2\t0.03\t0.9\n")
    summary = tmp_path / "AxiomGT1.summary.txt"
    summary.write_text(
        header
        + "AX-1-A\t2048\t1024\n"
        + "AX-1-B\t512\t1024\n"
        + "AX-9-A\t100\t100\n"
        + "AX-9-B\t100\t100\n"
        + "AX-2-A\t512\t300\n"
        + "AX-2-B\t2048\t300\n"
    )
    return {"calls": calls, "confidences": confidences, "summary": summary}


@pytest.fixture
def report_file(tmp_path: Path) -> Path:
    """apt-probeset-genotype report with one male and one female sample."""
    report = tmp_path / "AxiomGT1.report.txt"
    report.write_text(
        "#%guid=0000\n"
        "cel_files\tcomputed_gender\tcall_rate\n"
        "S1.CEL\tmale\t99.1\n"
        "S2.CEL\tfemale\t98.7\n"
    )
    return report
