"""Tests for VCF header construction and record writing."""

from pathlib import Path

import numpy as np
import pysam
import pytest

from affy2vcf.models import Cluster, SnpModel, VariantRecord
from affy2vcf.writers.vcf import (
    HeaderOptions,
    VcfWriter,
    build_header,
    cluster_info,
    cluster_info_id,
    version_lines,
)

CONTIGS = [("chr1", 1000), ("chrX", 500)]


def model(copy_number: int = 2) -> SnpModel:
    return SnpModel(
        probe_set_id="AX-1",
        copy_number=copy_number,
        aa=Cluster(xm=2.0, xss=0.1, k=50, v=51, ym=10.0, yss=0.2, xyss=0.01),
        ab=Cluster(xm=0.0, xss=0.1, k=40, v=41, ym=10.5, yss=0.2, xyss=0.02),
        bb=Cluster(xm=-2.0, xss=0.1, k=30, v=31, ym=10.0, yss=0.2, xyss=0.03),
    )


class TestClusterInfo:
    """Test INFO fields derived from cluster models."""

    def test_ids(self) -> None:
        assert cluster_info_id("meanX", "AA", haploid=False) == "meanX_AA"
        assert cluster_info_id("meanX", "AA", haploid=True) == "meanX_AA.1"

    def test_order_and_values(self) -> None:
        """Statistics are grouped by kind, then by genotype."""
        info = cluster_info(model(), haploid=False)

        assert len(info) == 21
        assert list(info)[:4] == ["meanX_AA", "meanX_AB", "meanX_BB", "varX_AA"]
        assert list(info)[-1] == "covarXY_BB"
        assert info["meanX_BB"] == -2.0
        assert info["nObsMean_AB"] == 40.0
        assert info["nObsVar_AB"] == 41.0
        assert info["covarXY_BB"] == 0.03

    def test_haploid_suffix(self) -> None:
        info = cluster_info(model(1), haploid=True)
        assert all(key.endswith(".1") for key in info)


class TestBuildHeader:
    """Test header lines for each combination of inputs."""

    def test_sites_only(self) -> None:
        header = build_header(CONTIGS, [], HeaderOptions())

        assert list(header.contigs) == ["chr1", "chrX"]
        assert header.contigs["chr1"].length == 1000
        assert set(header.info) == {"ALLELE_A", "ALLELE_B", "DBSNP_RS_ID", "AFFY_SNP_ID"}
        assert len(header.formats) == 0
        assert list(header.samples) == []

    def test_all_inputs(self) -> None:
        options = HeaderOptions(calls=True, confidences=True, intensities=True, models=True)
        header = build_header(CONTIGS, ["S1", "S2"], options, ["##CSV=annot.csv"])

        assert list(header.formats) == [
            "GT", "CONF", "NORMX", "NORMY", "DELTA", "SIZE", "BAF", "LRR",
        ]
        assert "meanX_AA" in header.info
        assert "covarXY_BB.1" in header.info
        assert len(header.info) == 4 + 42
        assert list(header.samples) == ["S1", "S2"]
        assert "##CSV=annot.csv" in str(header)

    def test_diploid_before_haploid(self) -> None:
        header = str(build_header(CONTIGS, [], HeaderOptions(models=True)))
        assert header.index("ID=meanX_AA,") < header.index("ID=meanX_AA.1,")

    def test_baf_lrr_need_models(self) -> None:
        """BAF/LRR are only declared when intensities and models are loaded."""
        header = build_header(CONTIGS, ["S1"], HeaderOptions(calls=True, intensities=True))

        assert "NORMX" in header.formats
        assert "BAF" not in header.formats
        assert "meanX_AA" not in header.info


class TestVcfWriter:
    """Test writing records with pysam."""

    def write_and_read(
        self,
        tmp_path: Path,
        variants: list[VariantRecord],
        options: HeaderOptions,
        samples: list[str],
        output_type: str = "v",
    ):
        suffix = {"v": "vcf", "z": "vcf.gz", "u": "bcf", "b": "bcf"}[output_type]
        output = tmp_path / f"out.{suffix}"
        header = build_header(CONTIGS, samples, options)
        with VcfWriter(header, output, output_type) as writer:
            for variant in variants:
                writer.write(variant)
            assert writer.records_written == len(variants)
        with pysam.VariantFile(str(output)) as vcf:
            return output, list(vcf)

    def test_record_fields(self, tmp_path: Path) -> None:
        """Position is written 1-based with INFO, GT and FORMAT values."""
        variant = VariantRecord(
            id="AX-1",
            chrom="chr1",
            pos=99,
            alleles=["C", "A", "G"],
            info={"ALLELE_A": 1, "ALLELE_B": 2, "DBSNP_RS_ID": "rs1"},
            genotypes=np.array([[1, 2], [-1, -1]], dtype=np.int32),
            formats={
                "CONF": np.array([0.25, 0.5], dtype=np.float32),
                "NORMX": np.array([2048.0, 1.0], dtype=np.float32),
                "NORMY": np.array([512.0, 1.0], dtype=np.float32),
                "DELTA": np.array([2.0, 0.0], dtype=np.float32),
                "SIZE": np.array([10.0, 0.0], dtype=np.float32),
            },
        )
        options = HeaderOptions(calls=True, confidences=True, intensities=True)

        _, records = self.write_and_read(tmp_path, [variant], options, ["S1", "S2"])

        rec = records[0]
        assert (rec.chrom, rec.pos, rec.id) == ("chr1", 100, "AX-1")
        assert rec.alleles == ("C", "A", "G")
        assert rec.info["ALLELE_A"] == 1
        assert rec.info["ALLELE_B"] == 2
        assert rec.info["DBSNP_RS_ID"] == "rs1"
        assert "AFFY_SNP_ID" not in rec.info
        assert rec.samples["S1"]["GT"] == (1, 2)
        assert rec.samples["S2"]["GT"] == (None, None)
        assert rec.samples["S1"]["CONF"] == pytest.approx(0.25)
        assert rec.samples["S1"]["NORMX"] == pytest.approx(2048.0)
        assert rec.samples["S1"]["SIZE"] == pytest.approx(10.0)

    def test_cluster_info_roundtrip(self, tmp_path: Path) -> None:
        variant = VariantRecord(id="AX-1", chrom="chrX", pos=0, alleles=["A", "G"])
        variant.info.update(cluster_info(model(1), haploid=True))
        variant.info.update(cluster_info(model(), haploid=False))

        _, records = self.write_and_read(tmp_path, [variant], HeaderOptions(models=True), [])

        assert records[0].info["meanX_AA"] == pytest.approx(2.0)
        assert records[0].info["meanY_AB.1"] == pytest.approx(10.5)

    def test_compressed_output(self, tmp_path: Path) -> None:
        """Output type z writes BGZF."""
        variants = [
            VariantRecord(id="AX-1", chrom="chr1", pos=0, alleles=["A", "G"]),
            VariantRecord(id="AX-2", chrom="chr1", pos=1, alleles=["C", "T"]),
        ]

        output, records = self.write_and_read(tmp_path, variants, HeaderOptions(), [], output_type="z")

        assert output.read_bytes()[:2] == b"\x1f\x8b"
        assert [r.id for r in records] == ["AX-1", "AX-2"]

    @pytest.mark.parametrize("output_type,magic", [("b", b"\x1f\x8b"), ("u", b"BCF\x02")])
    def test_bcf_output(self, tmp_path: Path, output_type: str, magic: bytes) -> None:
        """Output types b and u write compressed and uncompressed BCF."""
        variant = VariantRecord(
            id="AX-1",
            chrom="chrX",
            pos=4,
            alleles=["C", "G", "A"],
            info={"ALLELE_A": 1, "ALLELE_B": 2},
            genotypes=np.array([[1, 2], [2, 2]], dtype=np.int32),
        )

        output, records = self.write_and_read(
            tmp_path, [variant], HeaderOptions(calls=True), ["S1", "S2"], output_type=output_type
        )

        assert output.read_bytes()[:len(magic)] == magic
        with pysam.VariantFile(str(output)) as bcf:
            assert bcf.is_bcf
        rec = records[0]
        assert (rec.chrom, rec.pos, rec.alleles) == ("chrX", 5, ("C", "G", "A"))
        assert rec.samples["S1"]["GT"] == (1, 2)
        assert rec.samples["S2"]["GT"] == (2, 2)

    def test_threads(self, tmp_path: Path) -> None:
        variants = [VariantRecord(id="AX-1", chrom="chr1", pos=0, alleles=["A", "G"])]

        output = tmp_path / "out.vcf.gz"
        with VcfWriter(build_header(CONTIGS, [], HeaderOptions()), output, "z", threads=2) as writer:
            writer.write(variants[0])

        with pysam.VariantFile(str(output)) as vcf:
            assert [r.id for r in vcf] == ["AX-1"]


class TestVersionLines:
    """Test the version and command line header lines."""

    def test_lines(self) -> None:
        lines = version_lines("1.0.0", "affy2vcf -c annot.csv")

        assert lines[0] == f"##affy2vcfVersion=1.0.0+pysam-{pysam.__version__}"
        assert lines[1].startswith("##affy2vcfCommand=affy2vcf -c annot.csv; Date=")

    def test_added_to_header(self) -> None:
        header = build_header(CONTIGS, [], HeaderOptions(), version_lines("1.0.0", "affy2vcf"))
        assert "##affy2vcfCommand=affy2vcf; Date=" in str(header)
