"""Main orchestration for affy2vcf.

Implements the VariantAssembler that turns manifest records and per-sample
genotype/intensity data into VCF records, and run() that coordinates all
components for one command line invocation:

1. Writing the sex file from the report (if requested)
2. Opening CHP/CEL containers (header-only when more than one)
3. Converting to VCF (with --csv), or dumping/summarising the containers
"""

import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import TextIO

import numpy as np
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from affy2vcf import __version__
from affy2vcf.checks.orientation import orient_alleles
from affy2vcf.clusters import adjust_clusters, compute_baf_lrr
from affy2vcf.config import Config
from affy2vcf.errors import ConfigurationError, ManifestError, OrientationError
from affy2vcf.formats import CalvinFile, Container, open_container
from affy2vcf.models import Call, ManifestRecord, SampleRecord, Statistics, VariantRecord
from affy2vcf.parsers.manifest import Manifest, load_manifest
from affy2vcf.parsers.posteriors import ModelStore, load_models
from affy2vcf.parsers.report import parse_report, write_sex_file
from affy2vcf.parsers.tables import TableSampleIterator
from affy2vcf.reference import FastaReference, ReferenceGenome
from affy2vcf.samples import ChpSampleIterator
from affy2vcf.writers.dump import dump_container, write_cel_summary, write_chip_summary
from affy2vcf.writers.log import print_summary
from affy2vcf.writers.vcf import (
    HeaderOptions,
    VcfWriter,
    build_header,
    cluster_info,
    version_lines,
)

logger = logging.getLogger(__name__)

console = Console(stderr=True)

# Below this many samples recentered clusters are dominated by noise
MIN_SAMPLES_FOR_ADJUSTMENT = 100

SampleIterator = ChpSampleIterator | TableSampleIterator


def genotype_pairs(genotypes: np.ndarray, allele_a_index: int, allele_b_index: int) -> np.ndarray:
    """Map AA/AB/BB calls to VCF allele index pairs.

    Heterozygous pairs are sorted; no-calls become (-1, -1).

    Example:
        >>> genotype_pairs(np.array([0, 1, 2, -1]), 1, 0).tolist()
        [[1, 1], [0, 1], [0, 0], [-1, -1]]
    """
    pairs = np.full((len(genotypes), 2), -1, dtype=np.int32)
    low, high = sorted((allele_a_index, allele_b_index))
    pairs[genotypes == Call.AA] = (allele_a_index, allele_a_index)
    pairs[genotypes == Call.AB] = (low, high)
    pairs[genotypes == Call.BB] = (allele_b_index, allele_b_index)
    return pairs


class VariantAssembler:
    """Build VCF records from manifest records and sample data.

    Usage:
        assembler = VariantAssembler(manifest, reference, writer, models=models)
        stats = assembler.run(iterator)
    """

    def __init__(
        self,
        manifest: Manifest,
        reference: ReferenceGenome,
        sink: VcfWriter,
        models: ModelStore | None = None,
        adjust: bool = False,
        skip_unknown_probe_sets: bool = False,
    ) -> None:
        """Initialize the assembler.

        Args:
            manifest: Marker annotations
            reference: Reference genome for contigs and REF bases
            sink: Writer receiving the records
            models: Cluster models (enables cluster INFO fields and BAF/LRR)
            adjust: Recenter clusters on the samples before BAF/LRR
            skip_unknown_probe_sets: Count and skip probe sets missing from
                the manifest instead of failing (used for text tables)
        """
        self.manifest = manifest
        self.reference = reference
        self.sink = sink
        self.models = models
        self.adjust = adjust
        self.skip_unknown_probe_sets = skip_unknown_probe_sets

    def run(
        self,
        iterator: SampleIterator | None = None,
        on_record: Callable[[], None] | None = None,
    ) -> Statistics:
        """Convert every record and hand it to the sink.

        Without an iterator every manifest record is converted in file order.
        With an iterator one record is converted per step, looked up in the
        manifest by probe set.

        Args:
            iterator: Per-sample data source (None for a sites-only VCF)
            on_record: Called once per processed record (progress reporting)

        Returns:
            Statistics of the conversion

        Raises:
            ManifestError: If a probe set from a CHP file is not in the manifest
        """
        stats = Statistics()
        n_samples = iterator.n_samples if iterator is not None else 0
        if self.adjust and n_samples < MIN_SAMPLES_FOR_ADJUSTMENT:
            logger.warning(
                f"Warning: adjusting clusters with {n_samples} sample(s) is not recommended"
            )

        for record, sample in self._records(iterator, stats):
            stats.total += 1
            variant = self.assemble(record, sample, stats)
            if variant is not None:
                self.sink.write(variant)
                stats.written += 1
            if on_record is not None:
                on_record()

        return stats

    def _records(
        self,
        iterator: SampleIterator | None,
        stats: Statistics,
    ) -> Iterator[tuple[ManifestRecord, SampleRecord | None]]:
        if iterator is None:
            for record in self.manifest:
                yield record, None
            return

        for sample in iterator:
            record = self.manifest.get(sample.probe_set_id)
            if record is None:
                if not self.skip_unknown_probe_sets:
                    raise ManifestError(
                        f"Probe Set {sample.probe_set_id} not found in manifest file"
                    )
                logger.debug(f"Probe Set {sample.probe_set_id} not found in manifest file")
                stats.not_in_manifest += 1
                continue
            yield record, sample

    def assemble(
        self,
        record: ManifestRecord,
        sample: SampleRecord | None,
        stats: Statistics,
    ) -> VariantRecord | None:
        """Build one VCF record, or return None if the marker is skipped.

        Updates stats with skipped, missing-reference and missing-model counts.
        """
        contig = self.reference.resolve_contig(record.chromosome)
        pos = record.position - 1
        if contig is None or pos < 0 or record.strand is None or not record.flank:
            logger.debug(f"Skipping unlocalized marker {record.probe_set_id}")
            stats.skipped += 1
            return None

        try:
            oriented = orient_alleles(record, contig, pos, self.reference)
        except OrientationError as e:
            logger.debug(str(e))
            stats.missing_reference += 1
            return None

        variant = VariantRecord(
            id=record.probe_set_id,
            chrom=contig,
            pos=pos,
            alleles=oriented.alleles,
        )
        variant.info["ALLELE_A"] = oriented.allele_a_index
        variant.info["ALLELE_B"] = oriented.allele_b_index
        if record.dbsnp_rs_id:
            variant.info["DBSNP_RS_ID"] = record.dbsnp_rs_id
        if record.affy_snp_id:
            variant.info["AFFY_SNP_ID"] = record.affy_snp_id

        if sample is not None:
            if sample.calls_loaded:
                variant.genotypes = genotype_pairs(
                    sample.genotypes, oriented.allele_a_index, oriented.allele_b_index
                )
            if sample.confidences_loaded:
                variant.formats["CONF"] = sample.confidences.copy()
            if sample.intensities_loaded:
                variant.formats["NORMX"] = sample.norm_x.copy()
                variant.formats["NORMY"] = sample.norm_y.copy()
                variant.formats["DELTA"] = sample.delta.copy()
                variant.formats["SIZE"] = sample.size.copy()

        if self.models is not None:
            self._add_model_fields(self.models, variant, sample, stats)

        return variant

    def _add_model_fields(
        self,
        models: ModelStore,
        variant: VariantRecord,
        sample: SampleRecord | None,
        stats: Statistics,
    ) -> None:
        haploid = models.get(variant.id, 1)
        diploid = models.get(variant.id, 2)
        if haploid is not None:
            variant.info.update(cluster_info(haploid, haploid=True))
        if diploid is not None:
            variant.info.update(cluster_info(diploid, haploid=False))

        model = models.lookup(variant.id)
        if model is None:
            stats.missing_models += 1
            logger.debug(f"Warning: SNP model for Probe Set ID {variant.id} was not found")
            return
        if sample is None:
            return

        if self.adjust:
            if models.is_birdseed:
                model = adjust_clusters(model, sample.genotypes, sample.norm_x, sample.norm_y)
            else:
                model = adjust_clusters(model, sample.genotypes, sample.delta, sample.size)
        if sample.intensities_loaded:
            baf, lrr = compute_baf_lrr(sample.norm_x, sample.norm_y, model, models.dialect)
            variant.formats["BAF"] = baf
            variant.formats["LRR"] = lrr


# =============================================================================
# Run modes
# =============================================================================


@contextmanager
def _open_output(output: Path | None) -> Iterator[TextIO]:
    if output is None:
        yield sys.stdout
        sys.stdout.flush()
        return
    with open(output, "w") as f:
        yield f


def open_containers(paths: list[Path], stack: ExitStack) -> list[Container]:
    """Open containers, header-only when more than one is given.

    Calvin files are registered on the stack so their streams get closed.
    """
    header_only = len(paths) > 1
    containers: list[Container] = []
    for path in paths:
        container = open_container(path, header_only=header_only)
        if isinstance(container, CalvinFile):
            stack.callback(container.close)
        containers.append(container)
    return containers


def run_conversion(config: Config) -> Statistics:
    """Convert manifest markers (and sample data if any) to VCF.

    Args:
        config: Configuration with csv_file and fasta_ref set

    Returns:
        Statistics of the conversion

    Raises:
        ConfigurationError: If the manifest or the reference is missing
    """
    if config.csv_file is None or config.fasta_ref is None:
        raise ConfigurationError("Expected --csv and --fasta-ref options for a conversion")

    console.print(f"Reading {config.csv_file.name}")
    manifest = load_manifest(config.csv_file)
    console.print(f"Loaded {len(manifest):,} markers from manifest")

    models: ModelStore | None = None
    if config.models_file is not None:
        console.print(f"Reading {config.models_file.name}")
        models = load_models(config.models_file)
        console.print(f"Loaded {len(models):,} SNP models")

    with ExitStack() as stack:
        reference = stack.enter_context(FastaReference(config.fasta_ref))

        iterator: SampleIterator | None = None
        container_files = config.container_files
        if container_files:
            console.print(f"Opening {len(container_files):,} CHP files")
            containers = open_containers(container_files, stack)
            iterator = ChpSampleIterator(containers)
        elif config.tables_given:
            iterator = stack.enter_context(
                TableSampleIterator(
                    calls_file=config.calls_file,
                    confidences_file=config.confidences_file,
                    summary_file=config.summary_file,
                )
            )

        samples = iterator.samples if iterator is not None else []
        loaded = iterator.record if iterator is not None else None
        options = HeaderOptions(
            calls=loaded is not None and loaded.calls_loaded,
            confidences=loaded is not None and loaded.confidences_loaded,
            intensities=loaded is not None and loaded.intensities_loaded,
            models=models is not None,
        )
        extra_lines = [f"##CSV={config.csv_file.name}"]
        if config.models_file is not None:
            extra_lines.append(f"##SNP={config.models_file.name}")
        if not config.no_version:
            extra_lines.extend(version_lines(__version__, config.command_line))
        header = build_header(reference.contigs, samples, options, extra_lines)

        writer = stack.enter_context(
            VcfWriter(header, config.output, config.output_type, threads=config.threads)
        )
        assembler = VariantAssembler(
            manifest,
            reference,
            writer,
            models=models,
            adjust=config.adjust_clusters,
            skip_unknown_probe_sets=isinstance(iterator, TableSampleIterator),
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Converting markers...", total=len(manifest))
            stats = assembler.run(iterator, on_record=lambda: progress.advance(task))

    print_summary(stats, models is not None, config.verbose)
    return stats


def run_dump(config: Config) -> None:
    """Print one container, or tabulate the headers of several."""
    paths = config.container_files
    with ExitStack() as stack:
        containers = open_containers(paths, stack)
        with _open_output(config.output) as out:
            if len(containers) == 1:
                dump_container(containers[0], out, verbose=config.verbose)
            elif config.load_cel:
                write_cel_summary(containers, out)
            else:
                write_chip_summary(containers, out)


def run(config: Config) -> Statistics | None:
    """Run affy2vcf for one configuration.

    Returns:
        Conversion statistics, or None when no VCF was produced

    Raises:
        Affy2VcfError: On any malformed input
    """
    if config.sex_file is not None:
        if config.report_file is None:
            raise ConfigurationError("Expected --report option with --sex option")
        entries = parse_report(config.report_file)
        write_sex_file(entries, config.sex_file)
        console.print(f"Wrote {len(entries):,} sample sexes to {config.sex_file}")

    if config.converting:
        return run_conversion(config)
    if config.dumping:
        run_dump(config)
    return None
