"""Typer CLI for affy2vcf.

Usage:
    # Convert CHP files to VCF
    affy2vcf -c GenomeWideSNP_6.na35.annot.csv -f GRCh38.fa --chps cc-chp/ -o out.vcf.gz -O z

    # Convert apt-probeset-genotype tables to VCF with BAF/LRR
    affy2vcf -c Axiom.annot.csv -f GRCh38.fa --calls AxiomGT1.calls.txt \\
        --confidences AxiomGT1.confidences.txt --summary AxiomGT1.summary.txt \\
        --models AxiomGT1.snp-posteriors.txt -o out.vcf

    # Print the content of a CHP file, or tabulate several CEL files
    affy2vcf sample.AxiomGT1.chp
    affy2vcf --cel --chps cel-files/
"""

import shlex
import sys
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from affy2vcf import __version__

app = typer.Typer(
    name="affy2vcf",
    help="Convert Affymetrix CHP/CEL files and apt-probeset-genotype tables to VCF",
    add_completion=False,
)

console = Console(stderr=True)


class OutputType(str, Enum):
    """VCF/BCF output format and compression."""

    b = "b"
    u = "u"
    z = "z"
    v = "v"


@app.command()
def convert(
    files: Annotated[
        list[Path] | None,
        typer.Argument(
            help="CHP or CEL files (printed if one, tabulated if several, converted with --csv)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    csv: Annotated[
        Path | None,
        typer.Option(
            "--csv", "-c",
            help="CSV manifest file (can be gzip compressed)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    fasta_ref: Annotated[
        Path | None,
        typer.Option(
            "--fasta-ref", "-f",
            help="Reference sequence in fasta format",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    calls: Annotated[
        Path | None,
        typer.Option("--calls", help="apt-probeset-genotype calls output (can be gzip compressed)"),
    ] = None,
    confidences: Annotated[
        Path | None,
        typer.Option(
            "--confidences",
            help="apt-probeset-genotype confidences output (can be gzip compressed)",
        ),
    ] = None,
    summary: Annotated[
        Path | None,
        typer.Option("--summary", help="apt-probeset-genotype summary output (can be gzip compressed)"),
    ] = None,
    models: Annotated[
        Path | None,
        typer.Option("--models", help="apt-probeset-genotype SNP posteriors output"),
    ] = None,
    report: Annotated[
        Path | None,
        typer.Option("--report", help="apt-probeset-genotype report output"),
    ] = None,
    chps: Annotated[
        Path | None,
        typer.Option("--chps", help="Input CHP files rather than tab delimited files (directory or file)"),
    ] = None,
    cel: Annotated[
        bool,
        typer.Option("--cel", help="Input CEL files rather than CHP files"),
    ] = False,
    adjust_clusters: Annotated[
        bool,
        typer.Option(
            "--adjust-clusters",
            help="Adjust cluster centers in (Contrast, Size) space (requires --models)",
        ),
    ] = False,
    sex: Annotated[
        Path | None,
        typer.Option("--sex", "-x", help="Output apt-probeset-genotype gender estimate into file (requires --report)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write output to a file [standard output]"),
    ] = None,
    output_type: Annotated[
        OutputType,
        typer.Option(
            "--output-type", "-O",
            help="b: compressed BCF, u: uncompressed BCF, z: compressed VCF, v: uncompressed VCF",
        ),
    ] = OutputType.v,
    no_version: Annotated[
        bool,
        typer.Option("--no-version", help="Do not append version and command line to the header"),
    ] = False,
    threads: Annotated[
        int,
        typer.Option("--threads", min=0, help="Number of extra output compression threads"),
    ] = 0,
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Also write all log messages to this file"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Print verbose information"),
    ] = False,
) -> None:
    """Convert Affymetrix genotype data to VCF.

    Genotypes, confidences and intensities come either from CHP files
    (--chps or positional files) or from apt-probeset-genotype tables
    (--calls, --confidences, --summary). With --models, cluster statistics
    are added as INFO fields and BAF/LRR are computed from the intensities.

    Without --csv, a single CHP/CEL file is printed as text and several
    files are tabulated (chip summary for CHP files, DAT header for CEL
    files with --cel).
    """
    from affy2vcf.config import Config
    from affy2vcf.logging_config import setup_logging
    from affy2vcf.main import run

    setup_logging(verbose=verbose, log_file=log_file)

    config = Config(
        csv_file=csv,
        fasta_ref=fasta_ref,
        calls_file=calls,
        confidences_file=confidences,
        summary_file=summary,
        models_file=models,
        report_file=report,
        chps=chps,
        input_files=files or [],
        load_cel=cel,
        adjust_clusters=adjust_clusters,
        verbose=verbose,
        sex_file=sex,
        output=output,
        output_type=output_type.value,
        threads=threads,
        no_version=no_version,
        command_line=shlex.join(["affy2vcf", *sys.argv[1:]]),
        log_file=log_file,
    )

    errors = config.validate()
    if errors:
        for error in errors:
            console.print(f"[red]ERROR:[/red] {error}")
        raise typer.Exit(code=1)

    if config.converting:
        console.print(f"[bold]affy2vcf[/bold] v{__version__}", style="blue")

    try:
        run(config)
    except Exception as e:
        console.print(f"[red]ERROR:[/red] {e}")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        raise typer.Exit(code=1)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
