"""Configuration dataclass for affy2vcf.

Options of one run: which inputs are given decides whether containers are
dumped, summarised, or converted to VCF together with a manifest.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from affy2vcf.io_utils import list_container_files


@dataclass
class Config:
    """Configuration for one affy2vcf run.

    Attributes:
        csv_file: Affymetrix CSV manifest
        fasta_ref: Reference genome FASTA (indexed)
        calls_file: apt-probeset-genotype calls table
        confidences_file: apt-probeset-genotype confidences table
        summary_file: apt-probeset-genotype summary table
        models_file: apt-probeset-genotype SNP posteriors
        report_file: apt-probeset-genotype report table
        chps: Directory with CHP (or CEL) files, or a single file
        input_files: Container files given on the command line
        load_cel: Look for CEL instead of CHP files in the chps directory
        adjust_clusters: Recenter cluster means on the observed samples
        sex_file: Output file for the report's gender estimates
        output: Output file (None for standard output)
        output_type: "v" plain VCF, "z" compressed VCF, "u" uncompressed BCF,
            "b" compressed BCF
        threads: Extra output compression threads
        no_version: Do not append version and command line header lines
        command_line: Command line recorded in the header
        verbose: Enable verbose logging and full container dumps
        log_file: Optional file receiving all log messages
    """

    csv_file: Path | None = None
    fasta_ref: Path | None = None

    # apt-probeset-genotype tables
    calls_file: Path | None = None
    confidences_file: Path | None = None
    summary_file: Path | None = None
    models_file: Path | None = None
    report_file: Path | None = None

    # Binary containers
    chps: Path | None = None
    input_files: list[Path] = field(default_factory=list)
    load_cel: bool = False

    # Behavior flags
    adjust_clusters: bool = False
    verbose: bool = False

    # Outputs
    sex_file: Path | None = None
    output: Path | None = None
    output_type: Literal["v", "z", "u", "b"] = "v"
    threads: int = 0
    no_version: bool = False
    command_line: str = "affy2vcf"
    log_file: Path | None = None

    def __post_init__(self) -> None:
        """Coerce paths and normalise inputs."""
        for name in (
            "csv_file",
            "fasta_ref",
            "calls_file",
            "confidences_file",
            "summary_file",
            "models_file",
            "report_file",
            "chps",
            "sex_file",
            "output",
            "log_file",
        ):
            value = getattr(self, name)
            if isinstance(value, str):
                setattr(self, name, Path(value))
        self.input_files = [Path(p) for p in self.input_files]

    @property
    def container_files(self) -> list[Path]:
        """Containers to open: the chps directory contents or the positional files."""
        if self.chps is not None:
            return list_container_files(self.chps, "CEL" if self.load_cel else "chp")
        return list(self.input_files)

    @property
    def tables_given(self) -> bool:
        return any(
            p is not None for p in (self.calls_file, self.confidences_file, self.summary_file)
        )

    @property
    def converting(self) -> bool:
        """Whether a VCF is produced (a manifest was given)."""
        return self.csv_file is not None

    @property
    def dumping(self) -> bool:
        """Whether containers are printed or summarised instead of converted."""
        return not self.converting and len(self.container_files) > 0

    @property
    def models_loaded(self) -> bool:
        return self.models_file is not None

    @property
    def output_name(self) -> str:
        return str(self.output) if self.output is not None else "-"

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors: list[str] = []
        n_containers = len(self.container_files) if self._chps_ok(errors) else 0

        if self.converting:
            if self.fasta_ref is None:
                errors.append("Expected --fasta-ref option with --csv option")
            if self.adjust_clusters and (self.summary_file is None and n_containers == 0):
                errors.append(
                    "Expected --summary (or CHP files) and --models options "
                    "with --adjust-clusters option"
                )
            if self.adjust_clusters and self.models_file is None:
                errors.append("Expected --models option with --adjust-clusters option")
            if n_containers > 0 and self.tables_given:
                errors.append(
                    "Cannot load tables --calls, --confidences, --summary "
                    "if CHP files provided instead"
                )
        elif n_containers == 0 and self.sex_file is None:
            errors.append("Expected --csv option or input CHP/CEL files")

        if self.sex_file is not None and self.report_file is None:
            errors.append("Expected --report option with --sex option")

        for label, path in (
            ("CSV manifest", self.csv_file),
            ("Reference", self.fasta_ref),
            ("Calls file", self.calls_file),
            ("Confidences file", self.confidences_file),
            ("Summary file", self.summary_file),
            ("Models file", self.models_file),
            ("Report file", self.report_file),
        ):
            if path is not None and not path.exists():
                errors.append(f"{label} not found: {path}")

        for path in self.input_files:
            if not path.exists():
                errors.append(f"Input file not found: {path}")

        if self.output_type not in ("v", "z", "u", "b"):
            errors.append(f'The output type "{self.output_type}" not recognised')
        if self.threads < 0:
            errors.append(f"Number of threads must be non-negative: {self.threads}")

        return errors

    def _chps_ok(self, errors: list[str]) -> bool:
        if self.chps is not None and not self.chps.exists():
            errors.append(f"CHP path not found: {self.chps}")
            return False
        return True
