"""Run summary output.

The summary goes to standard error so that a VCF written to standard
output stays clean.
"""

from rich.console import Console

from affy2vcf.models import Statistics

console = Console(stderr=True, highlight=False)


def print_summary(stats: Statistics, models_loaded: bool, verbose: bool = False) -> None:
    """Print the end-of-conversion summary.

    Args:
        stats: Statistics collected during the conversion
        models_loaded: Whether cluster models were loaded (adds the
            missing-models column)
        verbose: Also print the number of records written
    """
    console.print(stats.summary_line(models_loaded))
    console.print(f"Not in manifest {stats.not_in_manifest}")
    if verbose:
        console.print(f"Records written {stats.written}")
