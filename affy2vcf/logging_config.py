"""
Logging configuration for affy2vcf.

Provides:
- Console handler on stderr: warnings and progress (INFO), per-marker
  details only in verbose mode (DEBUG)
- Optional file handler capturing everything at DEBUG level
"""

import logging
from pathlib import Path
from typing import Optional


def setup_logging(
    verbose: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """
    Initialize logging for a command line run.

    Args:
        verbose: Show DEBUG messages (skipped markers, missing models) on the console.
        log_file: Also write all messages with timestamps to this file.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(file_handler)


def reset_logging():
    """Reset logging state. Useful for testing."""
    logging.getLogger().handlers.clear()
