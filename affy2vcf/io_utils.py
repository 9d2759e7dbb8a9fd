"""I/O utilities for transparent gzip handling and line look-ahead.

Text inputs (calls, confidences, summary, posteriors, report) may be
plain or gzip-compressed; compression is detected from magic bytes.

Example:
    with LineReader(Path("AxiomGT1.calls.txt.gz")) as reader:
        header = reader.skip_comments()
        for line in reader:
            process(line)
"""

import gzip
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Literal

# Gzip magic bytes (first two bytes of gzip file)
GZIP_MAGIC = b"\x1f\x8b"


def is_gzipped(filepath: Path) -> bool:
    """Detect if a file is gzip-compressed.

    Checks magic bytes first, falls back to the extension if the file is
    too small or unreadable.

    Example:
        >>> is_gzipped(Path("AxiomGT1.calls.txt.gz"))
        True
    """
    try:
        with open(filepath, "rb") as f:
            magic = f.read(2)
            if len(magic) >= 2:
                return magic == GZIP_MAGIC
    except OSError:
        pass

    return filepath.suffix == ".gz"


def open_text(filepath: Path) -> IO[str]:
    """Open a possibly gzipped file for reading text."""
    if is_gzipped(filepath):
        return gzip.open(filepath, "rt", encoding="utf-8", newline="")
    return open(filepath, "rt", encoding="utf-8", newline="")


@contextmanager
def smart_open(
    filepath: Path,
    mode: Literal["r", "rt", "rb"] = "rt",
) -> Iterator[IO[str] | IO[bytes]]:
    """Open a file with automatic gzip detection.

    Args:
        filepath: Path to file (may be .gz or uncompressed)
        mode: File mode ('r' or 'rt' for text, 'rb' for binary)

    Yields:
        File handle (text or binary based on mode)
    """
    if mode == "r":
        mode = "rt"

    if mode == "rt":
        f = open_text(filepath)
    elif is_gzipped(filepath):
        f = gzip.open(filepath, mode)
    else:
        f = open(filepath, mode)

    try:
        yield f
    finally:
        f.close()


def iter_lines(filepath: Path) -> Iterator[str]:
    """Iterate over lines in a file with gzip auto-detection.

    Lines are stripped of trailing newlines.
    """
    with smart_open(filepath, "rt") as f:
        for line in f:
            yield line.rstrip("\r\n")


class LineReader:
    """Line reader with one line of look-ahead.

    Attributes:
        path: File being read
        line_number: Number of lines consumed so far
    """

    def __init__(self, filepath: Path) -> None:
        self.path = Path(filepath)
        self._fp = open_text(self.path)
        self._next = self._read_raw()
        self.line_number = 0

    def _read_raw(self) -> str | None:
        line = self._fp.readline()
        if not line:
            return None
        return line.rstrip("\r\n")

    def peek(self) -> str | None:
        """Return the next line without consuming it (None at end of file)."""
        return self._next

    def readline(self) -> str | None:
        """Consume and return the next line (None at end of file)."""
        line = self._next
        if line is not None:
            self._next = self._read_raw()
            self.line_number += 1
        return line

    def skip_comments(self) -> str | None:
        """Consume leading "#" lines and return the first other line."""
        line = self.readline()
        while line is not None and line.startswith("#"):
            line = self.readline()
        return line

    def at_end(self) -> bool:
        return self._next is None

    def close(self) -> None:
        self._fp.close()

    def __iter__(self) -> Iterator[str]:
        while (line := self.readline()) is not None:
            yield line

    def __enter__(self) -> "LineReader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def list_container_files(path: Path, extension: str) -> list[Path]:
    """List CHP or CEL files given a directory or a single file.

    Args:
        path: Directory to scan, or a single file
        extension: File extension without the dot ("chp" or "CEL")

    Returns:
        Sorted list of matching files; [path] when path is a file
    """
    if path.is_dir():
        return sorted(p for p in path.iterdir() if p.is_file() and p.suffix == f".{extension}")
    return [path]
