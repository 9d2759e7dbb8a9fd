"""Binary container readers for Affymetrix CEL and CHP files.

Containers are recognised by their first byte:
59 for Calvin/AGCC (CHP and CEL), 64 for XDA CEL. XDA CHP files (65) are
recognised but not supported.
"""

from pathlib import Path

from affy2vcf.errors import BadMagicError, DecodeError, UnsupportedVersionError
from affy2vcf.formats.calvin import CALVIN_MAGIC, CalvinFile, open_calvin
from affy2vcf.formats.xda import XDA_CEL_MAGIC, XdaCel, open_xda

XDA_CHP_MAGIC = 65

Container = CalvinFile | XdaCel

__all__ = [
    "CALVIN_MAGIC",
    "XDA_CEL_MAGIC",
    "XDA_CHP_MAGIC",
    "CalvinFile",
    "Container",
    "XdaCel",
    "open_calvin",
    "open_container",
    "open_xda",
    "read_magic",
]


def read_magic(filepath: Path) -> int:
    """Return the first byte of a file.

    Raises:
        DecodeError: If the file is empty
    """
    with open(filepath, "rb") as f:
        first = f.read(1)
    if not first:
        raise DecodeError(f"Failed to read from file {filepath}")
    return first[0]


def open_container(filepath: Path, header_only: bool = False) -> Container:
    """Open a CEL or CHP file, dispatching on its magic byte.

    Args:
        filepath: Path to the container
        header_only: Skip bulk payloads (XDA arrays, apt-opt-cel parameter
            values); used when many containers are open at once

    Returns:
        CalvinFile (stream left open) or XdaCel

    Raises:
        UnsupportedVersionError: For XDA CHP files
        BadMagicError: For any other unrecognised first byte
    """
    magic = read_magic(filepath)
    if magic == CALVIN_MAGIC:
        return open_calvin(filepath, drop_instrument_parameters=header_only)
    if magic == XDA_CEL_MAGIC:
        return open_xda(filepath, header_only=header_only)
    if magic == XDA_CHP_MAGIC:
        raise UnsupportedVersionError(
            f"Currently unable to read XDA CHP format for file {filepath}"
        )
    raise BadMagicError(
        f"Expected magic numbers {CALVIN_MAGIC}, {XDA_CEL_MAGIC} or {XDA_CHP_MAGIC} "
        f"but found {magic} in file {filepath}"
    )
