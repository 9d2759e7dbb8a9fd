"""Exceptions raised while decoding Affymetrix inputs.

Every error except OrientationError is fatal: a misaligned byte offset or a
desynchronised table cannot be recovered, so the run is aborted.
"""


class Affy2VcfError(Exception):
    """Base exception for affy2vcf errors."""
    pass


class DecodeError(Affy2VcfError):
    """Base exception for structurally invalid binary containers."""
    pass


class BadMagicError(DecodeError):
    """Raised when a container does not start with the expected magic number."""
    pass


class UnsupportedVersionError(DecodeError):
    """Raised when a container declares a format version we cannot read."""
    pass


class TruncatedStreamError(DecodeError):
    """Raised when fewer bytes are available than a read requested."""
    pass


class TrailingDataError(DecodeError):
    """Raised when decoding does not end exactly at end-of-stream."""
    pass


class UnknownTypeTagError(DecodeError):
    """Raised for an unrecognised column type tag or parameter MIME type."""
    pass


class RowExhaustedError(Affy2VcfError):
    """Raised when a row cursor is advanced past its last row."""
    pass


class ProbeSetMismatchError(Affy2VcfError):
    """Raised when parallel sources disagree on the current probe set."""
    pass


class InvalidCallCodeError(Affy2VcfError):
    """Raised for a genotype call code outside the known table."""
    pass


class MissingCompanionLineError(Affy2VcfError):
    """Raised when a summary "-A" line is not followed by its "-B" line."""
    pass


class ModelFormatError(Affy2VcfError):
    """Raised for a malformed SNP posterior models file."""
    pass


class TableFormatError(Affy2VcfError):
    """Raised for a malformed calls, confidences, summary or report table."""
    pass


class ContainerContentError(Affy2VcfError):
    """Raised when a well-formed container lacks the data sets we need."""
    pass


class ManifestError(Affy2VcfError):
    """Raised for a malformed manifest or a probe set missing from it."""
    pass


class OrientationError(Affy2VcfError):
    """Raised when REF/ALT alleles cannot be determined for one marker.

    Not fatal: the assembler counts the marker and moves on.
    """
    pass


class ConfigurationError(Affy2VcfError):
    """Raised when a run is started with an incomplete set of options."""
    pass
