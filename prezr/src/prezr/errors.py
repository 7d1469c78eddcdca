"""Exception types shared by the PRezr modules."""

from __future__ import annotations

from enum import Enum


class PrezrError(Exception):
    """Base class for every error raised by this package."""


class KernelConfigError(PrezrError):
    """Raised when a diffusion kernel or kernel catalog is malformed."""


class EncodeError(PrezrError):
    """Raised when an image cannot be encoded into a resource."""


class PaletteOverflowError(EncodeError):
    """Raised when a palette index does not fit the selected bit depth."""


class ImageLoadError(PrezrError):
    """Raised when a source image cannot be read."""


class PackError(PrezrError):
    """Raised when a resource pack cannot be assembled."""


class BlobFormatError(PrezrError):
    """Raised when blob bytes do not follow the resource layout."""


class BlobChecksumError(BlobFormatError):
    """Raised when a blob checksum differs from the expected value."""


class ErrorKind(Enum):
    CONFIG = "config"
    INVARIANT = "invariant"
    IMAGE = "image"


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception recorded for one image onto an ``ErrorKind``."""

    if isinstance(exc, KernelConfigError):
        return ErrorKind.CONFIG
    if isinstance(exc, EncodeError):
        return ErrorKind.INVARIANT
    return ErrorKind.IMAGE
