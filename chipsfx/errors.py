from __future__ import annotations


class ChipSfxError(Exception):
    """Base error for the chipsfx library."""


class InvalidDataError(ChipSfxError):
    """Raised when serialized parameter data cannot be decoded."""


class UnsupportedFormatVersionError(InvalidDataError):
    """Raised when a binary payload declares a format version this decoder does not know."""


class BufferTooSmallError(ChipSfxError):
    """Raised when a destination buffer cannot hold a fixed-size encoding."""


class AllocationError(ChipSfxError):
    """Raised when an output buffer cannot be allocated."""


class UnsupportedOperationError(ChipSfxError):
    """Raised for host operations the generator cannot provide (arbitrary seek, length)."""


class InvalidConfigError(ChipSfxError):
    """Raised when settings or helper arguments are invalid."""


class InternalError(ChipSfxError):
    """Raised when an invariant of the engine is violated."""
