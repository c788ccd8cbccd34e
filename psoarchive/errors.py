from __future__ import annotations

from typing import Dict, Type


OK = 0
EFILE = -1
EMEM = -2
EFATAL = -3
NOARCHIVE = -4
EMPTY = -5
EIO = -6
ERANGE = -7
EFAULT = -8
EINVAL = -9
ENOSPC = -10
EBADMSG = -11
ENOTSUP = -12

_ERROR_STRINGS = (
    "No error",
    "File error",
    "Memory allocation error",
    "Fatal error",
    "No archive found",
    "Empty archive",
    "I/O error",
    "Out of range",
    "Invalid pointer",
    "Invalid argument",
    "Out of space",
    "Invalid data during parse",
    "Operation not supported",
)
_UNKNOWN_ERROR = "Unknown error"


def strerror(code: int) -> str:
    idx = -code
    if idx < 0 or idx >= len(_ERROR_STRINGS):
        return _UNKNOWN_ERROR
    return _ERROR_STRINGS[idx]


class PsoArchiveError(Exception):
    """Base class for psoarchive errors. ``code`` is one of the E* constants."""

    code = EFATAL

    def __init__(self, message: str | None = None):
        super().__init__(message or strerror(self.code))


# Handles and arguments
class FileError(PsoArchiveError):
    code = EFILE


class OutOfMemoryError(PsoArchiveError):
    code = EMEM


class FatalError(PsoArchiveError):
    code = EFATAL


class InvalidPointerError(PsoArchiveError):
    code = EFAULT


class InvalidArgumentError(PsoArchiveError):
    code = EINVAL


class UnsupportedError(PsoArchiveError):
    code = ENOTSUP


# Parsing
class NoArchiveError(PsoArchiveError):
    code = NOARCHIVE


class EmptyArchiveError(PsoArchiveError):
    code = EMPTY


class OutOfRangeError(PsoArchiveError):
    code = ERANGE


class BadMessageError(PsoArchiveError):
    code = EBADMSG


# I/O and buffers
class ArchiveIOError(PsoArchiveError):
    code = EIO


class OutOfSpaceError(PsoArchiveError):
    code = ENOSPC


_BY_CODE: Dict[int, Type[PsoArchiveError]] = {
    cls.code: cls
    for cls in (
        FileError,
        OutOfMemoryError,
        FatalError,
        NoArchiveError,
        EmptyArchiveError,
        ArchiveIOError,
        OutOfRangeError,
        InvalidPointerError,
        InvalidArgumentError,
        OutOfSpaceError,
        BadMessageError,
        UnsupportedError,
    )
}


def error_for_code(code: int) -> Type[PsoArchiveError]:
    try:
        return _BY_CODE[code]
    except KeyError:
        raise ValueError(f"not an error code: {code}") from None
