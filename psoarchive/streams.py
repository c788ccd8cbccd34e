from __future__ import annotations

import io
import os
from typing import BinaryIO, Union

from .constants import BLOCK_SIZE, COPY_CHUNK_SIZE
from .errors import ArchiveIOError, FileError, InvalidArgumentError


Source = Union[str, "os.PathLike[str]", int, BinaryIO]


def open_stream(source: Source, mode: str) -> BinaryIO:
    """Open ``source`` for binary I/O.

    ``source`` may be a filesystem path, an OS-level file descriptor or an
    already-open binary file object. Descriptors and file objects are adopted:
    closing the returned stream closes them too.
    """
    if isinstance(source, int):
        try:
            return os.fdopen(source, mode)
        except OSError as exc:
            raise FileError(f"cannot adopt descriptor {source}: {exc}") from exc
    if isinstance(source, (str, os.PathLike)):
        try:
            return open(source, mode)
        except OSError as exc:
            raise FileError(f"cannot open {os.fspath(source)}: {exc}") from exc
    if hasattr(source, "read") and hasattr(source, "seek"):
        return source
    raise InvalidArgumentError(f"unsupported stream source: {type(source).__name__}")


def stream_length(f: BinaryIO) -> int:
    try:
        total = f.seek(0, io.SEEK_END)
        f.seek(0, io.SEEK_SET)
    except (OSError, ValueError) as exc:
        raise ArchiveIOError(f"cannot determine stream length: {exc}") from exc
    return total


def seek(f: BinaryIO, pos: int) -> None:
    try:
        f.seek(pos, io.SEEK_SET)
    except (OSError, ValueError, OverflowError) as exc:
        raise ArchiveIOError(f"seek to {pos} failed: {exc}") from exc


def read_exact(f: BinaryIO, n: int) -> bytes:
    try:
        b = f.read(n)
    except OSError as exc:
        raise ArchiveIOError(f"read failed: {exc}") from exc
    if b is None or len(b) != n:
        raise ArchiveIOError("Unexpected EOF")
    return b


def write_exact(f: BinaryIO, data: bytes) -> None:
    try:
        written = f.write(data)
    except OSError as exc:
        raise ArchiveIOError(f"write failed: {exc}") from exc
    if written is not None and written != len(data):
        raise ArchiveIOError("Short write")


def pad_to_block(f: BinaryIO, boundary: int = BLOCK_SIZE) -> int:
    """Advance past the current block and return the start of the next one.

    The position always moves forward, even when it is already aligned. A zero
    byte is written just before the new position so the file is extended.
    """
    try:
        pos = f.tell()
    except OSError as exc:
        raise ArchiveIOError(f"tell failed: {exc}") from exc
    if boundary <= 0:
        return pos
    pos = (pos & ~(boundary - 1)) + boundary
    seek(f, pos - 1)
    write_exact(f, b"\x00")
    return pos


def copy_stream(src: BinaryIO, dst: BinaryIO, length: int) -> None:
    remaining = length
    while remaining:
        n = min(remaining, COPY_CHUNK_SIZE)
        write_exact(dst, read_exact(src, n))
        remaining -= n
