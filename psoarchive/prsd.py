from __future__ import annotations

import os
import struct
from typing import Callable, Optional, Tuple

from . import prs
from .constants import PRSD_HEADER_SIZE, PRSD_MIN_SIZE, U32_MAX
from .crypt import crypt
from .errors import (
    BadMessageError,
    FatalError,
    FileError,
    InvalidArgumentError,
    InvalidPointerError,
    OutOfMemoryError,
    OutOfSpaceError,
)


# Header: decompressed_len u32, key u32; followed by the encrypted PRS stream
_PRSD_HEADER_STRUCT = struct.Struct("<II")


def random_key() -> int:
    return int.from_bytes(os.urandom(4), "little")


def _seal(data: bytes, key: Optional[int], encode: Callable[[bytes], bytes]) -> bytes:
    if data is None or len(data) == 0:
        raise InvalidArgumentError("nothing to compress")
    if len(data) > U32_MAX:
        raise InvalidArgumentError("PRSD payloads are limited to 32-bit lengths")
    if key is None:
        key = random_key()
    elif not isinstance(key, int) or key < 0 or key > U32_MAX:
        raise InvalidArgumentError(f"PRSD key must be a 32-bit unsigned integer: {key!r}")
    try:
        payload = encode(data)
        return _PRSD_HEADER_STRUCT.pack(len(data), key) + crypt(payload, key)
    except MemoryError as exc:
        raise OutOfMemoryError() from exc


def compress(data: bytes, key: Optional[int] = None) -> bytes:
    """PRS-compress ``data`` and encrypt it with ``key`` (random when None)."""
    return _seal(data, key, prs.compress)


def archive(data: bytes, key: Optional[int] = None) -> bytes:
    """Like :func:`compress` but stores the data as PRS literals."""
    return _seal(data, key, prs.archive)


def _header(buf: bytes) -> Tuple[int, int]:
    if buf is None:
        raise InvalidPointerError()
    if len(buf) < PRSD_MIN_SIZE:
        raise BadMessageError("PRSD data too short")
    return _PRSD_HEADER_STRUCT.unpack_from(buf, 0)


def _decrypt_body(buf: bytes, key: int) -> bytes:
    try:
        return crypt(bytes(buf[PRSD_HEADER_SIZE:]), key)
    except MemoryError as exc:
        raise OutOfMemoryError() from exc


def decompress(buf: bytes) -> bytes:
    """Decrypt and decompress a PRSD buffer.

    The decompressed length must match the header; a mismatch raises
    FatalError even when the PRS stream itself decoded cleanly.
    """
    unc_len, key = _header(buf)
    out = prs.decompress(_decrypt_body(buf, key))
    if len(out) != unc_len:
        raise FatalError(f"PRSD length mismatch: header says {unc_len}, got {len(out)}")
    return out


def decompress_into(buf: bytes, dst) -> int:
    """Decompress into the writable buffer ``dst``; returns the length written."""
    unc_len, key = _header(buf)
    if len(memoryview(dst).cast("B")) < unc_len:
        raise OutOfSpaceError(f"destination holds fewer than {unc_len} bytes")
    n = prs.decompress_into(_decrypt_body(buf, key), dst)
    if n != unc_len:
        raise FatalError(f"PRSD length mismatch: header says {unc_len}, got {n}")
    return n


def decompress_size(buf: bytes) -> int:
    """Return the decompressed length recorded in the header."""
    return _header(buf)[0]


def decompress_file(path: str) -> bytes:
    try:
        with open(path, "rb") as fh:
            buf = fh.read()
    except OSError as exc:
        raise FileError(f"cannot read {path}: {exc}") from exc
    return decompress(buf)


def compress_file(src_path: str, dst_path: str, key: Optional[int] = None, *, store: bool = False) -> int:
    """Seal the file at ``src_path`` into ``dst_path``; returns the output size."""
    try:
        with open(src_path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        raise FileError(f"cannot read {src_path}: {exc}") from exc
    out = archive(data, key) if store else compress(data, key)
    try:
        with open(dst_path, "wb") as fh:
            fh.write(out)
    except OSError as exc:
        raise FileError(f"cannot write {dst_path}: {exc}") from exc
    return len(out)
