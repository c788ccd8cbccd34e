"""PRS compression, the LZ77 variant used throughout SEGA's PSO data files.

A PRS stream interleaves control bytes (read least significant bit first)
with data bytes. Each operation is introduced by control bits:

- ``1``: copy one literal byte.
- ``00ab``: short copy of ``ab + 2`` bytes (2..5) from ``byte - 256`` back.
- ``01``: long copy. A little-endian word follows; the offset is
  ``(word >> 3) - 0x2000`` and the length ``(word & 7) + 2`` (3..9), or, when
  the low three bits are zero, ``next_byte + 1`` (1..256). A zero word ends
  the stream.

Control bytes are fetched lazily, exactly when the next bit is needed.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .errors import BadMessageError, OutOfSpaceError


SHORT_MAX_DISTANCE = 256
SHORT_MAX_LENGTH = 5
LONG_MAX_DISTANCE = 0x1FFF  # 0x2000 would collide with the end marker
LONG_INLINE_MAX_LENGTH = 9
MAX_LENGTH = 256
MIN_LONG_LENGTH = 3

_HASH_LEN = 3
_MAX_CHAIN = 64


class _Emitter:
    def __init__(self):
        self.out = bytearray()
        self.ctrl_pos = 0
        self.nbits = 8

    def bit(self, b: int):
        if self.nbits == 8:
            self.ctrl_pos = len(self.out)
            self.out.append(0)
            self.nbits = 0
        if b:
            self.out[self.ctrl_pos] |= 1 << self.nbits
        self.nbits += 1

    def literal(self, value: int):
        self.bit(1)
        self.out.append(value)

    def short_copy(self, distance: int, length: int):
        n = length - 2
        self.bit(0)
        self.bit(0)
        self.bit((n >> 1) & 1)
        self.bit(n & 1)
        self.out.append((SHORT_MAX_DISTANCE - distance) & 0xFF)

    def long_copy(self, distance: int, length: int):
        base = (0x2000 - distance) << 3
        self.bit(0)
        self.bit(1)
        if length <= LONG_INLINE_MAX_LENGTH:
            word = base | (length - 2)
            self.out += bytes((word & 0xFF, word >> 8))
        else:
            self.out += bytes((base & 0xFF, base >> 8, length - 1))

    def finish(self) -> bytes:
        self.bit(0)
        self.bit(1)
        self.out += b"\x00\x00"
        return bytes(self.out)


def _match_length(data: bytes, a: int, b: int, limit: int) -> int:
    n = 0
    while n < limit and data[a + n] == data[b + n]:
        n += 1
    return n


def compress(data: bytes) -> bytes:
    """Compress ``data`` with a greedy longest-match search."""
    data = bytes(data)
    size = len(data)
    em = _Emitter()
    chains: Dict[bytes, List[int]] = {}

    def _insert(p: int):
        if p + _HASH_LEN <= size:
            chains.setdefault(data[p : p + _HASH_LEN], []).append(p)

    i = 0
    while i < size:
        best_len = 0
        best_dist = 0
        limit = min(MAX_LENGTH, size - i)
        if limit >= _HASH_LEN:
            cands = chains.get(data[i : i + _HASH_LEN], ())
            for depth, p in enumerate(reversed(cands)):
                dist = i - p
                if dist > LONG_MAX_DISTANCE or depth >= _MAX_CHAIN:
                    break
                n = _match_length(data, p, i, limit)
                if n > best_len:
                    best_len, best_dist = n, dist
                    if n == limit:
                        break
        if best_len >= MIN_LONG_LENGTH:
            if best_len <= SHORT_MAX_LENGTH and best_dist <= SHORT_MAX_DISTANCE:
                em.short_copy(best_dist, best_len)
            else:
                em.long_copy(best_dist, best_len)
            for p in range(i, i + best_len):
                _insert(p)
            i += best_len
        else:
            em.literal(data[i])
            _insert(i)
            i += 1
    return em.finish()


def archive(data: bytes) -> bytes:
    """Encode ``data`` as literals only. Fast, and always valid PRS."""
    em = _Emitter()
    for b in bytes(data):
        em.literal(b)
    return em.finish()


def _decode(src: bytes, limit: Optional[int]) -> bytearray:
    out = bytearray()
    n = len(src)
    pos = 0
    ctrl = 0
    nbits = 0

    def _need(count: int):
        if pos + count > n:
            raise BadMessageError("truncated PRS stream")

    while True:
        # Inline bit fetches; this loop runs once per output operation
        if nbits == 0:
            _need(1)
            ctrl, nbits = src[pos], 8
            pos += 1
        flag = ctrl & 1
        ctrl >>= 1
        nbits -= 1
        if flag:
            _need(1)
            if limit is not None and len(out) >= limit:
                raise OutOfSpaceError("PRS output exceeds destination size")
            out.append(src[pos])
            pos += 1
            continue

        if nbits == 0:
            _need(1)
            ctrl, nbits = src[pos], 8
            pos += 1
        flag = ctrl & 1
        ctrl >>= 1
        nbits -= 1
        if flag:
            _need(2)
            word = src[pos] | (src[pos + 1] << 8)
            pos += 2
            if word == 0:
                break
            offset = (word >> 3) - 0x2000
            length = word & 7
            if length == 0:
                _need(1)
                length = src[pos] + 1
                pos += 1
            else:
                length += 2
        else:
            length = 0
            for _ in range(2):
                if nbits == 0:
                    _need(1)
                    ctrl, nbits = src[pos], 8
                    pos += 1
                length = (length << 1) | (ctrl & 1)
                ctrl >>= 1
                nbits -= 1
            length += 2
            _need(1)
            offset = src[pos] - SHORT_MAX_DISTANCE
            pos += 1

        start = len(out) + offset
        if start < 0:
            raise BadMessageError("PRS back-reference before start of output")
        if limit is not None and len(out) + length > limit:
            raise OutOfSpaceError("PRS output exceeds destination size")
        if -offset >= length:
            out += out[start : start + length]
        else:
            for k in range(length):
                out.append(out[start + k])
    return out


def decompress(data: bytes, expected_len: Optional[int] = None) -> bytes:
    """Decompress a PRS stream.

    With ``expected_len`` the output may not grow beyond that many bytes
    (OutOfSpaceError). Malformed input raises BadMessageError.
    """
    return bytes(_decode(bytes(data), expected_len))


def decompress_into(data: bytes, dst) -> int:
    """Decompress into the writable buffer ``dst`` and return the length."""
    mv = memoryview(dst).cast("B")
    out = _decode(bytes(data), len(mv))
    mv[: len(out)] = out
    return len(out)


def decompressed_size(data: bytes) -> int:
    return len(_decode(bytes(data), None))
