"""Keystream cipher protecting PRSD payloads.

This is the same cipher PSO for Dreamcast and PSOPC use for their network
packets: a subtractive lagged generator over 56 32-bit words, seeded from a
single 32-bit key. Data is XORed one little-endian word at a time, so the
operation is its own inverse.
"""

from __future__ import annotations

import struct

from Cryptodome.Util.strxor import strxor

from .constants import U32_MAX
from .errors import InvalidArgumentError


_STATE_WORDS = 56
_SCHEDULE_STEP = 0x15
_SCHEDULE_END = 0x46E


def _mix(state: list[int]) -> None:
    for i in range(1, 25):
        state[i] = (state[i] - state[i + 31]) & U32_MAX
    for i in range(25, 56):
        state[i] = (state[i] - state[i - 24]) & U32_MAX


class KeystreamCipher:
    """Keystream generator seeded from a 32-bit key. One instance per payload."""

    def __init__(self, key: int):
        if not isinstance(key, int) or key < 0 or key > U32_MAX:
            raise InvalidArgumentError(f"cipher key must be a 32-bit unsigned integer: {key!r}")
        self.key = key
        self.state = [0] * _STATE_WORDS
        self.state[55] = key

        acc = 1
        for i in range(_SCHEDULE_STEP, _SCHEDULE_END + 1, _SCHEDULE_STEP):
            idx = i % 55
            key = (key - acc) & U32_MAX
            self.state[idx] = acc
            acc = key
            key = self.state[idx]

        for _ in range(4):
            _mix(self.state)
        # Past the end: the first word consumed triggers a remix
        self.pos = _STATE_WORDS

    def next_word(self) -> int:
        if self.pos == _STATE_WORDS:
            _mix(self.state)
            self.pos = 1
        w = self.state[self.pos]
        self.pos += 1
        return w

    def keystream(self, nwords: int) -> bytes:
        return struct.pack(f"<{nwords}I", *(self.next_word() for _ in range(nwords)))

    def crypt(self, data: bytes) -> bytes:
        """XOR ``data`` with the keystream and return a buffer of the same length.

        The keystream is consumed in whole words; a trailing partial word
        uses the low bytes of one full keystream word.
        """
        n = len(data)
        if n == 0:
            return b""
        nwords = (n + 3) // 4
        padded = bytes(data) + b"\x00" * (nwords * 4 - n)
        return strxor(padded, self.keystream(nwords))[:n]


def crypt(data: bytes, key: int) -> bytes:
    """Encrypt or decrypt ``data`` with a fresh keystream for ``key``."""
    return KeystreamCipher(key).crypt(data)
