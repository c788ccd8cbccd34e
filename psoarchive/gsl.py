from __future__ import annotations

import struct
from typing import BinaryIO, List, Optional, Tuple

from .archive import ArchiveReader, ArchiveWriter, Entry
from .constants import (
    BLOCK_SHIFT,
    BLOCK_SIZE,
    GSL_BIG_ENDIAN,
    GSL_DEFAULT_ENTRIES,
    GSL_ENDIANNESS,
    GSL_ENTRY_SIZE,
    GSL_LITTLE_ENDIAN,
    GSL_NAME_LEN,
)
from .errors import (
    ArchiveIOError,
    EmptyArchiveError,
    FatalError,
    InvalidArgumentError,
    NoArchiveError,
    OutOfRangeError,
)
from .streams import Source, read_exact


# Entry (fixed 48 bytes), byte order not recorded in the file:
#  - name[32], NUL padded (not terminated when 32 chars long)
#  - offset u32, in 2048-byte blocks
#  - size u32, in bytes
#  - reserved[8], zero
_GSL_ENTRY_STRUCTS = {
    GSL_BIG_ENDIAN: struct.Struct(">32sII8s"),
    GSL_LITTLE_ENDIAN: struct.Struct("<32sII8s"),
}
_GSL_GEOMETRY_STRUCTS = {
    GSL_BIG_ENDIAN: struct.Struct(">II"),
    GSL_LITTLE_ENDIAN: struct.Struct("<II"),
}


def decode_offset_size(raw: bytes, order: int) -> Tuple[int, int]:
    """Return ``(offset_blocks, size)`` from a 48-byte entry read in ``order``."""
    return _GSL_GEOMETRY_STRUCTS[order].unpack_from(raw, GSL_NAME_LEN)


def encode_entry(name: bytes, offset_blocks: int, size: int, order: int) -> bytes:
    return _GSL_ENTRY_STRUCTS[order].pack(name, offset_blocks, size, b"")


def guess_byte_order(raw: bytes, total: int) -> int:
    """Guess the byte order of an archive from its first entry.

    Big endian is tried first; if the geometry it implies does not fit inside
    an archive of ``total`` bytes the entry is read as little endian instead.
    Raises OutOfRangeError when neither reading fits.
    """
    offset, size = decode_offset_size(raw, GSL_BIG_ENDIAN)
    if offset > total or offset * BLOCK_SIZE > total or size > total:
        offset, size = decode_offset_size(raw, GSL_LITTLE_ENDIAN)
        if offset * BLOCK_SIZE > total or size > total:
            raise OutOfRangeError("first GSL entry is out of range in either byte order")
        return GSL_LITTLE_ENDIAN
    return GSL_BIG_ENDIAN


def _pinned_order(flags: int) -> Optional[int]:
    if flags & GSL_BIG_ENDIAN:
        return GSL_BIG_ENDIAN
    if flags & GSL_LITTLE_ENDIAN:
        return GSL_LITTLE_ENDIAN
    return None


def _encode_name(name: str) -> bytes:
    if isinstance(name, (bytes, bytearray)):
        raw = bytes(name)
    else:
        try:
            raw = name.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise InvalidArgumentError(f"GSL names must be latin-1: {name!r}") from exc
    return raw.split(b"\x00", 1)[0][:GSL_NAME_LEN]


class GslReader(ArchiveReader):
    """Reader for GSL archives.

    Pass GSL_BIG_ENDIAN or GSL_LITTLE_ENDIAN in ``flags`` to pin the byte
    order; otherwise it is guessed from the first entry and exposed as
    ``byte_order`` once the archive is open.
    """

    def __init__(self, source: Source, flags: int = 0, *, length: Optional[int] = None):
        super().__init__(source, flags, length=length)
        self.byte_order: Optional[int] = _pinned_order(flags)

    def _parse(self, f: BinaryIO, total: int) -> List[Entry]:
        try:
            raw = read_exact(f, GSL_ENTRY_SIZE)
        except ArchiveIOError as exc:
            raise NoArchiveError("file too short for a GSL entry") from exc
        if raw[0] == 0:
            raise EmptyArchiveError()

        order = _pinned_order(self.flags)
        if order is None:
            order = guess_byte_order(raw, total)

        first = _parse_entry(raw, order, total, 0)
        # The table spans everything up to the first blob
        max_entries = first.offset // GSL_ENTRY_SIZE
        entries: List[Entry] = [first]
        for i in range(1, max_entries):
            raw = read_exact(f, GSL_ENTRY_SIZE)
            if raw[0] == 0:
                break
            entries.append(_parse_entry(raw, order, total, i))
        self.byte_order = order
        return entries

    def lookup(self, name: str) -> Optional[int]:
        self._require_open()
        if not isinstance(name, (str, bytes, bytearray)):
            return None
        try:
            key = _encode_name(name)
        except InvalidArgumentError:
            return None
        for i, e in enumerate(self.entries):
            if e.name == key:
                return i
        return None

    def name_of(self, index: int) -> str:
        return self._entry(index).name.decode("latin-1")


def _parse_entry(raw: bytes, order: int, total: int, index: int) -> Entry:
    name, offset_blocks, size, _reserved = _GSL_ENTRY_STRUCTS[order].unpack(raw)
    offset = offset_blocks * BLOCK_SIZE
    if offset + size > total:
        raise OutOfRangeError(f"GSL entry {index} extends past end of archive")
    return Entry(offset=offset, size=size, name=name.split(b"\x00", 1)[0])


class GslWriter(ArchiveWriter):
    """Writer for GSL archives.

    ``flags`` must name exactly one byte order. The table holds 256 entries
    unless :meth:`set_table_capacity` is called before the first append; one
    slot is always kept free for the terminating zero entry.
    """

    def __init__(self, target: Source, flags: int):
        order = flags & GSL_ENDIANNESS
        if not order or order == GSL_ENDIANNESS:
            raise FatalError("GSL writer needs exactly one of GSL_BIG_ENDIAN / GSL_LITTLE_ENDIAN")
        super().__init__(target, flags)
        self.byte_order = order
        self.table_entries = GSL_DEFAULT_ENTRIES
        self.table_pos = 0
        self.data_pos = GSL_DEFAULT_ENTRIES * GSL_ENTRY_SIZE

    def set_table_capacity(self, entries: int):
        """Size the file table for ``entries`` slots (at least 256).

        The data region is rounded up to a whole block, so the resulting
        capacity (``table_entries``) may be larger than requested.
        """
        if self.used or self.closed:
            raise FatalError("file table size can only change before the first append")
        entries = max(int(entries), GSL_DEFAULT_ENTRIES)
        data_pos = entries * GSL_ENTRY_SIZE
        if data_pos & (BLOCK_SIZE - 1):
            data_pos = (data_pos + BLOCK_SIZE) & ~(BLOCK_SIZE - 1)
            entries = data_pos // GSL_ENTRY_SIZE
        self.table_entries = entries
        self.data_pos = data_pos

    def _check_capacity(self):
        if self.used >= self.table_entries - 1:
            raise FatalError("GSL file table is full")

    def _pack_entry(self, name: str, length: int) -> bytes:
        raw = _encode_name(name)
        if not raw:
            raise InvalidArgumentError("GSL entries need a non-empty name")
        return encode_entry(raw, self.data_pos >> BLOCK_SHIFT, length, self.byte_order)


def read_archive(source: Source, flags: int = 0, *, length: Optional[int] = None) -> GslReader:
    """Open a GSL archive for reading and parse its table."""
    r = GslReader(source, flags, length=length)
    r.open()
    return r


def create_archive(target: Source, flags: int) -> GslWriter:
    """Create (or truncate) a GSL archive in the given byte order."""
    w = GslWriter(target, flags)
    w.open()
    return w
