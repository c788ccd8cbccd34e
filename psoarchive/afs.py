from __future__ import annotations

import struct
from typing import BinaryIO, List, Optional

from .archive import ArchiveReader, ArchiveWriter, Entry
from .constants import (
    AFS_DATA_START,
    AFS_ENTRY_SIZE,
    AFS_HEADER_SIZE,
    AFS_MAGIC,
    AFS_MAX_FILES,
)
from .errors import ArchiveIOError, FatalError, NoArchiveError, OutOfRangeError
from .streams import Source, read_exact, seek, write_exact


# Header: magic[4], file_count u32
# Entry:  offset u32, size u32 (absolute byte offset)
_AFS_HEADER_STRUCT = struct.Struct("<4sI")
_AFS_ENTRY_STRUCT = struct.Struct("<II")


class AfsReader(ArchiveReader):
    """Reader for AFS archives. Blobs have no names, only positions."""

    def _parse(self, f: BinaryIO, total: int) -> List[Entry]:
        try:
            raw = read_exact(f, AFS_HEADER_SIZE)
        except ArchiveIOError as exc:
            raise NoArchiveError("file too short for an AFS header") from exc
        magic, count = _AFS_HEADER_STRUCT.unpack(raw)
        if magic != AFS_MAGIC:
            raise NoArchiveError("Bad AFS magic")
        if count > AFS_MAX_FILES:
            raise FatalError(f"implausible AFS file count: {count}")

        entries: List[Entry] = []
        for i in range(count):
            offset, size = _AFS_ENTRY_STRUCT.unpack(read_exact(f, AFS_ENTRY_SIZE))
            if offset + size > total:
                raise OutOfRangeError(f"AFS entry {i} extends past end of archive")
            entries.append(Entry(offset=offset, size=size))
        return entries

    def lookup(self, name: str) -> Optional[int]:
        # AFS carries no file names
        return None

    def name_of(self, index: int) -> str:
        self._entry(index)
        return "%05d.bin" % index


class AfsWriter(ArchiveWriter):
    """Writer for AFS archives.

    The table grows forward from just after the header while blobs are laid
    out from ``AFS_DATA_START``. The header (magic and count) is written when
    the archive is closed.
    """

    def __init__(self, target: Source, flags: int = 0):
        super().__init__(target, flags)
        self.table_pos = AFS_HEADER_SIZE
        self.data_pos = AFS_DATA_START

    def _check_capacity(self):
        if self.used >= AFS_MAX_FILES or self.table_pos + AFS_ENTRY_SIZE > AFS_DATA_START:
            raise FatalError("AFS file table is full")

    def _pack_entry(self, name: str, length: int) -> bytes:
        return _AFS_ENTRY_STRUCT.pack(self.data_pos, length)

    def _finalize(self):
        f = self._require_open()
        seek(f, 0)
        write_exact(f, _AFS_HEADER_STRUCT.pack(AFS_MAGIC, self.used))


def read_archive(source: Source, flags: int = 0, *, length: Optional[int] = None) -> AfsReader:
    """Open an AFS archive for reading and parse its table."""
    r = AfsReader(source, flags, length=length)
    r.open()
    return r


def create_archive(target: Source, flags: int = 0) -> AfsWriter:
    """Create (or truncate) an AFS archive ready for appends."""
    w = AfsWriter(target, flags)
    w.open()
    return w
