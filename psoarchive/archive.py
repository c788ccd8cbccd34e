from __future__ import annotations

import os
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Union

from .constants import U32_MAX
from .errors import (
    FatalError,
    FileError,
    InvalidArgumentError,
    InvalidPointerError,
    OutOfRangeError,
    PsoArchiveError,
)
from .streams import (
    Source,
    copy_stream,
    open_stream,
    pad_to_block,
    read_exact,
    seek,
    stream_length,
    write_exact,
)


BytesLike = Union[bytes, bytearray, memoryview]


@dataclass
class Entry:
    offset: int  # absolute byte offset of the blob
    size: int
    name: Optional[bytes] = None  # raw name field, NUL-trimmed; None when the format has no names


def _is_path(source) -> bool:
    return isinstance(source, (str, os.PathLike))


class ArchiveReader:
    """Read handle shared by the AFS and GSL readers.

    The table is parsed in full by :meth:`open`; a failed open never leaves a
    partially populated handle behind. Blob indices run from ``0`` to
    ``count() - 1``.
    """

    def __init__(self, source: Source, flags: int = 0, *, length: Optional[int] = None):
        self.source = source
        self.flags = flags
        self.length = length
        self.f: Optional[BinaryIO] = None
        self.entries: List[Entry] = []
        self.total_length: int = 0

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.f is not None:
            self.close()

    def __len__(self) -> int:
        return len(self.entries)

    def open(self):
        if self.f is not None:
            return
        f = open_stream(self.source, "rb")
        try:
            total = stream_length(f) if self.length is None else self.length
            seek(f, 0)
            entries = self._parse(f, total)
        except (PsoArchiveError, OSError):
            # Caller file objects stay open on failure; paths and descriptors do not
            if not hasattr(self.source, "read"):
                f.close()
            raise
        self.f = f
        self.total_length = total
        self.entries = entries

    def close(self):
        if self.f is None:
            raise FatalError("archive is not open")
        f, self.f = self.f, None
        self.entries = []
        f.close()

    def _parse(self, f: BinaryIO, total: int) -> List[Entry]:
        raise NotImplementedError

    def _require_open(self) -> BinaryIO:
        if self.f is None:
            raise InvalidPointerError("archive is not open")
        return self.f

    def _entry(self, index: int) -> Entry:
        self._require_open()
        if not isinstance(index, int) or index < 0 or index >= len(self.entries):
            raise InvalidArgumentError(f"no such file handle: {index!r}")
        return self.entries[index]

    def count(self) -> int:
        return len(self.entries)

    def list(self) -> List[Entry]:
        return self.entries

    def lookup(self, name: str) -> Optional[int]:
        raise NotImplementedError

    def name_of(self, index: int) -> str:
        raise NotImplementedError

    def size_of(self, index: int) -> int:
        return self._entry(index).size

    def read(self, index: int, size: Optional[int] = None) -> bytes:
        """Return the blob at ``index``, at most ``size`` bytes of it."""
        e = self._entry(index)
        if size is not None and size <= 0:
            raise InvalidArgumentError("read size must be positive")
        n = e.size if size is None else min(e.size, size)
        f = self._require_open()
        seek(f, e.offset)
        return read_exact(f, n) if n else b""

    def read_into(self, index: int, buf) -> int:
        mv = memoryview(buf).cast("B")
        if mv.readonly:
            raise InvalidArgumentError("destination buffer is read-only")
        if len(mv) == 0:
            raise InvalidArgumentError("destination buffer is empty")
        data = self.read(index, len(mv))
        mv[: len(data)] = data
        return len(data)

    def extract(self, index: int, out_path: str):
        data = self.read(index)
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        with open(out_path, "wb") as wf:
            wf.write(data)


class ArchiveWriter:
    """Append-only write handle shared by the AFS and GSL writers.

    Life cycle: ``open()`` (or ``with``), any number of ``add*`` calls, then
    ``close()`` which finalizes the archive. Each append writes the table entry
    at ``table_pos``, the blob at ``data_pos`` and moves ``data_pos`` to the
    next block. Neither cursor ever moves backwards.
    """

    def __init__(self, target: Source, flags: int = 0):
        self.target = target
        self.flags = flags
        self.f: Optional[BinaryIO] = None
        self.used = 0
        self.table_pos = 0
        self.data_pos = 0
        self.closed = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.f is None:
            return
        if exc_type is None:
            self.close()
        else:
            self._release()

    def open(self):
        if self.f is not None:
            return
        if self.closed:
            raise FatalError("archive already closed")
        self.f = open_stream(self.target, "w+b" if _is_path(self.target) else "r+b")

    def close(self):
        if self.f is None:
            raise FatalError("archive is not open")
        self._finalize()
        self._release()

    def _release(self):
        f, self.f = self.f, None
        self.closed = True
        if f is not None:
            f.close()

    def _finalize(self):
        pass

    def _require_open(self) -> BinaryIO:
        if self.f is None:
            raise InvalidPointerError("archive is not open")
        return self.f

    def _check_capacity(self):
        raise NotImplementedError

    def _pack_entry(self, name: str, length: int) -> bytes:
        raise NotImplementedError

    def _begin_entry(self, name: str, length: int) -> BinaryIO:
        f = self._require_open()
        self._check_capacity()
        if length < 0 or length > U32_MAX:
            raise OutOfRangeError(f"blob too large for a 32-bit size field: {length}")
        if self.data_pos > U32_MAX:
            raise OutOfRangeError("archive data region exceeds 32-bit offsets")
        entry = self._pack_entry(name, length)
        seek(f, self.table_pos)
        write_exact(f, entry)
        self.table_pos += len(entry)
        self.used += 1
        seek(f, self.data_pos)
        return f

    def _end_entry(self, f: BinaryIO):
        self.data_pos = pad_to_block(f)

    def add(self, name: str, data: BytesLike):
        """Append ``data`` as a new blob called ``name``."""
        if data is None:
            raise InvalidArgumentError("data must not be None")
        f = self._begin_entry(name, len(data))
        write_exact(f, bytes(data))
        self._end_entry(f)

    def add_stream(self, name: str, src: Union[int, BinaryIO], length: int):
        """Append ``length`` bytes read from ``src`` (descriptor or file object).

        ``src`` stays open and owned by the caller.
        """
        if isinstance(src, int):
            with os.fdopen(src, "rb", buffering=0, closefd=False) as fsrc:
                self.add_stream(name, fsrc, length)
            return
        f = self._begin_entry(name, length)
        copy_stream(src, f, length)
        self._end_entry(f)

    def add_file(self, name: str, fs_path: str):
        """Append the contents of the file at ``fs_path``."""
        try:
            src = open(fs_path, "rb")
        except OSError as exc:
            raise FileError(f"cannot open {fs_path}: {exc}") from exc
        with src:
            length = stream_length(src)
            self.add_stream(name, src, length)
