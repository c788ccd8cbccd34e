from __future__ import annotations

import io
import os
import struct
import tempfile
import unittest
from pathlib import Path

from psoarchive.afs import AfsReader, AfsWriter, create_archive, read_archive
from psoarchive.constants import AFS_DATA_START, BLOCK_SIZE
from psoarchive.errors import (
    FatalError,
    FileError,
    InvalidArgumentError,
    InvalidPointerError,
    NoArchiveError,
    OutOfRangeError,
)


def _build_afs(path: Path, blobs) -> Path:
    with AfsWriter(str(path)) as w:
        for i, data in enumerate(blobs):
            w.add(f"blob{i}", data)
    return path


class AfsTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_two_entry_roundtrip(self):
        def scenario(tmp_path: Path):
            first = b"0123456789"
            second = os.urandom(20)
            p = _build_afs(tmp_path / "two.afs", [first, second])
            with AfsReader(str(p)) as r:
                self.assertEqual(r.count(), 2)
                self.assertEqual(len(r), 2)
                self.assertEqual(r.size_of(0), 10)
                self.assertEqual(r.size_of(1), 20)
                buf = bytearray(20)
                self.assertEqual(r.read_into(1, buf), 20)
                self.assertEqual(bytes(buf), second)
                self.assertEqual(r.read(0), first)

        self.run_with_tmpdir(scenario)

    def test_on_disk_layout(self):
        def scenario(tmp_path: Path):
            p = _build_afs(tmp_path / "layout.afs", [b"x" * 10, b"y" * BLOCK_SIZE, b"z"])
            raw = p.read_bytes()
            self.assertEqual(raw[:4], b"AFS\x00")
            self.assertEqual(struct.unpack_from("<I", raw, 4)[0], 3)
            table = [struct.unpack_from("<II", raw, 8 + 8 * i) for i in range(3)]
            self.assertEqual(table[0], (AFS_DATA_START, 10))
            self.assertEqual(table[1], (AFS_DATA_START + BLOCK_SIZE, BLOCK_SIZE))
            # An exactly block-sized blob still advances a whole extra block
            self.assertEqual(table[2], (AFS_DATA_START + 3 * BLOCK_SIZE, 1))
            self.assertEqual(len(raw) % BLOCK_SIZE, 0)
            self.assertEqual(raw[AFS_DATA_START + BLOCK_SIZE : AFS_DATA_START + 2 * BLOCK_SIZE], b"y" * BLOCK_SIZE)

        self.run_with_tmpdir(scenario)

    def test_read_truncates_to_requested_and_blob_size(self):
        def scenario(tmp_path: Path):
            p = _build_afs(tmp_path / "t.afs", [b"abcdefghij", b"KLMNOP"])
            with AfsReader(str(p)) as r:
                self.assertEqual(r.read(0, 4), b"abcd")
                self.assertEqual(r.read(0, 1000), b"abcdefghij")
                big = bytearray(64)
                self.assertEqual(r.read_into(1, big), 6)
                self.assertEqual(bytes(big[:6]), b"KLMNOP")
                with self.assertRaises(InvalidArgumentError):
                    r.read(0, 0)
                with self.assertRaises(InvalidArgumentError):
                    r.read_into(0, bytearray())

        self.run_with_tmpdir(scenario)

    def test_names_are_positional(self):
        def scenario(tmp_path: Path):
            p = _build_afs(tmp_path / "n.afs", [b"a", b"b", b"c"])
            with AfsReader(str(p)) as r:
                self.assertEqual([r.name_of(i) for i in range(3)], ["00000.bin", "00001.bin", "00002.bin"])
                self.assertIsNone(r.lookup("blob0"))
                self.assertIsNone(r.lookup("00000.bin"))
                for e in r.list():
                    self.assertIsNone(e.name)

        self.run_with_tmpdir(scenario)

    def test_index_equal_to_count_is_rejected(self):
        def scenario(tmp_path: Path):
            p = _build_afs(tmp_path / "i.afs", [b"a", b"b"])
            with AfsReader(str(p)) as r:
                for bad in (2, -1, 99):
                    with self.assertRaises(InvalidArgumentError):
                        r.size_of(bad)
                    with self.assertRaises(InvalidArgumentError):
                        r.read(bad)
                    with self.assertRaises(InvalidArgumentError):
                        r.name_of(bad)

        self.run_with_tmpdir(scenario)

    def test_empty_and_zero_length_blobs(self):
        def scenario(tmp_path: Path):
            empty = _build_afs(tmp_path / "empty.afs", [])
            self.assertEqual(empty.read_bytes(), b"AFS\x00\x00\x00\x00\x00")
            with AfsReader(str(empty)) as r:
                self.assertEqual(r.count(), 0)

            p = _build_afs(tmp_path / "zero.afs", [b"", b"after"])
            with AfsReader(str(p)) as r:
                self.assertEqual(r.size_of(0), 0)
                self.assertEqual(r.read(0), b"")
                self.assertEqual(r.read(1), b"after")
                self.assertNotEqual(r.list()[0].offset, r.list()[1].offset)

        self.run_with_tmpdir(scenario)

    def test_missing_magic_is_not_an_archive(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "junk.bin"
            p.write_bytes(b"NOPE" + b"\x00" * 64)
            with self.assertRaises(NoArchiveError):
                read_archive(str(p))
            short = tmp_path / "short.bin"
            short.write_bytes(b"AFS")
            with self.assertRaises(NoArchiveError):
                read_archive(str(short))

        self.run_with_tmpdir(scenario)

    def test_implausible_count_is_fatal(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "huge.afs"
            p.write_bytes(b"AFS\x00" + struct.pack("<I", 70000) + b"\x00" * 64)
            with self.assertRaises(FatalError):
                read_archive(str(p))

        self.run_with_tmpdir(scenario)

    def test_out_of_range_entry_fails_whole_open(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "range.afs"
            good = struct.pack("<II", 24, 4)
            bad = struct.pack("<II", 24, 100)
            p.write_bytes(b"AFS\x00" + struct.pack("<I", 2) + good + bad + b"DATA")
            with open(p, "rb") as fh:
                r = AfsReader(fh)
                with self.assertRaises(OutOfRangeError):
                    r.open()
                self.assertEqual(r.entries, [])
                self.assertIsNone(r.f)
                # A caller-supplied stream stays open when the parse fails
                self.assertFalse(fh.closed)

        self.run_with_tmpdir(scenario)

    def test_truncated_table_is_io_error(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "trunc.afs"
            p.write_bytes(b"AFS\x00" + struct.pack("<I", 3) + struct.pack("<II", 0, 1))
            from psoarchive.errors import ArchiveIOError

            with self.assertRaises(ArchiveIOError):
                read_archive(str(p))

        self.run_with_tmpdir(scenario)

    def test_descriptor_ownership_moves_to_handle(self):
        def scenario(tmp_path: Path):
            p = _build_afs(tmp_path / "fd.afs", [b"hello"])
            fd = os.open(str(p), os.O_RDONLY)
            r = read_archive(fd)
            self.assertEqual(r.read(0), b"hello")
            r.close()
            with self.assertRaises(OSError):
                os.fstat(fd)

        self.run_with_tmpdir(scenario)

    def test_write_through_descriptor_and_streams(self):
        def scenario(tmp_path: Path):
            src = tmp_path / "payload.bin"
            payload = os.urandom(5000)
            src.write_bytes(payload)
            out = tmp_path / "fdw.afs"
            fd = os.open(str(out), os.O_RDWR | os.O_CREAT | os.O_TRUNC, 0o644)
            w = create_archive(fd)
            w.add_file("from_path", str(src))
            with open(src, "rb") as fh:
                w.add_stream("from_file_object", fh, 100)
            w.add_stream("from_bytesio", io.BytesIO(b"0123456789"), 10)
            w.close()

            with read_archive(str(out)) as r:
                self.assertEqual(r.count(), 3)
                self.assertEqual(r.read(0), payload)
                self.assertEqual(r.read(1), payload[:100])
                self.assertEqual(r.read(2), b"0123456789")

        self.run_with_tmpdir(scenario)

    def test_short_source_stream_is_io_error(self):
        def scenario(tmp_path: Path):
            from psoarchive.errors import ArchiveIOError

            w = create_archive(str(tmp_path / "short.afs"))
            with self.assertRaises(ArchiveIOError):
                w.add_stream("x", io.BytesIO(b"abc"), 10)
            w.close()

        self.run_with_tmpdir(scenario)

    def test_missing_input_file_is_file_error(self):
        def scenario(tmp_path: Path):
            with AfsWriter(str(tmp_path / "m.afs")) as w:
                with self.assertRaises(FileError):
                    w.add_file("nope", str(tmp_path / "does-not-exist"))
            with self.assertRaises(FileError):
                read_archive(str(tmp_path / "does-not-exist.afs"))

        self.run_with_tmpdir(scenario)

    def test_closed_handles(self):
        def scenario(tmp_path: Path):
            p = _build_afs(tmp_path / "c.afs", [b"a"])
            r = read_archive(str(p))
            r.close()
            with self.assertRaises(FatalError):
                r.close()
            with self.assertRaises(InvalidPointerError):
                r.read(0)

            w = create_archive(str(tmp_path / "c2.afs"))
            w.close()
            with self.assertRaises(FatalError):
                w.close()
            with self.assertRaises(InvalidPointerError):
                w.add("late", b"data")

        self.run_with_tmpdir(scenario)

    def test_table_full_at_data_region(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "full.afs"
            w = create_archive(str(p))
            # Skip ahead instead of writing 65534 real entries
            w.used = 65534
            w.table_pos = 8 + 8 * 65534
            w.add("last", b"z")
            self.assertEqual(w.used, 65535)
            self.assertEqual(w.table_pos, AFS_DATA_START)
            with self.assertRaises(FatalError):
                w.add("one too many", b"z")
            self.assertEqual(w.used, 65535)
            w.close()
            raw = p.read_bytes()
            self.assertEqual(struct.unpack_from("<4sI", raw, 0), (b"AFS\x00", 65535))
            self.assertEqual(struct.unpack_from("<II", raw, AFS_DATA_START - 8), (AFS_DATA_START, 1))

        self.run_with_tmpdir(scenario)

    def test_failed_with_block_releases_without_header(self):
        def scenario(tmp_path: Path):
            p = tmp_path / "aborted.afs"
            with self.assertRaises(RuntimeError):
                with AfsWriter(str(p)) as w:
                    w.add("a", b"payload")
                    raise RuntimeError("boom")
            self.assertIsNone(w.f)
            self.assertTrue(w.closed)
            self.assertNotEqual(p.read_bytes()[:4], b"AFS\x00")
            with self.assertRaises(NoArchiveError):
                read_archive(str(p))

        self.run_with_tmpdir(scenario)

    def test_read_into_rejects_readonly_buffer(self):
        def scenario(tmp_path: Path):
            p = _build_afs(tmp_path / "ro.afs", [b"abcd"])
            with read_archive(str(p)) as r:
                with self.assertRaises(InvalidArgumentError):
                    r.read_into(0, b"\x00" * 4)
                buf = bytearray(4)
                self.assertEqual(r.read_into(0, buf), 4)
                self.assertEqual(bytes(buf), b"abcd")

        self.run_with_tmpdir(scenario)

    def test_extract(self):
        def scenario(tmp_path: Path):
            p = _build_afs(tmp_path / "x.afs", [b"alpha", b"beta"])
            with read_archive(str(p)) as r:
                out = tmp_path / "out" / "00001.bin"
                r.extract(1, str(out))
            self.assertEqual(out.read_bytes(), b"beta")

        self.run_with_tmpdir(scenario)


if __name__ == "__main__":
    unittest.main()
