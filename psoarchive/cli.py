from __future__ import annotations

import argparse
import os
import sys
import time
from pathlib import Path
from typing import List, Optional

from psoarchive.afs import AfsWriter, AfsReader
from psoarchive.archive import ArchiveReader
from psoarchive.constants import AFS_MAGIC, GSL_BIG_ENDIAN, GSL_DEFAULT_ENTRIES, GSL_LITTLE_ENDIAN
from psoarchive.errors import PsoArchiveError
from psoarchive.gsl import GslReader, GslWriter
from psoarchive.pathutil import member_output_path
from psoarchive import prsd


def _sniff_format(archive: str) -> str:
    with open(archive, "rb") as fh:
        head = fh.read(len(AFS_MAGIC))
    return "afs" if head == AFS_MAGIC else "gsl"


def _open_reader(archive: str, byte_order: int = 0) -> ArchiveReader:
    if _sniff_format(archive) == "afs":
        return AfsReader(archive)
    return GslReader(archive, byte_order)


def _order_name(order: Optional[int]) -> str:
    return {GSL_BIG_ENDIAN: "big-endian", GSL_LITTLE_ENDIAN: "little-endian"}.get(order, "n/a")


def _collect_inputs(inputs: List[str]) -> List[Path]:
    files: List[Path] = []
    for raw in inputs:
        p = Path(raw)
        if p.is_dir():
            files.extend(sorted(q for q in p.iterdir() if q.is_file()))
        elif p.is_file():
            files.append(p)
        else:
            raise FileNotFoundError(f"No such file: {raw}")
    return files


def cmd_list(archive: str, *, byte_order: int = 0) -> bool:
    """List archive members.

    Args:
        archive: Path to an AFS or GSL archive.
        byte_order: GSL_BIG_ENDIAN / GSL_LITTLE_ENDIAN to pin the GSL byte order; 0 guesses.
    """
    with _open_reader(archive, byte_order) as r:
        for i in range(r.count()):
            print(f"{i}\t{r.size_of(i)}\t{r.name_of(i)}")
    return True


def cmd_info(archive: str, *, byte_order: int = 0) -> bool:
    """Show archive information."""
    with _open_reader(archive, byte_order) as r:
        print(f"Archive: {archive}")
        print(f"  Format: {'AFS' if isinstance(r, AfsReader) else 'GSL'}")
        if isinstance(r, GslReader):
            print(f"  Byte order: {_order_name(r.byte_order)}")
        print(f"  Length: {r.total_length}")
        print(f"  Files: {r.count()}")
        print(f"  Data bytes: {sum(e.size for e in r.list())}")
    return True


def cmd_extract(
    archive: str,
    *,
    outdir: str = ".",
    names: Optional[List[str]] = None,
    byte_order: int = 0,
    quiet: bool = False,
) -> bool:
    """Extract members (all, or only ``names``) into ``outdir``."""
    ok = True
    with _open_reader(archive, byte_order) as r:
        if names:
            wanted = []
            for n in names:
                idx = r.lookup(n)
                if idx is None:
                    print(f"Warning: {n}: not found in archive", file=sys.stderr)
                    ok = False
                    continue
                wanted.append(idx)
        else:
            wanted = list(range(r.count()))

        t0 = time.time()
        total = 0
        for idx in wanted:
            name = r.name_of(idx)
            try:
                out_path = member_output_path(outdir, name)
            except ValueError as exc:
                print(f"Warning: skipping unsafe member name: {exc}", file=sys.stderr)
                ok = False
                continue
            r.extract(idx, out_path)
            total += r.size_of(idx)
            if not quiet:
                print(f" extracted: {name}")
        dt = max(0.000001, time.time() - t0)
        print(f"Done: {len(wanted)} files; {total / (1024.0 * 1024.0):.2f} MiB in {dt:.1f}s")
    return ok


def cmd_create(
    output: str,
    inputs: List[str],
    *,
    fmt: str = "gsl",
    byte_order: int = 0,
    table_size: Optional[int] = None,
    quiet: bool = False,
) -> bool:
    """Create an AFS or GSL archive from files (directories contribute their top-level files).

    Args:
        output: Archive path to write (truncated if it exists).
        inputs: Files or directories to store.
        fmt: "afs" or "gsl".
        byte_order: GSL byte order flag; required for GSL.
        table_size: GSL file table slots; defaults to enough for all inputs.
    """
    files = _collect_inputs(inputs)
    if fmt == "afs":
        writer = AfsWriter(output)
    elif fmt == "gsl":
        writer = GslWriter(output, byte_order)
        wanted = table_size if table_size is not None else len(files) + 1
        if wanted > GSL_DEFAULT_ENTRIES:
            writer.set_table_capacity(wanted)
    else:
        raise ValueError(f"unknown archive format: {fmt}")

    with writer as w:
        for p in files:
            w.add_file(p.name, str(p))
            if not quiet:
                print(f" added: {p.name}")
    print(f"Done: {len(files)} files written to {output}")
    return True


def cmd_prsd_compress(src: str, dst: str, *, key: Optional[int] = None, store: bool = False) -> bool:
    """Seal ``src`` into a PRSD file at ``dst``."""
    n = prsd.compress_file(src, dst, key, store=store)
    print(f"Wrote {n} bytes to {dst}")
    return True


def cmd_prsd_decompress(src: str, dst: str) -> bool:
    """Decrypt and decompress the PRSD file ``src`` into ``dst``."""
    data = prsd.decompress_file(src)
    os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
    with open(dst, "wb") as fh:
        fh.write(data)
    print(f"Wrote {len(data)} bytes to {dst}")
    return True


def _add_order_args(ap: argparse.ArgumentParser):
    g = ap.add_mutually_exclusive_group()
    g.add_argument("--big-endian", dest="byte_order", action="store_const", const=GSL_BIG_ENDIAN, default=0, help="GSL tables are big endian")
    g.add_argument("--little-endian", dest="byte_order", action="store_const", const=GSL_LITTLE_ENDIAN, help="GSL tables are little endian")


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="psoarchive",
        description="PSO archive tool (AFS, GSL, PRSD)",
        epilog="GSL files do not record their byte order; it is guessed unless --big-endian/--little-endian is given.",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")
    _add_order_args(ap_list)

    ap_info = sub.add_parser("info", help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")
    _add_order_args(ap_info)

    ap_extract = sub.add_parser("extract", help="Extract files")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("names", nargs="*", help="Specific member names to extract (GSL only)")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    _add_order_args(ap_extract)

    ap_create = sub.add_parser("create", help="Create an archive")
    ap_create.add_argument("output", help="Output archive path")
    ap_create.add_argument("inputs", nargs="+", help="Input files/directories")
    ap_create.add_argument("--format", dest="fmt", choices=["afs", "gsl"], default="gsl", help="Archive format (default: gsl)")
    ap_create.add_argument("--table-size", type=int, help="GSL file table slots (default: fit all inputs, minimum 256)")
    ap_create.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")
    _add_order_args(ap_create)

    ap_pc = sub.add_parser("prsd-compress", help="Compress and encrypt a file as PRSD")
    ap_pc.add_argument("input", help="Input file")
    ap_pc.add_argument("output", help="Output PRSD file")
    ap_pc.add_argument("--key", type=lambda s: int(s, 16), help="Cipher key as hex (default: random)")
    ap_pc.add_argument("--store", action="store_true", help="Store without compressing (PRS literals only)")

    ap_pd = sub.add_parser("prsd-decompress", help="Decrypt and decompress a PRSD file")
    ap_pd.add_argument("input", help="Input PRSD file")
    ap_pd.add_argument("output", help="Output file")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "list":
            cmd_list(args.archive, byte_order=args.byte_order)
        elif args.cmd == "info":
            cmd_info(args.archive, byte_order=args.byte_order)
        elif args.cmd == "extract":
            ok = cmd_extract(args.archive, outdir=args.outdir, names=args.names, byte_order=args.byte_order, quiet=args.quiet)
            sys.exit(0 if ok else 1)
        elif args.cmd == "create":
            if args.fmt == "gsl" and not args.byte_order:
                print("Error: GSL archives need --big-endian or --little-endian.", file=sys.stderr)
                sys.exit(2)
            cmd_create(args.output, args.inputs, fmt=args.fmt, byte_order=args.byte_order, table_size=args.table_size, quiet=args.quiet)
        elif args.cmd == "prsd-compress":
            cmd_prsd_compress(args.input, args.output, key=args.key, store=args.store)
        elif args.cmd == "prsd-decompress":
            cmd_prsd_decompress(args.input, args.output)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except PsoArchiveError as e:
        print(f"Error: {e} ({type(e).__name__})", file=sys.stderr)
        sys.exit(2)
    except (ValueError, RuntimeError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
