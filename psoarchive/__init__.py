"""
psoarchive: readers and writers for the archive formats used by Phantasy Star Online.

Features:

- AFS archives: fixed header plus a flat (offset, size) table; blobs are addressed
  by position only.
- GSL archives: 48-byte named entries with block-addressed offsets. The byte order
  is not recorded in the file, so the reader guesses it when it is not pinned.
- PRSD payloads: PRS-compressed data protected by the PSO keystream cipher, with a
  small header carrying the decompressed length and the key.

Both archive formats are write-once: create, append blobs, close. See
docs/PSO-FORMATS.md for the on-disk layouts.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "afs",
    "gsl",
    "crypt",
    "prs",
    "prsd",
]

# Importable programmatic API is available via psoarchive.afs/psoarchive.gsl/psoarchive.prsd
# and the CLI functions in psoarchive.cli (cmd_list/cmd_extract/cmd_create) which take normal parameters.
