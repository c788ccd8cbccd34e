# Magic and geometry
AFS_MAGIC = b"AFS\x00"  # 4 bytes: "AFS\0"
AFS_HEADER_SIZE = 8     # magic[4] + file count u32 LE
AFS_ENTRY_SIZE = 8      # offset u32 LE + size u32 LE
AFS_MAX_FILES = 65535
AFS_DATA_START = 0x80000  # blobs start here; the table region lies before it

BLOCK_SIZE = 2048
BLOCK_SHIFT = 11

GSL_ENTRY_SIZE = 48
GSL_NAME_LEN = 32
GSL_DEFAULT_ENTRIES = 256

# GSL byte order flags. Optional when reading (guessed if absent),
# exactly one is required when writing.
GSL_BIG_ENDIAN = 1 << 0
GSL_LITTLE_ENDIAN = 1 << 1
GSL_ENDIANNESS = GSL_BIG_ENDIAN | GSL_LITTLE_ENDIAN

# PRSD: u32 LE decompressed length, u32 LE key, then at least a minimal PRS stream
PRSD_HEADER_SIZE = 8
PRSD_MIN_SIZE = 11

U32_MAX = 0xFFFFFFFF

COPY_CHUNK_SIZE = 64 * 1024
