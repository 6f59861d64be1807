# rar_parser.py
# RAR archive block parser (v4 + v5)
#
# Walks block headers with random-access reads and seeks past packed data,
# so only headers are ever read from the source.
#
# RAR v4 block: CRC16(2) + TYPE(1) + FLAGS(2) + SIZE(2) + fields...
# RAR v5 block: CRC32(4) + SIZE(vint) + TYPE(vint) + FLAGS(vint) + fields...

import struct
from typing import Optional

from archpeek.modules.finders.archive_entry import (
    ArchiveEntry,
    dos_datetime,
    should_list,
    unix_datetime,
)
from archpeek.modules.finders.byte_source import ByteSource
from archpeek.modules.finders.errors import NotValidFormat, TruncatedOrMalformed, UnsupportedVariant


RAR4_SIGNATURE = b"Rar!\x1a\x07\x00"       # 7 bytes
RAR5_SIGNATURE = b"Rar!\x1a\x07\x01\x00"   # 8 bytes

# RAR v4 block types
RAR4_BLOCK_MAIN = 0x73
RAR4_BLOCK_FILE = 0x74
RAR4_BLOCK_ENDARC = 0x7B

# RAR v4 flags
RAR4_MAIN_PASSWORD = 0x0080     # block headers are encrypted
RAR4_FILE_LARGE = 0x0100        # HIGH_PACK_SIZE / HIGH_UNP_SIZE present
RAR4_FILE_UNICODE = 0x0200      # name field is "ascii\0encoded-unicode"
RAR4_FILE_WINDOW_DIR = 0x00E0   # dictionary bits all set marks a directory
RAR4_LONG_BLOCK = 0x8000        # ADD_SIZE follows the common header

RAR4_COMMON_HEADER_SIZE = 7
RAR4_FILE_HEADER_MIN = 32
RAR4_HOST_UNIX = 3
DOS_DIRECTORY_ATTR = 0x10
UNIX_FILE_TYPE_MASK = 0o170000
UNIX_DIRECTORY = 0o040000

# RAR v5 header types
RAR5_HEADER_FILE = 2
RAR5_HEADER_ENCRYPTION = 4
RAR5_HEADER_ENDARC = 5

# RAR v5 flags
RAR5_HAS_EXTRA_AREA = 0x0001
RAR5_HAS_DATA_AREA = 0x0002
RAR5_FILE_DIRECTORY = 0x0001
RAR5_FILE_HAS_MTIME = 0x0002
RAR5_FILE_HAS_CRC32 = 0x0004

VINT_MAX_BYTES = 10  # enough for 64 bits in 7-bit groups
RAR5_PEEK_SIZE = 64


# =============================================================================
# Binary Helpers
# =============================================================================

def read_vint(data: bytes, offset: int) -> tuple[int, int]:
    """
    Read a RAR v5 variable-length integer.

    Little-endian base-128: 7 payload bits per byte, the high bit marks
    continuation. Decoding stops at the first byte without the continuation
    bit or after 10 bytes, whichever comes first.

    Returns:
        (value, bytes_consumed); bytes_consumed == 0 means no byte was available
    """
    value = 0
    shift = 0
    consumed = 0

    while consumed < VINT_MAX_BYTES and offset + consumed < len(data):
        byte = data[offset + consumed]
        consumed += 1
        value |= (byte & 0x7F) << shift
        shift += 7
        if not byte & 0x80:
            break

    return value, consumed


def _decode_name(raw: bytes) -> str:
    try:
        name = raw.decode("utf-8")
    except UnicodeDecodeError:
        name = raw.decode("latin-1")
    return name.replace("\\", "/")


def _directory_path(name: str, is_dir: bool) -> str:
    if is_dir and not name.endswith("/"):
        return name + "/"
    return name


# =============================================================================
# RAR v4
# =============================================================================

def parse_v4_file_header(header: bytes, flags: int) -> Optional[ArchiveEntry]:
    """
    Decode a complete v4 FILE_HEAD block.

    Layout after the 7-byte common header:
    PACK_SIZE(4) UNP_SIZE(4) HOST_OS(1) FILE_CRC(4) FTIME(4) UNP_VER(1)
    METHOD(1) NAME_SIZE(2) ATTR(4) [HIGH_PACK_SIZE(4) HIGH_UNP_SIZE(4)] NAME
    """
    if len(header) < RAR4_FILE_HEADER_MIN:
        return None

    unpacked_size, host_os, _, ftime, _, _, name_size, attr = struct.unpack_from(
        "<IBIIBBHI", header, 11
    )

    name_start = RAR4_FILE_HEADER_MIN
    if flags & RAR4_FILE_LARGE:
        if len(header) < name_start + 8:
            return None
        high_unpacked = struct.unpack_from("<I", header, 36)[0]
        unpacked_size |= high_unpacked << 32
        name_start += 8

    if name_start + name_size > len(header):
        return None
    raw_name = header[name_start:name_start + name_size]
    if flags & RAR4_FILE_UNICODE and b"\x00" in raw_name:
        raw_name = raw_name.split(b"\x00", 1)[0]
    file_name = _decode_name(raw_name)
    if not file_name:
        return None

    if host_os == RAR4_HOST_UNIX:
        attr_dir = (attr & UNIX_FILE_TYPE_MASK) == UNIX_DIRECTORY
    else:
        attr_dir = bool(attr & DOS_DIRECTORY_ATTR)
    is_dir = (
        attr_dir
        or (flags & RAR4_FILE_WINDOW_DIR) == RAR4_FILE_WINDOW_DIR
        or file_name.endswith("/")
    )

    path = _directory_path(file_name, is_dir)
    if not should_list(path):
        return None

    return ArchiveEntry(
        path=path,
        is_directory=is_dir,
        uncompressed_size=0 if is_dir else unpacked_size,
        modification_date=dos_datetime((ftime >> 16) & 0xFFFF, ftime & 0xFFFF),
    )


def parse_v4_entries(source: ByteSource) -> list[ArchiveEntry]:
    entries: list[ArchiveEntry] = []
    file_size = source.size
    position = len(RAR4_SIGNATURE)

    while position + RAR4_COMMON_HEADER_SIZE <= file_size:
        common = source.read(position, RAR4_COMMON_HEADER_SIZE)
        if len(common) < RAR4_COMMON_HEADER_SIZE:
            break

        _, head_type, head_flags, head_size = struct.unpack("<HBHH", common)
        if head_size < RAR4_COMMON_HEADER_SIZE or position + head_size > file_size:
            break

        if head_type == RAR4_BLOCK_ENDARC:
            break

        if head_type == RAR4_BLOCK_MAIN and head_flags & RAR4_MAIN_PASSWORD:
            raise UnsupportedVariant(
                "Encrypted RAR headers are not supported",
                archive_format="rar4",
                offset=position,
            )

        if head_type == RAR4_BLOCK_FILE and head_size >= RAR4_FILE_HEADER_MIN:
            header = source.read(position, head_size)
            if len(header) < head_size:
                break

            entry = parse_v4_file_header(header, head_flags)
            if entry is not None:
                entries.append(entry)

            # Skip the stored data, not the unpacked length
            packed_size = struct.unpack_from("<I", header, 7)[0]
            if head_flags & RAR4_FILE_LARGE and head_size >= 36:
                packed_size |= struct.unpack_from("<I", header, 32)[0] << 32
            position += head_size + packed_size
            continue

        add_size = 0
        if head_flags & RAR4_LONG_BLOCK and head_size >= 11:
            add_size = struct.unpack("<I", source.read(position + 7, 4))[0]
        position += head_size + add_size

    return entries


# =============================================================================
# RAR v5
# =============================================================================

def parse_v5_file_header(data: bytes, offset: int, end: int) -> Optional[ArchiveEntry]:
    """Decode the file-specific fields of a v5 file header in ``data[offset:end]``."""
    data = data[:end]
    pos = offset

    file_flags, n = read_vint(data, pos)
    if not n:
        return None
    pos += n

    unpacked_size, n = read_vint(data, pos)
    if not n:
        return None
    pos += n

    _, n = read_vint(data, pos)  # attributes
    if not n:
        return None
    pos += n

    mtime = None
    if file_flags & RAR5_FILE_HAS_MTIME:
        if pos + 4 > len(data):
            return None
        mtime = unix_datetime(struct.unpack_from("<I", data, pos)[0])
        pos += 4

    if file_flags & RAR5_FILE_HAS_CRC32:
        if pos + 4 > len(data):
            return None
        pos += 4

    for _ in range(2):  # compression info, host OS
        _, n = read_vint(data, pos)
        if not n:
            return None
        pos += n

    name_length, n = read_vint(data, pos)
    if not n:
        return None
    pos += n

    if pos + name_length > len(data):
        return None
    file_name = _decode_name(data[pos:pos + name_length])
    if not file_name:
        return None

    is_dir = bool(file_flags & RAR5_FILE_DIRECTORY)
    path = _directory_path(file_name, is_dir)
    if not should_list(path):
        return None

    return ArchiveEntry(
        path=path,
        is_directory=is_dir,
        uncompressed_size=0 if is_dir else unpacked_size,
        modification_date=mtime,
    )


def parse_v5_entries(source: ByteSource) -> list[ArchiveEntry]:
    entries: list[ArchiveEntry] = []
    file_size = source.size
    position = len(RAR5_SIGNATURE)

    while position + 4 <= file_size:
        peek = source.read(position, min(file_size - position, RAR5_PEEK_SIZE))
        if len(peek) < 5:
            break

        header_size, size_len = read_vint(peek, 4)
        if not size_len:
            break

        total_header_len = 4 + size_len + header_size
        if position + total_header_len > file_size:
            break

        if total_header_len <= len(peek):
            header = peek[:total_header_len]
        else:
            header = source.read(position, total_header_len)
            if len(header) < total_header_len:
                break

        pos = 4 + size_len
        header_type, n = read_vint(header, pos)
        if not n:
            break
        pos += n

        header_flags, n = read_vint(header, pos)
        if not n:
            break
        pos += n

        if header_flags & RAR5_HAS_EXTRA_AREA:
            _, n = read_vint(header, pos)
            if not n:
                break
            pos += n

        data_size = 0
        if header_flags & RAR5_HAS_DATA_AREA:
            data_size, n = read_vint(header, pos)
            if not n:
                break
            pos += n

        if header_type == RAR5_HEADER_ENDARC:
            break

        if header_type == RAR5_HEADER_ENCRYPTION:
            raise UnsupportedVariant(
                "Encrypted RAR5 headers are not supported",
                archive_format="rar5",
                offset=position,
            )

        if header_type == RAR5_HEADER_FILE:
            entry = parse_v5_file_header(header, pos, total_header_len)
            if entry is not None:
                entries.append(entry)

        position += total_header_len + data_size

    return entries


# =============================================================================
# Dispatch
# =============================================================================

def detect_rar_version(signature: bytes) -> Optional[int]:
    """Return 5 or 4 for a RAR signature prefix, None otherwise."""
    if signature.startswith(RAR5_SIGNATURE):
        return 5
    if signature.startswith(RAR4_SIGNATURE):
        return 4
    return None


def parse_rar_entries(source: ByteSource) -> list[ArchiveEntry]:
    """
    Parse RAR archive headers (v4 or v5) and return all file entries.

    Raises:
        TruncatedOrMalformed: source too small to hold a RAR signature
        NotValidFormat: neither the v4 nor the v5 signature is present
        UnsupportedVariant: the archive encrypts its headers
    """
    if source.size < len(RAR4_SIGNATURE):
        raise TruncatedOrMalformed("File too small for RAR", archive_format="rar", offset=0)

    signature = source.read(0, len(RAR5_SIGNATURE))
    version = detect_rar_version(signature)

    if version == 5:
        return parse_v5_entries(source)
    if version == 4:
        return parse_v4_entries(source)

    raise NotValidFormat(
        "Not a valid RAR file",
        archive_format="rar",
        offset=0,
        expected=RAR4_SIGNATURE,
        found=signature,
    )
