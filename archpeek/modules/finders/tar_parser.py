# tar_parser.py
# Manual tar header parser
#
# Parses 512-byte tar headers from decompressed data to extract file entries
# without reading file contents. The single-header classifier is shared by
# the buffer scanner below and the streaming gzip demuxer in peekers.py.

import enum
from dataclasses import dataclass
from typing import Optional

from archpeek.modules.finders.archive_entry import ArchiveEntry, should_list, unix_datetime


BLOCK_SIZE = 512
ZERO_BLOCK = b"\x00" * BLOCK_SIZE

# Typeflags
REGULAR_TYPES = (b"0", b"\x00")
DIRECTORY_TYPE = b"5"
GNU_LONG_NAME = b"L"
GNU_LONG_LINK = b"K"
PAX_TYPES = (b"x", b"g")


class HeaderKind(enum.Enum):
    END = "end"              # all-zero block, end of archive
    LONG_NAME = "long_name"  # GNU 'L': data blocks hold the next entry's name
    SKIP = "skip"            # PAX/long-link/unsupported type or filtered name
    ENTRY = "entry"          # regular file or directory


@dataclass
class TarHeader:
    """Classification of one 512-byte header block."""
    kind: HeaderKind
    data_size: int = 0
    next_offset: int = -1
    entry: Optional[ArchiveEntry] = None
    # True when a stashed long name was consumed by this header
    consumed_long_name: bool = False


def data_blocks_size(size: int) -> int:
    """Bytes occupied by ``size`` bytes of member data, rounded to whole blocks."""
    return (size + BLOCK_SIZE - 1) // BLOCK_SIZE * BLOCK_SIZE


def _parse_numeric(data: bytes, default: int = 0) -> int:
    """
    Parse a numeric header field, handling edge cases.

    Octal ASCII padded with spaces/NULs is the norm; GNU tar switches to a
    big-endian base-256 encoding (first byte has the high bit set) for
    values that do not fit. Anything else is treated as ``default``.
    """
    if data and data[0] & 0x80:
        value = data[0] & 0x3F
        for byte in data[1:]:
            value = (value << 8) | byte
        if data[0] & 0x40:
            return default
        return value
    try:
        stripped = data.split(b"\x00", 1)[0].strip()
        if not stripped:
            return default
        return int(stripped, 8)
    except (ValueError, TypeError):
        return default


def _read_string(data: bytes) -> str:
    """Read a NUL-terminated string field."""
    return data.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def decode_long_name(data: bytes) -> str:
    """Decode GNU long-name data blocks (NUL padded)."""
    return data.decode("utf-8", errors="replace").strip("\x00")


def parse_tar_header(
    data: bytes,
    offset: int = 0,
    long_name: Optional[str] = None,
) -> TarHeader:
    """
    Classify the 512-byte tar header at the given offset.

    Returns a TarHeader whose ``next_offset`` points past the header and its
    data blocks, or a header of kind END (``next_offset == -1``) for an
    all-zero or incomplete block.

    Tar header structure (POSIX ustar):
    - 0-99: filename (100 bytes, null-terminated)
    - 124-135: size (12 bytes octal)
    - 136-147: mtime (12 bytes octal)
    - 156: typeflag (1 byte)
    - 345-499: prefix (155 bytes, for long filenames)

    Args:
        data: Buffer holding at least one full block at ``offset``
        offset: Block start within ``data``
        long_name: Name stashed by a preceding GNU 'L' header, if any
    """
    if offset + BLOCK_SIZE > len(data):
        return TarHeader(kind=HeaderKind.END)

    header = data[offset:offset + BLOCK_SIZE]

    # Check for null block (end of archive)
    if header == ZERO_BLOCK:
        return TarHeader(kind=HeaderKind.END)

    typeflag = header[156:157]
    size = _parse_numeric(header[124:136], 0)
    next_offset = offset + BLOCK_SIZE + data_blocks_size(size)

    if typeflag == GNU_LONG_NAME:
        return TarHeader(kind=HeaderKind.LONG_NAME, data_size=size, next_offset=next_offset)

    if typeflag in PAX_TYPES or typeflag == GNU_LONG_LINK:
        return TarHeader(kind=HeaderKind.SKIP, data_size=size, next_offset=next_offset)

    consumed_long_name = long_name is not None
    if long_name is not None:
        name = long_name
    else:
        name = _read_string(header[0:100])
        prefix = _read_string(header[345:500])
        if prefix:
            name = f"{prefix}/{name}"

    is_dir = typeflag == DIRECTORY_TYPE or name.endswith("/")
    is_regular = typeflag in REGULAR_TYPES

    if not (is_dir or is_regular) or not should_list(name):
        return TarHeader(
            kind=HeaderKind.SKIP,
            data_size=size,
            next_offset=next_offset,
            consumed_long_name=consumed_long_name,
        )

    entry = ArchiveEntry(
        path=name,
        is_directory=is_dir,
        uncompressed_size=0 if is_dir else size,
        modification_date=unix_datetime(_parse_numeric(header[136:148], 0)),
    )
    return TarHeader(
        kind=HeaderKind.ENTRY,
        data_size=size,
        next_offset=next_offset,
        entry=entry,
        consumed_long_name=consumed_long_name,
    )


def parse_tar_entries(data: bytes) -> list[ArchiveEntry]:
    """
    Parse tar headers from raw (already decompressed) tar data.

    No signature check is performed: any run of valid or all-zero blocks is
    accepted. Scanning stops at the first all-zero block.
    """
    entries: list[ArchiveEntry] = []
    offset = 0
    long_name: Optional[str] = None

    while offset + BLOCK_SIZE <= len(data):
        header = parse_tar_header(data, offset, long_name)

        if header.kind is HeaderKind.END:
            break

        if header.kind is HeaderKind.LONG_NAME:
            name_start = offset + BLOCK_SIZE
            name_data = data[name_start:name_start + header.data_size]
            long_name = decode_long_name(name_data) if name_data else None
        else:
            if header.consumed_long_name:
                long_name = None
            if header.entry is not None:
                entries.append(header.entry)

        offset = header.next_offset

    return entries
