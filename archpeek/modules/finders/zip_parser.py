# zip_parser.py
# Zip central-directory parser
#
# Locates the End-Of-Central-Directory record in the trailing window of the
# archive and reads only the central directory, never the packed file data.

import struct
from typing import Optional

from archpeek.modules.finders.archive_entry import ArchiveEntry, dos_datetime, should_list
from archpeek.modules.finders.byte_source import ByteSource
from archpeek.modules.finders.errors import NotValidFormat


# =============================================================================
# Record Layout
# =============================================================================

EOCD_SIGNATURE = 0x06054B50
ZIP64_LOCATOR_SIGNATURE = 0x07064B50
ZIP64_EOCD_SIGNATURE = 0x06064B50
CENTRAL_HEADER_SIGNATURE = 0x02014B50
ZIP64_EXTRA_TAG = 0x0001

EOCD_SIZE = 22
ZIP64_LOCATOR_SIZE = 20
ZIP64_EOCD_SIZE = 56
CENTRAL_HEADER_SIZE = 46
MAX_COMMENT_SIZE = 65535
MAX_EOCD_SEARCH = EOCD_SIZE + MAX_COMMENT_SIZE  # 65557 bytes

UINT16_SENTINEL = 0xFFFF
UINT32_SENTINEL = 0xFFFFFFFF

FLAG_UTF8_NAME = 0x0800

# sig, disk, cd_disk, disk_entries, total_entries, cd_size, cd_offset, comment_len
_EOCD = struct.Struct("<IHHHHIIH")
# sig, disk_with_zip64_eocd, zip64_eocd_offset, total_disks
_ZIP64_LOCATOR = struct.Struct("<IIQI")
# sig, record_size, made_by, needed, disk, cd_disk, disk_entries, total_entries, cd_size, cd_offset
_ZIP64_EOCD = struct.Struct("<IQHHIIQQQQ")
# sig, made_by, needed, flags, method, time, date, crc, csize, usize,
# name_len, extra_len, comment_len, disk, int_attr, ext_attr, local_offset
_CENTRAL_HEADER = struct.Struct("<IHHHHHHIIIHHHHHII")


def find_eocd(window: bytes) -> int:
    """
    Scan backward for the EOCD signature.

    Returns the offset of the record within ``window`` or -1 when absent.
    Only positions leaving room for a full 22-byte record are considered.
    """
    last_start = len(window) - EOCD_SIZE
    if last_start < 0:
        return -1
    return window.rfind(struct.pack("<I", EOCD_SIGNATURE), 0, last_start + 4)


def _read_zip64_eocd(source: ByteSource, eocd_offset: int) -> Optional[tuple[int, int, int]]:
    """
    Follow the Zip64 locator (20 bytes before the EOCD) to the Zip64 EOCD.

    Returns (entry_count, cd_size, cd_offset) or None if either record is absent.
    """
    locator_offset = eocd_offset - ZIP64_LOCATOR_SIZE
    if locator_offset < 0:
        return None

    locator = source.read(locator_offset, ZIP64_LOCATOR_SIZE)
    if len(locator) < ZIP64_LOCATOR_SIZE:
        return None
    signature, _, zip64_offset, _ = _ZIP64_LOCATOR.unpack(locator)
    if signature != ZIP64_LOCATOR_SIGNATURE:
        return None

    record = source.read(zip64_offset, ZIP64_EOCD_SIZE)
    if len(record) < ZIP64_EOCD_SIZE:
        return None
    fields = _ZIP64_EOCD.unpack(record)
    if fields[0] != ZIP64_EOCD_SIGNATURE:
        return None

    entry_count, cd_size, cd_offset = fields[7], fields[8], fields[9]
    return entry_count, cd_size, cd_offset


def find_zip64_uncompressed_size(extra: bytes) -> Optional[int]:
    """
    Scan an extra-field list for the Zip64 extended-information tag.

    The 64-bit uncompressed size is the first value in that record whenever
    the 32-bit field holds the sentinel.
    """
    pos = 0
    while pos + 4 <= len(extra):
        header_id, data_size = struct.unpack_from("<HH", extra, pos)
        if header_id == ZIP64_EXTRA_TAG and pos + 4 + 8 <= len(extra):
            return struct.unpack_from("<Q", extra, pos + 4)[0]
        pos += 4 + data_size
    return None


def _decode_name(raw: bytes, flags: int) -> str:
    if flags & FLAG_UTF8_NAME:
        return raw.decode("utf-8", errors="replace")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("cp437")


def parse_central_directory(cd: bytes, entry_count: int) -> list[ArchiveEntry]:
    """
    Iterate fixed 46-byte central-directory headers.

    Iteration stops early (without error) on a record that fails signature
    validation or overruns the buffer.
    """
    entries: list[ArchiveEntry] = []
    offset = 0

    for _ in range(entry_count):
        if offset + CENTRAL_HEADER_SIZE > len(cd):
            break

        fields = _CENTRAL_HEADER.unpack_from(cd, offset)
        if fields[0] != CENTRAL_HEADER_SIGNATURE:
            break

        flags = fields[3]
        mod_time, mod_date = fields[5], fields[6]
        uncompressed_size = fields[9]
        name_len, extra_len, comment_len = fields[10], fields[11], fields[12]

        name_start = offset + CENTRAL_HEADER_SIZE
        if name_start + name_len > len(cd):
            break
        file_name = _decode_name(cd[name_start:name_start + name_len], flags)

        # Zip64 extra field carries the real size when the 32-bit one overflows
        if uncompressed_size == UINT32_SENTINEL:
            extra_start = name_start + name_len
            extra_end = extra_start + extra_len
            if extra_end <= len(cd):
                zip64_size = find_zip64_uncompressed_size(cd[extra_start:extra_end])
                if zip64_size is not None:
                    uncompressed_size = zip64_size

        if should_list(file_name):
            entries.append(ArchiveEntry(
                path=file_name,
                is_directory=file_name.endswith("/"),
                uncompressed_size=uncompressed_size,
                modification_date=dos_datetime(mod_date, mod_time),
            ))

        offset = name_start + name_len + extra_len + comment_len

    return entries


def parse_zip_entries(source: ByteSource) -> list[ArchiveEntry]:
    """
    Parse the zip central directory and return all entries.

    Reads at most the trailing 65,557 bytes to locate the EOCD record and
    then exactly the central-directory byte range.

    Raises:
        NotValidFormat: no End-Of-Central-Directory record was found
    """
    total_size = source.size
    window_start = max(0, total_size - MAX_EOCD_SEARCH)
    window = source.read(window_start, total_size - window_start)

    eocd_index = find_eocd(window)
    if eocd_index < 0:
        raise NotValidFormat(
            "Not a valid zip file (End-Of-Central-Directory record not found)",
            archive_format="zip",
            expected=struct.pack("<I", EOCD_SIGNATURE),
            found=window[-4:],
        )

    _, _, _, _, entry_count, cd_size, cd_offset, _ = _EOCD.unpack_from(window, eocd_index)

    if (
        entry_count == UINT16_SENTINEL
        or cd_offset == UINT32_SENTINEL
        or cd_size == UINT32_SENTINEL
    ):
        zip64 = _read_zip64_eocd(source, window_start + eocd_index)
        if zip64 is not None:
            entry_count, cd_size, cd_offset = zip64

    if cd_size == 0 or cd_size > total_size:
        return []

    cd = source.read(cd_offset, cd_size)
    return parse_central_directory(cd, entry_count)
