# bz2_parser.py
# bzip2 integration
#
# bzip2 decompression itself is an injected capability: any callable taking
# the whole compressed buffer and returning the decompressed bytes. Python's
# bz2.decompress is the default backend.

import bz2
from typing import Callable

from archpeek.modules.finders.archive_entry import ArchiveEntry
from archpeek.modules.finders.errors import DecompressionFailure, NotBzip2
from archpeek.modules.finders.tar_parser import parse_tar_entries


BZ2_MAGIC = b"BZ"

Decompressor = Callable[[bytes], bytes]


def check_bz2_magic(data: bytes) -> None:
    if len(data) < 2 or data[:2] != BZ2_MAGIC:
        raise NotBzip2(
            "Not a bzip2 file (missing magic bytes)",
            archive_format="bzip2",
            offset=0,
            expected=BZ2_MAGIC,
            found=data[:2],
        )


def decompress_bz2(data: bytes, decompress: Decompressor = bz2.decompress) -> bytes:
    """
    Validate the magic and run the injected decompressor.

    Raises:
        NotBzip2: the buffer does not start with "BZ"
        DecompressionFailure: the decompressor rejected the stream
    """
    check_bz2_magic(data)
    try:
        return decompress(data)
    except DecompressionFailure:
        raise
    except (OSError, ValueError, EOFError) as e:
        raise DecompressionFailure(
            f"bzip2 decompression failed: {e}",
            archive_format="bzip2",
        ) from e


def decompress_and_parse_tar(data: bytes, decompress: Decompressor = bz2.decompress) -> list[ArchiveEntry]:
    """Decompress a .tar.bz2 buffer and list the inner tar entries."""
    return parse_tar_entries(decompress_bz2(data, decompress))


def parse_standalone_bz2(
    data: bytes,
    name: str,
    decompress: Decompressor = bz2.decompress,
) -> list[ArchiveEntry]:
    """
    Describe a standalone .bz2 file as a single entry.

    bzip2 stores no file name or date, so the entry is named after the
    compressed file (``name``, extension already removed) and carries no date.
    """
    decompressed = decompress_bz2(data, decompress)
    return [
        ArchiveEntry(
            path=name,
            is_directory=False,
            uncompressed_size=len(decompressed),
            modification_date=None,
        )
    ]
