"""Archive header parsers and the shared entry/error types."""

from .archive_entry import ArchiveEntry, should_list
from .byte_source import FileByteSource, IncrementalFileReader, MemoryByteSource
from .errors import (
    ArchiveError,
    DecompressionFailure,
    NotBzip2,
    NotGzip,
    NotValidFormat,
    TruncatedOrMalformed,
    UnsupportedVariant,
)
from .bz2_parser import decompress_and_parse_tar, parse_standalone_bz2
from .peekers import parse_gzip_tar_entries, peek_gzip_standalone, peek_gzip_tar_streaming
from .rar_parser import parse_rar_entries
from .tar_parser import parse_tar_entries
from .zip_parser import parse_zip_entries

__all__ = [
    "ArchiveEntry",
    "should_list",
    "FileByteSource",
    "IncrementalFileReader",
    "MemoryByteSource",
    "ArchiveError",
    "DecompressionFailure",
    "NotBzip2",
    "NotGzip",
    "NotValidFormat",
    "TruncatedOrMalformed",
    "UnsupportedVariant",
    "decompress_and_parse_tar",
    "parse_standalone_bz2",
    "parse_gzip_tar_entries",
    "peek_gzip_standalone",
    "peek_gzip_tar_streaming",
    "parse_rar_entries",
    "parse_tar_entries",
    "parse_zip_entries",
]
