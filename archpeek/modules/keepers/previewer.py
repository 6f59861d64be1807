# previewer.py
# Format dispatch and the preview pipeline
#
# Maps a file to its format (extension first, magic bytes second), runs the
# matching parser with a scoped byte source and turns the entries into a
# tree. Failures become a single human-readable message on the result.

import bz2
import enum
import os
import zlib
from datetime import datetime
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from archpeek.modules.finders.archive_entry import ArchiveEntry
from archpeek.modules.finders.byte_source import (
    DEFAULT_CHUNK_SIZE,
    FileByteSource,
    IncrementalFileReader,
)
from archpeek.modules.finders.bz2_parser import (
    Decompressor,
    decompress_and_parse_tar,
    parse_standalone_bz2,
)
from archpeek.modules.finders.errors import ArchiveError, NotValidFormat
from archpeek.modules.finders.peekers import (
    GzipPeekResult,
    peek_gzip_standalone,
    peek_gzip_tar_streaming,
)
from archpeek.modules.finders.rar_parser import parse_rar_entries
from archpeek.modules.finders.tar_parser import BLOCK_SIZE, parse_tar_entries
from archpeek.modules.finders.zip_parser import parse_zip_entries
from archpeek.modules.keepers.tree_builder import TreeNode, build_tree, child_sort_key, count_nodes


PathLike = Union[str, os.PathLike]

SNIFF_SIZE = 4096
# A bzip2 block must be read whole before any output appears
BZ2_SNIFF_SIZE = 1024 * 1024
USTAR_MAGIC = b"ustar"
USTAR_OFFSET = 257


class ArchiveFormat(enum.Enum):
    ZIP = "zip"
    TAR = "tar"
    GZIP_TAR = "tar.gz"
    GZIP = "gz"
    RAR = "rar"
    BZ2_TAR = "tar.bz2"
    BZ2 = "bz2"
    DIRECTORY = "directory"


# Longest suffixes first so ".tar.gz" wins over ".gz"
EXTENSION_FORMATS = (
    (".tar.gz", ArchiveFormat.GZIP_TAR),
    (".tar.bz2", ArchiveFormat.BZ2_TAR),
    (".tgz", ArchiveFormat.GZIP_TAR),
    (".tbz2", ArchiveFormat.BZ2_TAR),
    (".tbz", ArchiveFormat.BZ2_TAR),
    (".zip", ArchiveFormat.ZIP),
    (".tar", ArchiveFormat.TAR),
    (".rar", ArchiveFormat.RAR),
    (".gz", ArchiveFormat.GZIP),
    (".bz2", ArchiveFormat.BZ2),
)


# =============================================================================
# Data Classes for Preview Results
# =============================================================================

@dataclass
class PreviewResult:
    """Result of previewing one file or directory."""
    path: str
    format: Optional[str]
    entries_found: int
    entries: list[ArchiveEntry]
    tree: list[TreeNode]
    bytes_read: int = 0
    bytes_decompressed: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "format": self.format,
            "entries_found": self.entries_found,
            "entries": [e.to_dict() for e in self.entries],
            "tree": [node.to_dict() for node in self.tree],
            "bytes_read": self.bytes_read,
            "bytes_decompressed": self.bytes_decompressed,
            "error": self.error,
        }


@dataclass
class ParseOptions:
    """Knobs passed down to the individual parsers."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    capture_long_names: bool = True
    bz2_decompress: Decompressor = bz2.decompress
    stats: dict = field(default_factory=dict)


# =============================================================================
# Format Detection
# =============================================================================

def _looks_like_tar(block: bytes) -> bool:
    return block[USTAR_OFFSET:USTAR_OFFSET + len(USTAR_MAGIC)] == USTAR_MAGIC


def _sniff_compressed_tar(head: bytes, gzip: bool) -> bool:
    """Decompress only the first tar block of a stream and look for ustar."""
    try:
        if gzip:
            # 16 + MAX_WBITS tells zlib to expect gzip format
            block = zlib.decompressobj(16 + zlib.MAX_WBITS).decompress(head, BLOCK_SIZE)
        else:
            block = bz2.BZ2Decompressor().decompress(head, BLOCK_SIZE)
    except (zlib.error, OSError, EOFError, ValueError):
        return False
    return _looks_like_tar(block)


def sniff_format(head: bytes) -> Optional[ArchiveFormat]:
    """Guess the format from the first bytes of a file."""
    if head.startswith((b"PK\x03\x04", b"PK\x05\x06")):
        return ArchiveFormat.ZIP
    if head.startswith(b"Rar!\x1a\x07"):
        return ArchiveFormat.RAR
    if head.startswith(b"\x1f\x8b"):
        return ArchiveFormat.GZIP_TAR if _sniff_compressed_tar(head, gzip=True) else ArchiveFormat.GZIP
    if head.startswith(b"BZh"):
        return ArchiveFormat.BZ2_TAR if _sniff_compressed_tar(head, gzip=False) else ArchiveFormat.BZ2
    if _looks_like_tar(head):
        return ArchiveFormat.TAR
    return None


def format_from_name(name: str) -> Optional[ArchiveFormat]:
    lowered = name.lower()
    for suffix, fmt in EXTENSION_FORMATS:
        if lowered.endswith(suffix):
            return fmt
    return None


def detect_format(path: PathLike) -> ArchiveFormat:
    """
    Pick the parser for ``path``: directory, extension, then magic bytes.

    Raises:
        NotValidFormat: nothing recognizable
    """
    path = Path(path)
    if path.is_dir():
        return ArchiveFormat.DIRECTORY

    fmt = format_from_name(path.name)
    if fmt is not None:
        return fmt

    with open(path, "rb") as handle:
        head = handle.read(SNIFF_SIZE)
        if head.startswith(b"BZh"):
            head += handle.read(BZ2_SNIFF_SIZE - len(head))
    fmt = sniff_format(head)
    if fmt is None:
        raise NotValidFormat(
            f"Unrecognized archive format: {path.name}",
            found=head[:8],
        )
    return fmt


def strip_compression_suffix(name: str) -> str:
    """Name of the payload inside a standalone .gz / .bz2 file."""
    stem, ext = os.path.splitext(name)
    return stem if ext.lower() in (".gz", ".bz2") and stem else name


# =============================================================================
# Parsing
# =============================================================================

def _parse_gzip(path: Path, fmt: ArchiveFormat, options: ParseOptions) -> list[ArchiveEntry]:
    with open(path, "rb") as handle:
        reader = IncrementalFileReader(handle, options.chunk_size)
        if fmt is ArchiveFormat.GZIP_TAR:
            result: GzipPeekResult = peek_gzip_tar_streaming(
                reader, options.chunk_size, options.capture_long_names
            )
        else:
            result = peek_gzip_standalone(
                reader, strip_compression_suffix(path.name), options.chunk_size
            )
    options.stats["bytes_read"] = result.bytes_read
    options.stats["bytes_decompressed"] = result.bytes_decompressed
    return result.entries


def parse_archive(
    path: PathLike,
    fmt: Optional[ArchiveFormat] = None,
    options: Optional[ParseOptions] = None,
) -> list[ArchiveEntry]:
    """
    Run the parser matching ``fmt`` (detected when omitted) over ``path``.

    Every file handle is scoped to this call and closed on all exit paths.

    Raises:
        ArchiveError: the archive structure could not be established
        OSError: the file could not be read
    """
    path = Path(path)
    options = options or ParseOptions()
    fmt = fmt or detect_format(path)

    if fmt is ArchiveFormat.ZIP:
        with FileByteSource(path) as source:
            entries = parse_zip_entries(source)
            options.stats["bytes_read"] = source.bytes_read
            return entries

    if fmt is ArchiveFormat.RAR:
        with FileByteSource(path) as source:
            entries = parse_rar_entries(source)
            options.stats["bytes_read"] = source.bytes_read
            return entries

    if fmt is ArchiveFormat.TAR:
        data = path.read_bytes()
        options.stats["bytes_read"] = len(data)
        return parse_tar_entries(data)

    if fmt in (ArchiveFormat.GZIP_TAR, ArchiveFormat.GZIP):
        return _parse_gzip(path, fmt, options)

    if fmt in (ArchiveFormat.BZ2_TAR, ArchiveFormat.BZ2):
        data = path.read_bytes()
        options.stats["bytes_read"] = len(data)
        if fmt is ArchiveFormat.BZ2_TAR:
            return decompress_and_parse_tar(data, options.bz2_decompress)
        return parse_standalone_bz2(data, strip_compression_suffix(path.name), options.bz2_decompress)

    raise NotValidFormat(f"{path.name} is a directory, not an archive", archive_format=fmt.value)


# =============================================================================
# Plain Directory Listing
# =============================================================================

def list_directory(directory: PathLike, show_hidden: bool = False) -> list[TreeNode]:
    """Recursively list a folder on disk as TreeNodes, hidden entries skipped."""
    children: list[TreeNode] = []
    with os.scandir(directory) as entries:
        for child in entries:
            if not show_hidden and child.name.startswith("."):
                continue
            try:
                is_dir = child.is_dir(follow_symlinks=False)
                stat = child.stat(follow_symlinks=False)
            except OSError:
                continue

            if is_dir:
                try:
                    nested = list_directory(child.path, show_hidden)
                except OSError:
                    nested = []
                node = TreeNode(
                    name=child.name,
                    is_directory=True,
                    modification_date=_stat_datetime(stat.st_mtime),
                    children=nested,
                )
            else:
                node = TreeNode(
                    name=child.name,
                    is_directory=False,
                    size=int(stat.st_size),
                    modification_date=_stat_datetime(stat.st_mtime),
                )
            children.append(node)

    children.sort(key=child_sort_key)
    return children


def _stat_datetime(mtime: float):
    try:
        return datetime.fromtimestamp(mtime)
    except (OSError, ValueError, OverflowError):
        return None


# =============================================================================
# Preview
# =============================================================================

def preview_path(
    path: PathLike,
    fmt: Optional[ArchiveFormat] = None,
    options: Optional[ParseOptions] = None,
    verbose: bool = False,
) -> PreviewResult:
    """
    Produce the preview for a file or folder.

    Any archive error or I/O error replaces the whole result with one
    "Unable to preview" message; partial trees are never returned.

    Args:
        path: Archive file or directory to preview
        fmt: Force a format instead of detecting it
        options: Parser knobs (chunk size, long-name capture, bzip2 backend)
        verbose: Print progress lines

    Returns:
        PreviewResult with entries and tree, or with ``error`` set
    """
    path = Path(path)
    options = options or ParseOptions()

    try:
        fmt = fmt or detect_format(path)
        if verbose:
            print(f"[*] Previewing {path.name} as {fmt.value}")

        if fmt is ArchiveFormat.DIRECTORY:
            tree = list_directory(path)
            return PreviewResult(
                path=str(path),
                format=fmt.value,
                entries_found=sum(count_nodes(tree)),
                entries=[],
                tree=tree,
            )

        entries = parse_archive(path, fmt, options)
    except (ArchiveError, OSError) as e:
        message = f"Unable to preview {path.name}: {e}"
        if verbose:
            print(f"[!] {message}")
        return PreviewResult(
            path=str(path),
            format=fmt.value if fmt else None,
            entries_found=0,
            entries=[],
            tree=[],
            error=message,
        )

    tree = build_tree(entries)
    if verbose:
        print(f"[*] Found {len(entries)} entries")

    return PreviewResult(
        path=str(path),
        format=fmt.value,
        entries_found=len(entries),
        entries=entries,
        tree=tree,
        bytes_read=options.stats.get("bytes_read", 0),
        bytes_decompressed=options.stats.get("bytes_decompressed", 0),
    )
