from dataclasses import dataclass
from datetime import datetime
from typing import Optional

# =============================================================================
# Archive Entry Model
# =============================================================================

MACOSX_METADATA_DIR = "__MACOSX/"
RESOURCE_FORK_PREFIX = "._"


@dataclass(frozen=True)
class ArchiveEntry:
    """One logical entry (file or directory) listed inside an archive."""
    path: str
    is_directory: bool
    uncompressed_size: int
    modification_date: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "path": self.path,
            "is_directory": self.is_directory,
            "uncompressed_size": self.uncompressed_size,
            "modification_date": (
                self.modification_date.isoformat() if self.modification_date else None
            ),
        }


def is_metadata_path(path: str) -> bool:
    """
    Return True for macOS metadata that should never be listed.

    Covers the ``__MACOSX/`` tree written by Finder's "Compress" and
    AppleDouble resource-fork shadows (any path component starting with ``._``).
    """
    if path.startswith(MACOSX_METADATA_DIR):
        return True
    return any(part.startswith(RESOURCE_FORK_PREFIX) for part in path.split("/"))


def should_list(path: str) -> bool:
    """Entries with an empty name or a metadata path are filtered at parse time."""
    return bool(path) and not is_metadata_path(path)


def dos_datetime(dos_date: int, dos_time: int) -> Optional[datetime]:
    """
    Decode an MS-DOS date/time pair (shared by Zip and RAR v4).

    Date word: bits 9-15 year since 1980, bits 5-8 month, bits 0-4 day.
    Time word: bits 11-15 hour, bits 5-10 minute, bits 0-4 seconds / 2.

    Returns None when the packed fields do not form a valid calendar date
    (for example the all-zero value some archivers write).
    """
    try:
        return datetime(
            ((dos_date >> 9) & 0x7F) + 1980,
            (dos_date >> 5) & 0x0F,
            dos_date & 0x1F,
            (dos_time >> 11) & 0x1F,
            (dos_time >> 5) & 0x3F,
            min((dos_time & 0x1F) * 2, 59),
        )
    except ValueError:
        return None


def unix_datetime(timestamp: int) -> Optional[datetime]:
    """Convert a Unix timestamp to a local datetime; 0 means "no date"."""
    if timestamp <= 0:
        return None
    try:
        return datetime.fromtimestamp(timestamp)
    except (OSError, ValueError, OverflowError):
        return None
