# errors.py
# Error taxonomy shared by every archive parser.
#
# Parsers raise these only when the overall structure of an archive cannot
# be established. Problems inside a single entry make the parser skip that
# entry instead.

from typing import Optional


class ArchiveError(Exception):
    """Base class for every failure raised while introspecting an archive."""

    kind = "archive_error"

    def __init__(
        self,
        message: str,
        archive_format: str = "",
        offset: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.archive_format = archive_format
        self.offset = offset

    def __str__(self) -> str:
        parts = []
        if self.archive_format:
            parts.append(f"[{self.archive_format}]")
        parts.append(self.message)
        if self.offset is not None:
            parts.append(f"(at offset {self.offset})")
        return " ".join(parts)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "format": self.archive_format,
            "message": self.message,
            "offset": self.offset,
        }


class NotValidFormat(ArchiveError):
    """Signature or magic bytes do not match the expected format."""

    kind = "not_valid_format"

    def __init__(
        self,
        message: str,
        archive_format: str = "",
        offset: Optional[int] = None,
        expected: bytes = b"",
        found: bytes = b"",
    ):
        super().__init__(message, archive_format, offset)
        self.expected = expected
        self.found = found

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["expected"] = self.expected.hex()
        data["found"] = self.found.hex()
        return data


class TruncatedOrMalformed(ArchiveError):
    """A structurally required field or region is missing or out of bounds."""

    kind = "truncated_or_malformed"


class UnsupportedVariant(ArchiveError):
    """The format was recognized but this sub-format is not implemented."""

    kind = "unsupported_variant"


class DecompressionFailure(ArchiveError):
    """The decompressor reported a failure."""

    kind = "decompression_failure"


class NotGzip(NotValidFormat):
    kind = "not_gzip"


class NotBzip2(NotValidFormat):
    kind = "not_bzip2"
