import struct
import zlib
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Iterator, Optional

from archpeek.modules.finders.archive_entry import ArchiveEntry, unix_datetime
from archpeek.modules.finders.byte_source import DEFAULT_CHUNK_SIZE, IncrementalFileReader
from archpeek.modules.finders.errors import (
    DecompressionFailure,
    NotGzip,
    TruncatedOrMalformed,
    UnsupportedVariant,
)
from archpeek.modules.finders.tar_parser import (
    BLOCK_SIZE,
    HeaderKind,
    data_blocks_size,
    decode_long_name,
    parse_tar_header,
)


GZIP_MAGIC = b"\x1f\x8b"
GZIP_METHOD_DEFLATE = 8
GZIP_BASE_HEADER_SIZE = 10

# Header flag bits (FLG byte)
FHCRC = 0x02
FEXTRA = 0x04
FNAME = 0x08
FCOMMENT = 0x10

MAX_GZIP_HEADER = 1024 * 1024
# Longest GNU long name captured by the streaming demuxer
LONG_NAME_LIMIT = 16384


# =============================================================================
# Gzip Header
# =============================================================================

@dataclass
class GzipHeader:
    """Fields of a gzip member header that describe the compressed file."""
    flags: int
    mtime: Optional[datetime]
    name: Optional[str]
    header_size: int


def _fill(reader: IncrementalFileReader, buffer: bytes, needed: int) -> bytes:
    """Pull chunks until ``buffer`` holds at least ``needed`` bytes."""
    while len(buffer) < needed:
        if needed > MAX_GZIP_HEADER:
            raise TruncatedOrMalformed("gzip header too large", archive_format="gzip")
        chunk = reader.fetch_chunk()
        if not chunk:
            raise TruncatedOrMalformed(
                "gzip header ends before its declared fields",
                archive_format="gzip",
                offset=len(buffer),
            )
        buffer += chunk
    return buffer


def _skip_zero_terminated(reader: IncrementalFileReader, buffer: bytes, pos: int) -> tuple[bytes, int, bytes]:
    """Return (buffer, position after the NUL, field bytes)."""
    while True:
        end = buffer.find(b"\x00", pos)
        if end >= 0:
            return buffer, end + 1, buffer[pos:end]
        buffer = _fill(reader, buffer, len(buffer) + 1)


def read_gzip_header(reader: IncrementalFileReader) -> tuple[GzipHeader, bytes]:
    """
    Validate and skip a gzip member header.

    Returns the parsed header and the bytes already read past it, which are
    the start of the raw DEFLATE stream.

    Raises:
        NotGzip: magic bytes 1F 8B missing
        UnsupportedVariant: compression method other than DEFLATE
        TruncatedOrMalformed: the header is cut short
    """
    buffer = reader.fetch_chunk()
    if len(buffer) < 2 or buffer[:2] != GZIP_MAGIC:
        raise NotGzip(
            "Not a gzip file (missing magic bytes)",
            archive_format="gzip",
            offset=0,
            expected=GZIP_MAGIC,
            found=buffer[:2],
        )

    buffer = _fill(reader, buffer, GZIP_BASE_HEADER_SIZE)
    method, flags, mtime = struct.unpack_from("<BBI", buffer, 2)
    if method != GZIP_METHOD_DEFLATE:
        raise UnsupportedVariant(
            f"Unsupported gzip compression method {method}",
            archive_format="gzip",
            offset=2,
        )

    pos = GZIP_BASE_HEADER_SIZE
    name = None

    if flags & FEXTRA:
        buffer = _fill(reader, buffer, pos + 2)
        extra_len = struct.unpack_from("<H", buffer, pos)[0]
        pos += 2 + extra_len
        buffer = _fill(reader, buffer, pos)

    if flags & FNAME:
        buffer, pos, raw_name = _skip_zero_terminated(reader, buffer, pos)
        name = raw_name.decode("latin-1") or None

    if flags & FCOMMENT:
        buffer, pos, _ = _skip_zero_terminated(reader, buffer, pos)

    if flags & FHCRC:
        pos += 2
        buffer = _fill(reader, buffer, pos)

    header = GzipHeader(flags=flags, mtime=unix_datetime(mtime), name=name, header_size=pos)
    return header, buffer[pos:]


# =============================================================================
# Incremental Streaming Components
# =============================================================================

class IncrementalGzipDecompressor:
    """
    Inflates a raw DEFLATE stream with bounded output per call.

    Usage:
        decompressor = IncrementalGzipDecompressor()
        for chunk in decompressor.iter_chunks(reader, first_input):
            # process chunk...
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        # Negative wbits: raw DEFLATE, the gzip header was skipped by hand
        self.decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
        self.chunk_size = chunk_size
        self.bytes_decompressed = 0

    @property
    def finished(self) -> bool:
        return self.decompressor.eof

    def feed(self, compressed_data: bytes) -> bytes:
        """
        Feed compressed data and return at most ``chunk_size`` decompressed bytes.
        Input that did not fit stays in ``unconsumed_tail``.
        """
        try:
            decompressed = self.decompressor.decompress(compressed_data, self.chunk_size)
        except zlib.error as e:
            raise DecompressionFailure(f"Decompression error: {e}", archive_format="gzip") from e
        self.bytes_decompressed += len(decompressed)
        return decompressed

    def finalize(self) -> bytes:
        """Flush whatever the inflater still holds once input has run out."""
        try:
            decompressed = self.decompressor.flush()
        except zlib.error as e:
            raise DecompressionFailure(f"Decompression error: {e}", archive_format="gzip") from e
        self.bytes_decompressed += len(decompressed)
        return decompressed

    def iter_chunks(self, reader: IncrementalFileReader, first_input: bytes = b"") -> Iterator[bytes]:
        """
        Pull-based iterator over bounded decompressed chunks.

        End of input finalizes the stream rather than raising.
        """
        pending = first_input
        while not self.finished:
            if not pending:
                pending = reader.fetch_chunk()
                if not pending:
                    # Output still buffered in the inflater, drained in bounded pieces
                    while not self.finished:
                        decompressed = self.feed(b"")
                        if not decompressed:
                            break
                        yield decompressed
                    tail = self.finalize()
                    if tail:
                        yield tail
                    return

            decompressed = self.feed(pending)
            pending = self.decompressor.unconsumed_tail
            if decompressed:
                yield decompressed


def iter_decompressed_chunks(
    reader: IncrementalFileReader,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Skip the gzip header and yield the member's decompressed chunks."""
    _, first_input = read_gzip_header(reader)
    yield from IncrementalGzipDecompressor(chunk_size).iter_chunks(reader, first_input)


# =============================================================================
# Inline Tar Demuxer
# =============================================================================

@dataclass(frozen=True)
class TarStreamState:
    """
    Position of the demuxer within the logical tar stream.

    ``position`` counts every tar byte consumed so far. Bytes before
    ``skip_until`` belong to member data and are discarded; a partial header
    block waits in ``header``.
    """
    position: int = 0
    skip_until: int = 0
    header: bytes = b""
    long_name: Optional[str] = None
    long_name_remaining: int = 0
    long_name_data: bytes = b""
    capture_long_names: bool = True
    finished: bool = False


def _on_header_block(state: TarStreamState) -> tuple[TarStreamState, Optional[ArchiveEntry]]:
    header = parse_tar_header(state.header, 0, state.long_name)
    position = state.position

    if header.kind is HeaderKind.END:
        return replace(state, header=b"", finished=True), None

    skip_until = position + data_blocks_size(header.data_size)

    if header.kind is HeaderKind.LONG_NAME:
        capture = state.capture_long_names and 0 < header.data_size <= LONG_NAME_LIMIT
        return replace(
            state,
            header=b"",
            skip_until=skip_until,
            long_name=None,
            long_name_remaining=header.data_size if capture else 0,
            long_name_data=b"",
        ), None

    long_name = None if header.consumed_long_name else state.long_name
    return replace(state, header=b"", skip_until=skip_until, long_name=long_name), header.entry


def demux_chunk(state: TarStreamState, chunk: bytes) -> tuple[TarStreamState, list[ArchiveEntry]]:
    """
    Feed one decompressed chunk through the tar header state machine.

    Member data is skipped in bulk up to ``skip_until``; only header blocks
    (and captured GNU long names) are ever copied.

    Returns:
        The updated state and the entries completed within this chunk.
    """
    entries: list[ArchiveEntry] = []
    offset = 0

    while offset < len(chunk) and not state.finished:
        available = len(chunk) - offset

        if state.long_name_remaining:
            take = min(state.long_name_remaining, available)
            data = state.long_name_data + chunk[offset:offset + take]
            remaining = state.long_name_remaining - take
            state = replace(
                state,
                position=state.position + take,
                long_name_remaining=remaining,
                long_name_data=b"" if remaining == 0 else data,
                long_name=decode_long_name(data) if remaining == 0 else state.long_name,
            )
            offset += take
            continue

        if state.position < state.skip_until:
            take = min(state.skip_until - state.position, available)
            state = replace(state, position=state.position + take)
            offset += take
            continue

        take = min(BLOCK_SIZE - len(state.header), available)
        state = replace(
            state,
            position=state.position + take,
            header=state.header + chunk[offset:offset + take],
        )
        offset += take

        if len(state.header) == BLOCK_SIZE:
            state, entry = _on_header_block(state)
            if entry is not None:
                entries.append(entry)

    return state, entries


# =============================================================================
# Gzip Peek - Incremental Streaming
# =============================================================================

@dataclass
class GzipPeekResult:
    """Result of streaming through a gzip member."""
    entries: list[ArchiveEntry]
    header: Optional[GzipHeader] = None
    bytes_read: int = 0
    bytes_decompressed: int = 0
    complete: bool = False
    state: TarStreamState = field(default_factory=TarStreamState)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "entries": [e.to_dict() for e in self.entries],
            "bytes_read": self.bytes_read,
            "bytes_decompressed": self.bytes_decompressed,
            "complete": self.complete,
        }


def peek_gzip_tar_streaming(
    reader: IncrementalFileReader,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    capture_long_names: bool = True,
) -> GzipPeekResult:
    """
    Stream a gzip-wrapped tar and parse tar headers incrementally.

    Holds one compressed chunk, one decompressed chunk and one partial
    header block at a time, so memory use does not grow with the archive.
    Decompression stops as soon as the end-of-archive block is seen.

    Args:
        reader: Sequential reader positioned at the start of the gzip file
        chunk_size: Bytes per compressed read and per decompressed chunk
        capture_long_names: Reconstruct GNU long names (up to LONG_NAME_LIMIT).
            False keeps the short header names instead.

    Returns:
        GzipPeekResult with the complete listing and stream statistics
    """
    header, first_input = read_gzip_header(reader)
    decompressor = IncrementalGzipDecompressor(chunk_size)
    state = TarStreamState(capture_long_names=capture_long_names)
    entries: list[ArchiveEntry] = []

    chunks = decompressor.iter_chunks(reader, first_input)
    try:
        for chunk in chunks:
            state, found = demux_chunk(state, chunk)
            entries.extend(found)
            if state.finished:
                break
    finally:
        chunks.close()

    return GzipPeekResult(
        entries=entries,
        header=header,
        bytes_read=reader.bytes_read,
        bytes_decompressed=decompressor.bytes_decompressed,
        complete=state.finished or decompressor.finished,
        state=state,
    )


def parse_gzip_tar_entries(
    reader: IncrementalFileReader,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    capture_long_names: bool = True,
) -> list[ArchiveEntry]:
    return peek_gzip_tar_streaming(reader, chunk_size, capture_long_names).entries


def peek_gzip_standalone(
    reader: IncrementalFileReader,
    fallback_name: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> GzipPeekResult:
    """
    Describe a standalone .gz file as one entry.

    The size is the decompressed byte count, obtained by streaming the whole
    member; name and date come from the gzip header when it records them.
    """
    header, first_input = read_gzip_header(reader)
    decompressor = IncrementalGzipDecompressor(chunk_size)

    for _ in decompressor.iter_chunks(reader, first_input):
        pass

    entry = ArchiveEntry(
        path=header.name or fallback_name,
        is_directory=False,
        uncompressed_size=decompressor.bytes_decompressed,
        modification_date=header.mtime,
    )
    return GzipPeekResult(
        entries=[entry],
        header=header,
        bytes_read=reader.bytes_read,
        bytes_decompressed=decompressor.bytes_decompressed,
        complete=decompressor.finished,
    )
