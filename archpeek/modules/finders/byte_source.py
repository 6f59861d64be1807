# byte_source.py
# Random-access and sequential byte sources consumed by the parsers.
#
# Zip and RAR parsers only ever ask for specific (offset, length) windows,
# so a source never has to hold the whole archive in memory. The gzip path
# reads sequentially in bounded chunks instead.

import io
import os
from typing import BinaryIO, Optional, Protocol, Union


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_CHUNK_SIZE = 65536  # 64KB chunks


class ByteSource(Protocol):
    """Finite, seekable binary blob supporting random-offset reads."""

    size: int

    def read(self, offset: int, length: int) -> bytes:
        ...

    def seek_to_end(self) -> int:
        ...


class MemoryByteSource:
    """Byte source over an in-memory buffer."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.size = len(self.data)

    def read(self, offset: int, length: int) -> bytes:
        """Return up to ``length`` bytes at ``offset`` (short at end of data)."""
        if offset < 0 or length <= 0 or offset >= self.size:
            return b""
        return self.data[offset:offset + length]

    def seek_to_end(self) -> int:
        return self.size

    def __enter__(self) -> "MemoryByteSource":
        return self

    def __exit__(self, *exc) -> None:
        pass


class FileByteSource:
    """
    Byte source over a file on disk or an already-open binary handle.

    When constructed from a path the handle is owned and closed by
    ``close()`` / the context manager. A caller-supplied handle is left open.

    Usage:
        with FileByteSource("archive.zip") as source:
            tail = source.read(source.size - 22, 22)
    """

    def __init__(self, target: Union[str, os.PathLike, BinaryIO]):
        if isinstance(target, (str, os.PathLike)):
            self.handle: BinaryIO = open(target, "rb")
            self._owns_handle = True
        else:
            self.handle = target
            self._owns_handle = False
        self.size = self.seek_to_end()
        self.bytes_read = 0

    def seek_to_end(self) -> int:
        return self.handle.seek(0, io.SEEK_END)

    def read(self, offset: int, length: int) -> bytes:
        if offset < 0 or length <= 0 or offset >= self.size:
            return b""
        self.handle.seek(offset)
        data = self.handle.read(length)
        self.bytes_read += len(data)
        return data

    def close(self) -> None:
        if self._owns_handle and not self.handle.closed:
            self.handle.close()

    def __enter__(self) -> "FileByteSource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class IncrementalFileReader:
    """
    Reads a binary stream front to back in bounded chunks.

    Usage:
        reader = IncrementalFileReader(handle)
        while not reader.exhausted:
            chunk = reader.fetch_chunk()
            # process chunk...
    """

    def __init__(self, handle: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.handle = handle
        self.chunk_size = chunk_size
        self.bytes_read = 0
        self.exhausted = False

    @classmethod
    def from_bytes(cls, data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> "IncrementalFileReader":
        return cls(io.BytesIO(data), chunk_size)

    def read_next(self, max_length: Optional[int] = None) -> bytes:
        """
        Read the next chunk of at most ``max_length`` bytes.
        Returns empty bytes once the stream is exhausted.
        """
        if self.exhausted:
            return b""

        data = self.handle.read(max_length or self.chunk_size)
        if not data:
            self.exhausted = True
            return b""

        self.bytes_read += len(data)
        return data

    def fetch_chunk(self) -> bytes:
        """Fetch the next ``chunk_size`` chunk. Returns empty bytes if exhausted."""
        return self.read_next(self.chunk_size)
