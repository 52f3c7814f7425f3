"""
Chunker - fixed-size file chunking with per-chunk md5 digests.

The ordered digest list is the content fingerprint (``block_list``) the
remote service uses to match and verify uploads.
"""
import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Iterator, List, Tuple

from ..models import CHUNK_SIZE, ChunkDescriptor
from .cache import ChunkSession

logger = logging.getLogger(__name__)


def iter_chunks(path: Path, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield consecutive chunks of the file; only the last may be short."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    with open(path, "rb") as f:
        while True:
            data = f.read(chunk_size)
            if not data:
                break
            yield data


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


def compute_chunk_digests(path: Path, chunk_size: int = CHUNK_SIZE) -> Tuple[List[str], int]:
    """Read-only pass: (digest per chunk, total size in bytes)."""
    digests = []
    size = 0
    for data in iter_chunks(path, chunk_size):
        digests.append(md5_hex(data))
        size += len(data)
    return digests, size


def write_chunk_files(
    path: Path,
    chunk_session: ChunkSession,
    chunk_size: int = CHUNK_SIZE,
) -> List[ChunkDescriptor]:
    """Write every chunk of `path` to its own file in the session's cache directory."""
    chunks = []
    for index, data in enumerate(iter_chunks(path, chunk_size)):
        chunk_path = chunk_session.path_for(index)
        chunk_path.write_bytes(data)
        chunks.append(ChunkDescriptor(index=index, digest=md5_hex(data), path=chunk_path))
    return chunks


class Chunker:
    """Async front end; file I/O runs in the default thread pool."""

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self._chunk_size = chunk_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    async def digest(self, path: Path) -> Tuple[List[str], int]:
        """Compute the content fingerprint and size of a file."""
        digests, size = await asyncio.to_thread(compute_chunk_digests, Path(path), self._chunk_size)
        logger.debug("%s: %d bytes in %d chunks", Path(path).name, size, len(digests))
        return digests, size

    async def materialize(self, path: Path, chunk_session: ChunkSession) -> List[ChunkDescriptor]:
        """Write chunk files for a file into the cache."""
        return await asyncio.to_thread(write_chunk_files, Path(path), chunk_session, self._chunk_size)
