"""
ChunkCache - Lifecycle of on-disk chunk files.

The cache directory is created on demand and left in place; only the chunk
files handed out by a session are removed when the session closes.
"""
import logging
import os
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from ..models import DEFAULT_CACHE_DIR_NAME

logger = logging.getLogger(__name__)


def resolve_cache_dir(cache_dir: Optional[Path] = None) -> Path:
    """Return the cache directory (override or ./.chunks), creating it if absent."""
    directory = Path(cache_dir) if cache_dir else Path.cwd() / DEFAULT_CACHE_DIR_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


class ChunkSession:
    """
    Chunk file names and cleanup for one file's upload.

    Names look like ``<basename>.<pid>.<token>.chunk.<index>`` so that
    concurrent jobs, even for files sharing a basename, never collide.
    """

    def __init__(self, directory: Path, source: Path):
        self._directory = directory
        self._source = Path(source)
        self._token = uuid.uuid4().hex[:8]
        self._created: List[Path] = []

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def created(self) -> List[Path]:
        return list(self._created)

    def path_for(self, index: int) -> Path:
        """Name for chunk `index`; the path is tracked for cleanup."""
        name = f"{self._source.name}.{os.getpid()}.{self._token}.chunk.{index}"
        path = self._directory / name
        self._created.append(path)
        return path

    def cleanup(self) -> int:
        """Remove every chunk file of this session. Returns the number removed."""
        if not self._created:
            return 0

        logger.debug("Cleaning up %d chunk files for %s", len(self._created), self._source.name)
        removed = 0
        for path in self._created:
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Could not remove chunk file %s: %s", path, e)
        self._created.clear()
        return removed


class ChunkCache:
    """Resolves the cache directory and opens per-file chunk sessions."""

    def __init__(self, cache_dir: Optional[Path] = None):
        self._requested = Path(cache_dir) if cache_dir else None
        self._directory: Optional[Path] = None

    @property
    def directory(self) -> Path:
        return self.ensure()

    def ensure(self) -> Path:
        """Make sure the cache directory exists and return it."""
        if self._directory is None or not self._directory.is_dir():
            self._directory = resolve_cache_dir(self._requested)
            logger.debug("Using chunk cache directory: %s", self._directory)
        return self._directory

    @contextmanager
    def session(self, source: Path) -> Iterator[ChunkSession]:
        """Yield a ChunkSession whose files are removed on exit, success or error."""
        chunk_session = ChunkSession(self.ensure(), source)
        try:
            yield chunk_session
        finally:
            chunk_session.cleanup()
