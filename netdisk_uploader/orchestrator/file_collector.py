"""File collection utilities for folder uploads."""
import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

from ..models import UploadJob

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDES = (
    ".DS_Store",
    "Thumbs.db",
    ".git",
    ".svn",
    ".hg",
    "node_modules",
    "*.tmp",
    "*.temp",
    "*~",
)


def parse_exclude_patterns(patterns: Optional[str]) -> List[str]:
    """Split a comma separated pattern list, dropping empty entries."""
    if not patterns:
        return []
    return [part.strip() for part in patterns.split(",") if part.strip()]


def should_exclude(path: Path, patterns: Iterable[str]) -> bool:
    """True if any pattern matches the base name or the full path."""
    name = Path(path).name
    full = str(path)
    for pattern in patterns:
        if fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(full, pattern):
            return True
    return False


class FileCollector:
    """Collects upload jobs from a folder tree."""

    def __init__(self, exclude_patterns: Optional[Iterable[str]] = None, keep_structure: bool = True):
        self._patterns = list(exclude_patterns or []) + list(DEFAULT_EXCLUDES)
        self._keep_structure = keep_structure

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def remote_path(self, root: Path, file_path: Path) -> str:
        """
        Remote path relative to the application prefix.

        Keep-structure: ``<root name>/<path relative to root>``.
        Flatten: ``<root name>/<file name>``; same-named files collide remotely.
        """
        if self._keep_structure:
            relative = file_path.relative_to(root).as_posix()
        else:
            relative = file_path.name
        return f"{root.name}/{relative}"

    def collect(self, folder: Path) -> List[UploadJob]:
        """
        Collect upload jobs recursively.

        Args:
            folder: Root folder to scan

        Returns:
            UploadJob list sorted by local path
        """
        root = Path(folder).resolve()
        jobs = []

        def _on_error(err: OSError) -> None:
            logger.warning(f"Cannot access {err.filename}: {err}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
            current = Path(dirpath)
            # prune excluded directories in place
            dirnames[:] = [d for d in dirnames if not should_exclude(current / d, self._patterns)]

            for filename in filenames:
                file_path = current / filename
                if should_exclude(file_path, self._patterns):
                    logger.debug(f"Skipping excluded file: {file_path}")
                    continue
                try:
                    if not file_path.is_file():
                        continue
                    job = UploadJob.from_path(file_path, self.remote_path(root, file_path))
                except OSError as e:
                    logger.warning(f"Cannot access {file_path}: {e}")
                    continue
                jobs.append(job)

        return sorted(jobs, key=lambda job: str(job.local_path))
