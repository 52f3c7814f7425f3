"""
Models for netdisk_uploader.

Immutable dataclasses for jobs, protocol results and configuration, plus the
shared statistics aggregate used by concurrent directory uploads.
"""
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional


CHUNK_SIZE = 4 * 1024 * 1024  # 4 MiB
DEFAULT_APP_PATH = "/apps/netdisk_uploader/"
DEFAULT_CACHE_DIR_NAME = ".chunks"


class UploadStatus(Enum):
    """Upload operation status."""
    SUCCESS = "success"
    EXISTS = "exists"  # remote already holds identical content
    FAILED = "failed"


class UploadPhase(Enum):
    """Phases of a single-file upload."""
    HASHING = "hashing"
    PRECREATING = "precreating"
    COMPLETE = "complete"
    CHUNKING = "chunking"
    UPLOADING_PARTS = "uploading_parts"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class UploadJob:
    """One file to upload."""
    local_path: Path
    remote_path: str
    size: int = 0
    mtime: Optional[datetime] = None

    @classmethod
    def from_path(cls, local_path: Path, remote_path: str) -> "UploadJob":
        local_path = Path(local_path)
        st = local_path.stat()
        return cls(
            local_path=local_path,
            remote_path=remote_path,
            size=st.st_size,
            mtime=datetime.fromtimestamp(st.st_mtime),
        )


@dataclass(frozen=True)
class ChunkDescriptor:
    """A materialized chunk of a file."""
    index: int
    digest: str
    path: Path


@dataclass(frozen=True)
class PrecreateResult:
    """Outcome of the precreate phase."""
    upload_id: str
    block_list: List[int] = field(default_factory=list)
    exists: bool = False


@dataclass(frozen=True)
class PartUploadResult:
    md5: str = ""


@dataclass(frozen=True)
class CreateResult:
    errno: int = 0
    path: str = ""


@dataclass(frozen=True)
class PartProgress:
    """Progress of the part-upload loop for one file."""
    filename: str
    uploaded_parts: int
    total_parts: int
    uploaded_bytes: int = 0
    total_bytes: int = 0

    @property
    def percent(self) -> float:
        if self.total_parts <= 0:
            return 100.0
        return self.uploaded_parts / self.total_parts * 100


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of a single-file upload."""
    local_path: Path
    remote_path: str
    status: UploadStatus = UploadStatus.SUCCESS
    size: int = 0
    parts_uploaded: int = 0
    error: Optional[str] = None
    phase: Optional[UploadPhase] = None

    @property
    def success(self) -> bool:
        return self.status in (UploadStatus.SUCCESS, UploadStatus.EXISTS)

    @property
    def filename(self) -> str:
        return self.local_path.name

    @classmethod
    def ok(cls, job: UploadJob, remote_path: str, parts_uploaded: int):
        return cls(
            local_path=job.local_path,
            remote_path=remote_path,
            status=UploadStatus.SUCCESS,
            size=job.size,
            parts_uploaded=parts_uploaded,
            phase=UploadPhase.DONE,
        )

    @classmethod
    def already_exists(cls, job: UploadJob, remote_path: str):
        return cls(
            local_path=job.local_path,
            remote_path=remote_path,
            status=UploadStatus.EXISTS,
            size=job.size,
            phase=UploadPhase.COMPLETE,
        )

    @classmethod
    def fail(cls, job: UploadJob, error: str, phase: Optional[UploadPhase] = None):
        return cls(
            local_path=job.local_path,
            remote_path=job.remote_path,
            status=UploadStatus.FAILED,
            size=job.size,
            error=error,
            phase=phase,
        )


@dataclass(frozen=True)
class FolderUploadResult:
    """Result of a directory upload."""
    folder_name: str
    total_files: int
    uploaded_files: int
    failed_files: int
    total_bytes: int = 0
    uploaded_bytes: int = 0
    elapsed: float = 0.0
    results: List[UploadResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_files == 0

    @property
    def average_speed(self) -> float:
        """Bytes per second over the whole run."""
        if self.elapsed <= 0:
            return 0.0
        return self.uploaded_bytes / self.elapsed


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of UploadStats."""
    total_files: int
    uploaded_files: int
    failed_files: int
    total_bytes: int
    uploaded_bytes: int
    elapsed: float

    @property
    def done_files(self) -> int:
        return self.uploaded_files + self.failed_files

    @property
    def percent(self) -> float:
        if self.total_files <= 0:
            return 100.0
        return self.done_files / self.total_files * 100


@dataclass
class UploadStats:
    """
    Aggregate statistics for one directory upload.

    Shared by every job of the run; mutations go through the async record
    methods, readers use snapshot().
    """
    total_files: int = 0
    total_bytes: int = 0
    uploaded_files: int = 0
    failed_files: int = 0
    uploaded_bytes: int = 0
    start_time: float = field(default_factory=time.monotonic)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @classmethod
    def for_jobs(cls, jobs: List[UploadJob]) -> "UploadStats":
        return cls(total_files=len(jobs), total_bytes=sum(job.size for job in jobs))

    async def record_success(self, size: int) -> None:
        async with self._lock:
            self.uploaded_files += 1
            self.uploaded_bytes += size

    async def record_failure(self) -> None:
        async with self._lock:
            self.failed_files += 1

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(
            total_files=self.total_files,
            uploaded_files=self.uploaded_files,
            failed_files=self.failed_files,
            total_bytes=self.total_bytes,
            uploaded_bytes=self.uploaded_bytes,
            elapsed=time.monotonic() - self.start_time,
        )


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    app_path: str = DEFAULT_APP_PATH
    chunk_size: int = CHUNK_SIZE
    max_retries: int = 3
    base_retry_delay: float = 1.0
    max_retry_delay: float = 30.0
    max_concurrency: int = 3
    progress_interval: float = 5.0
    cache_dir: Optional[Path] = None

    def remote_path_for(self, name: str) -> str:
        """Join the application prefix and a relative remote name."""
        prefix = self.app_path.rstrip("/")
        name = name.replace("\\", "/").lstrip("/")
        return f"{prefix}/{name}" if prefix else f"/{name}"
