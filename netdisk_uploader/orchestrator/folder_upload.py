"""Folder upload: collect files, upload them in parallel, report progress."""
import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..models import FolderUploadResult, PartProgress, StatsSnapshot, UploadJob, UploadResult, UploadStats
from ..utils.events import (
    ERROR,
    FILE_COMPLETE,
    FILE_FAIL,
    FILE_START,
    FINISH,
    PART_PROGRESS,
    PROGRESS,
    EventEmitter,
)
from .file_collector import FileCollector
from .parallel_upload import FileUploader, ParallelUploadCoordinator

logger = logging.getLogger(__name__)


class ProcessState(Enum):
    """State of upload process."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FolderUploadProcess:
    """
    Process object for folder uploads with event-based progress tracking.

    Usage:
        process = orchestrator.upload_folder(folder_path)
        process.on_file_start(lambda job: print(f"Starting: {job.remote_path}"))
        process.on_file_complete(lambda result: print(f"Done: {result.filename}"))
        process.on_progress(lambda snapshot: print(f"{snapshot.percent:.1f}%"))
        result = await process.wait()
    """

    def __init__(
        self,
        uploader: FileUploader,
        folder_path: Path,
        exclude_patterns: Optional[Iterable[str]] = None,
        keep_structure: bool = True,
        max_concurrency: int = 3,
        progress_interval: float = 5.0,
    ):
        self._uploader = uploader
        self._folder_path = Path(folder_path)
        self._collector = FileCollector(exclude_patterns, keep_structure)
        self._max_concurrency = max_concurrency
        self._progress_interval = progress_interval
        self._events = EventEmitter()
        self._state = ProcessState.PENDING
        self._task: Optional[asyncio.Task] = None
        self._stats: Optional[UploadStats] = None
        self._result: Optional[FolderUploadResult] = None

    # Event subscription methods
    def on_file_start(self, callback: Callable[[UploadJob], None]):
        """Called when a file starts uploading. Receives UploadJob."""
        self._events.on(FILE_START, callback)

    def on_part_progress(self, callback: Callable[[UploadJob, PartProgress], None]):
        """Called after each uploaded part. Receives UploadJob and PartProgress."""
        self._events.on(PART_PROGRESS, callback)

    def on_file_complete(self, callback: Callable[[UploadResult], None]):
        """Called when a file completes successfully. Receives UploadResult."""
        self._events.on(FILE_COMPLETE, callback)

    def on_file_fail(self, callback: Callable[[UploadResult], None]):
        """Called when a file fails. Receives UploadResult."""
        self._events.on(FILE_FAIL, callback)

    def on_progress(self, callback: Callable[[StatsSnapshot], None]):
        """Called periodically with a StatsSnapshot."""
        self._events.on(PROGRESS, callback)

    def on_finish(self, callback: Callable[[FolderUploadResult], None]):
        """Called when all uploads complete. Receives FolderUploadResult."""
        self._events.on(FINISH, callback)

    def on_error(self, callback: Callable[[Exception], None]):
        """Called when the folder could not be processed at all."""
        self._events.on(ERROR, callback)

    # Control methods
    async def start(self):
        """Start the upload process (non-blocking)."""
        if self._state != ProcessState.PENDING:
            raise RuntimeError(f"Cannot start process in state: {self._state}")
        self._state = ProcessState.RUNNING
        self._task = asyncio.create_task(self._run())

    async def wait(self) -> FolderUploadResult:
        """Wait for the upload process to complete and return result."""
        if self._state == ProcessState.PENDING:
            await self.start()
        if self._task:
            await self._task
        return self._result

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def stats(self) -> Optional[StatsSnapshot]:
        """Current statistics, None before files were collected."""
        return self._stats.snapshot() if self._stats else None

    @property
    def result(self) -> Optional[FolderUploadResult]:
        return self._result

    async def _run(self):
        try:
            logger.info(f"Scanning files in {self._folder_path}...")
            jobs = await asyncio.to_thread(self._collector.collect, self._folder_path)
            self._stats = UploadStats.for_jobs(jobs)

            if not jobs:
                logger.info("No files to upload")
                results = []
            else:
                logger.info(f"Found {len(jobs)} files, {self._stats.total_bytes} bytes")
                coordinator = ParallelUploadCoordinator(
                    self._uploader,
                    max_concurrency=self._max_concurrency,
                    progress_interval=self._progress_interval,
                    events=self._events,
                )
                results = await coordinator.upload(jobs, self._stats)

            snapshot = self._stats.snapshot()
            self._result = FolderUploadResult(
                folder_name=self._folder_path.name,
                total_files=snapshot.total_files,
                uploaded_files=snapshot.uploaded_files,
                failed_files=snapshot.failed_files,
                total_bytes=snapshot.total_bytes,
                uploaded_bytes=snapshot.uploaded_bytes,
                elapsed=snapshot.elapsed,
                results=results,
            )
            self._state = ProcessState.COMPLETED
            await self._events.emit(FINISH, self._result)

        except Exception as e:
            self._state = ProcessState.FAILED
            logger.error(f"Upload process failed: {e}", exc_info=True)
            await self._events.emit(ERROR, e)
            raise
