"""Bounded-concurrency upload of many files."""
import asyncio
import logging
from typing import List, Optional, Protocol, Set

from ..models import PartProgress, StatsSnapshot, UploadJob, UploadResult, UploadStats
from ..utils.events import (
    FILE_COMPLETE,
    FILE_FAIL,
    FILE_START,
    PART_PROGRESS,
    PROGRESS,
    EventEmitter,
)
from ..utils.formatting import format_duration, human_size

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 3
DEFAULT_PROGRESS_INTERVAL = 5.0


class FileUploader(Protocol):
    async def upload(self, job: UploadJob, progress_callback=None) -> UploadResult:
        ...


def format_progress(snapshot: StatsSnapshot) -> str:
    """One-line progress report."""
    return (
        f"Progress: {snapshot.percent:.1f}% ({snapshot.done_files}/{snapshot.total_files}) | "
        f"uploaded: {snapshot.uploaded_files} | failed: {snapshot.failed_files} | "
        f"transferred: {human_size(snapshot.uploaded_bytes)}/{human_size(snapshot.total_bytes)} | "
        f"elapsed: {format_duration(snapshot.elapsed)}"
    )


class ParallelUploadCoordinator:
    """
    Runs many single-file uploads with at most `max_concurrency` active.

    A job slot is acquired in the dispatch loop before the job's task is
    created and released when the job resolves, whatever the outcome. A failed
    file never cancels its siblings; every dispatched job is awaited.
    """

    def __init__(
        self,
        uploader: FileUploader,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        progress_interval: float = DEFAULT_PROGRESS_INTERVAL,
        events: Optional[EventEmitter] = None,
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self._uploader = uploader
        self._max_concurrency = max_concurrency
        self._progress_interval = progress_interval
        self._events = events or EventEmitter()
        self._pending: Set[asyncio.Task] = set()

    @property
    def events(self) -> EventEmitter:
        return self._events

    async def upload(self, jobs: List[UploadJob], stats: UploadStats) -> List[UploadResult]:
        """Upload all jobs; results are in dispatch order."""
        gate = asyncio.Semaphore(self._max_concurrency)
        total = len(jobs)
        logger.info(f"Starting upload: {total} files (max {self._max_concurrency} parallel)")

        reporter = asyncio.create_task(self._report_progress(stats))
        tasks: List[asyncio.Task] = []
        try:
            for idx, job in enumerate(jobs, 1):
                await gate.acquire()
                tasks.append(asyncio.create_task(self._run_job(gate, job, idx, total, stats)))
            results = await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            reporter.cancel()
            try:
                await reporter
            except asyncio.CancelledError:
                pass

        if self._pending:
            await asyncio.gather(*list(self._pending))
        snapshot = stats.snapshot()
        await self._events.emit(PROGRESS, snapshot)
        logger.info(
            f"File uploads complete: {snapshot.uploaded_files} successful, {snapshot.failed_files} failed"
        )
        return list(results)

    async def _run_job(
        self,
        gate: asyncio.Semaphore,
        job: UploadJob,
        index: int,
        total: int,
        stats: UploadStats,
    ) -> UploadResult:
        try:
            logger.info(f"[{index}/{total}] Uploading: {job.remote_path}")
            await self._events.emit(FILE_START, job)
            try:
                result = await self._uploader.upload(job, self._part_tracker(job))
            except Exception as e:
                error_msg = str(e) or type(e).__name__
                logger.error(f"[{index}/{total}] Failed: {job.remote_path} - {error_msg}")
                result = UploadResult.fail(job, error_msg, getattr(e, "phase", None))

            if result.success:
                await stats.record_success(job.size)
                logger.info(f"[{index}/{total}] Done: {job.remote_path}")
                await self._events.emit(FILE_COMPLETE, result)
            else:
                await stats.record_failure()
                await self._events.emit(FILE_FAIL, result)
            return result
        finally:
            gate.release()

    def _part_tracker(self, job: UploadJob):
        if not self._events.has_listeners(PART_PROGRESS):
            return None

        def track(progress: PartProgress) -> None:
            task = asyncio.get_running_loop().create_task(self._events.emit(PART_PROGRESS, job, progress))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        return track

    async def _report_progress(self, stats: UploadStats) -> None:
        """Emit a progress snapshot every interval until cancelled."""
        while True:
            await asyncio.sleep(self._progress_interval)
            snapshot = stats.snapshot()
            logger.info(format_progress(snapshot))
            await self._events.emit(PROGRESS, snapshot)
