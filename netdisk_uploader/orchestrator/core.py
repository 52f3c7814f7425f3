"""Core orchestrator - coordinates single-file and folder uploads."""
import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional

from ..errors import FolderUploadError
from ..models import FolderUploadResult, UploadConfig, UploadJob, UploadResult
from ..protocols import IRemoteUploadClient
from ..services.cache import ChunkCache
from ..services.chunker import Chunker
from ..services.retry import RetryingPartUploader, RetryPolicy, Sleeper
from .folder_upload import FolderUploadProcess
from .single_upload import PartProgressCallback, SingleUploadHandler

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Uploads files and folders through an injected remote client.

    Usage:
        async with XpanUploadClient() as client:
            orchestrator = UploadOrchestrator(client, access_token, config)
            await orchestrator.upload_file(Path("video.mp4"), "video.mp4")
            result = await orchestrator.upload_directory(Path("photos"))
    """

    def __init__(
        self,
        client: IRemoteUploadClient,
        credential: str,
        config: Optional[UploadConfig] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            client: Remote upload client
            credential: Access token used for every remote call
            config: Upload configuration
            sleep: Backoff sleeper (tests pass a fake)
        """
        self._config = config or UploadConfig()
        self._cache = ChunkCache(self._config.cache_dir)
        policy = RetryPolicy(
            max_retries=self._config.max_retries,
            base_delay=self._config.base_retry_delay,
            max_delay=self._config.max_retry_delay,
        )
        self._single_handler = SingleUploadHandler(
            client,
            credential,
            Chunker(self._config.chunk_size),
            self._cache,
            RetryingPartUploader(client, policy, sleep=sleep),
        )

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def cache(self) -> ChunkCache:
        return self._cache

    async def upload(self, job: UploadJob, progress_callback: Optional[PartProgressCallback] = None) -> UploadResult:
        """Upload one prepared job; the remote path is placed under the app prefix."""
        self._cache.ensure()
        prefixed = UploadJob(
            local_path=job.local_path,
            remote_path=self._config.remote_path_for(job.remote_path),
            size=job.size,
            mtime=job.mtime,
        )
        return await self._single_handler.upload(prefixed, progress_callback)

    async def upload_file(
        self,
        local_path: Path,
        remote_name: Optional[str] = None,
        progress_callback: Optional[PartProgressCallback] = None,
    ) -> UploadResult:
        """
        Upload a single file.

        Raises:
            UploadError: with the failing phase and cause
        """
        local_path = Path(local_path)
        job = UploadJob.from_path(local_path, remote_name or local_path.name)
        logger.info(f"Uploading file: {local_path} -> {job.remote_path}")
        return await self.upload(job, progress_callback)

    def upload_folder(
        self,
        folder_path: Path,
        exclude_patterns: Optional[Iterable[str]] = None,
        keep_structure: bool = True,
        max_concurrency: Optional[int] = None,
    ) -> FolderUploadProcess:
        """
        Prepare a folder upload with event-based progress tracking.

        Returns a FolderUploadProcess; subscribe to its events, then await
        process.wait().
        """
        folder_path = Path(folder_path)
        if not folder_path.is_dir():
            raise NotADirectoryError(f"Not a directory: {folder_path}")
        self._cache.ensure()
        return FolderUploadProcess(
            self,
            folder_path,
            exclude_patterns=exclude_patterns,
            keep_structure=keep_structure,
            max_concurrency=max_concurrency or self._config.max_concurrency,
            progress_interval=self._config.progress_interval,
        )

    async def upload_directory(
        self,
        folder_path: Path,
        exclude_patterns: Optional[Iterable[str]] = None,
        keep_structure: bool = True,
        max_concurrency: Optional[int] = None,
    ) -> FolderUploadResult:
        """
        Upload a folder and wait for every file.

        Raises:
            FolderUploadError: after all files finished, if any failed
        """
        process = self.upload_folder(folder_path, exclude_patterns, keep_structure, max_concurrency)
        result = await process.wait()
        if not result.success:
            raise FolderUploadError(result.failed_files, result.total_files)
        return result


async def upload_file(
    client: IRemoteUploadClient,
    credential: str,
    local_path: Path,
    remote_path: Optional[str] = None,
    cache_dir: Optional[Path] = None,
    config: Optional[UploadConfig] = None,
) -> UploadResult:
    """Upload one file; errors propagate to the caller."""
    config = _with_cache_dir(config, cache_dir)
    return await UploadOrchestrator(client, credential, config).upload_file(local_path, remote_path)


async def upload_directory(
    client: IRemoteUploadClient,
    credential: str,
    root_path: Path,
    exclude_patterns: Optional[Iterable[str]] = None,
    keep_structure: bool = True,
    max_concurrency: int = 3,
    cache_dir: Optional[Path] = None,
    config: Optional[UploadConfig] = None,
) -> FolderUploadResult:
    """Upload a folder; raises FolderUploadError once all jobs finished if any failed."""
    config = _with_cache_dir(config, cache_dir)
    orchestrator = UploadOrchestrator(client, credential, config)
    return await orchestrator.upload_directory(root_path, exclude_patterns, keep_structure, max_concurrency)


def _with_cache_dir(config: Optional[UploadConfig], cache_dir: Optional[Path]) -> UploadConfig:
    config = config or UploadConfig()
    if cache_dir is None:
        return config
    return replace(config, cache_dir=Path(cache_dir))
