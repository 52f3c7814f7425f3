"""Single file upload: precreate -> upload parts -> create."""
import logging
from pathlib import Path
from typing import Callable, List, Optional

from ..errors import ProtocolError, UploadError
from ..models import ChunkDescriptor, PartProgress, UploadJob, UploadPhase, UploadResult
from ..protocols import IRemoteUploadClient
from ..services.cache import ChunkCache
from ..services.chunker import Chunker
from ..services.retry import RetryingPartUploader

logger = logging.getLogger(__name__)

PartProgressCallback = Callable[[PartProgress], None]


class SingleUploadHandler:
    """
    Drives one file through the chunked upload protocol.

    Phases run strictly in order. If precreate reports that the remote side
    already holds identical content the file is complete and no chunk files
    are written. Chunk files written for the upload are removed on every exit.
    """

    def __init__(
        self,
        client: IRemoteUploadClient,
        credential: str,
        chunker: Chunker,
        cache: ChunkCache,
        part_uploader: RetryingPartUploader,
    ):
        """
        Initialize single upload handler.

        Args:
            client: Remote upload client (precreate / create)
            credential: Access token passed with every remote call
            chunker: Chunker producing digests and chunk files
            cache: ChunkCache for chunk file lifecycle
            part_uploader: Retrying wrapper around upload_part
        """
        self._client = client
        self._credential = credential
        self._chunker = chunker
        self._cache = cache
        self._part_uploader = part_uploader

    async def upload(
        self,
        job: UploadJob,
        progress_callback: Optional[PartProgressCallback] = None,
    ) -> UploadResult:
        """
        Upload one file.

        Returns:
            UploadResult with status SUCCESS or EXISTS

        Raises:
            UploadError: naming the file and the phase that failed
        """
        local_path = Path(job.local_path)
        remote_path = job.remote_path
        phase = UploadPhase.HASHING

        try:
            digests, size = await self._chunker.digest(local_path)
            logger.info(f"{local_path.name}: {size} bytes, {len(digests)} chunks")

            phase = UploadPhase.PRECREATING
            precreate = await self._client.precreate(self._credential, remote_path, size, digests)
            logger.debug(f"{local_path.name}: upload id {precreate.upload_id}")

            if precreate.exists:
                logger.info(f"{local_path.name}: already exists remotely, nothing to upload")
                return UploadResult.already_exists(job, remote_path)

            with self._cache.session(local_path) as chunk_session:
                phase = UploadPhase.CHUNKING
                chunks = await self._chunker.materialize(local_path, chunk_session)
                if [chunk.digest for chunk in chunks] != digests:
                    raise ProtocolError("file changed while uploading (chunk digests differ)")
                logger.debug(f"{local_path.name}: wrote {len(chunks)} chunk files")

                phase = UploadPhase.UPLOADING_PARTS
                uploaded = await self._upload_parts(
                    local_path, remote_path, precreate.upload_id, precreate.block_list,
                    chunks, size, progress_callback,
                )

                phase = UploadPhase.FINALIZING
                created = await self._client.finalize_create(
                    self._credential, precreate.upload_id, remote_path, size, digests
                )
                if created.errno != 0:
                    raise ProtocolError(f"create returned errno {created.errno}")

            final_path = created.path or remote_path
            logger.info(f"{local_path.name}: uploaded to {final_path}")
            return UploadResult.ok(job, final_path, uploaded)

        except UploadError:
            raise
        except Exception as e:
            raise UploadError(local_path, phase, e) from e

    async def _upload_parts(
        self,
        local_path: Path,
        remote_path: str,
        upload_id: str,
        block_list: List[int],
        chunks: List[ChunkDescriptor],
        size: int,
        progress_callback: Optional[PartProgressCallback],
    ) -> int:
        """Upload the parts the remote side asked for, in its order."""
        total = len(block_list)
        uploaded_bytes = 0
        for done, part_index in enumerate(block_list, 1):
            if part_index < 0 or part_index >= len(chunks):
                raise ProtocolError(
                    f"part index {part_index} out of range ({len(chunks)} chunks)"
                )

            chunk = chunks[part_index]
            logger.debug(f"{local_path.name}: uploading part {part_index + 1}/{len(chunks)}")
            result = await self._part_uploader.upload(
                self._credential, upload_id, remote_path, chunk.path, part_index
            )
            if result.md5:
                logger.debug(f"{local_path.name}: part {part_index + 1} done, md5 {result.md5}")

            uploaded_bytes += chunk.path.stat().st_size
            if progress_callback:
                progress_callback(PartProgress(
                    filename=local_path.name,
                    uploaded_parts=done,
                    total_parts=total,
                    uploaded_bytes=uploaded_bytes,
                    total_bytes=size,
                ))
        return total
