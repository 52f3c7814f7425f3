"""
Protocols (Interfaces) for Dependency Inversion.

The upload engine only talks to the remote service through these.
"""
from pathlib import Path
from typing import List, Protocol, runtime_checkable

from .models import CreateResult, PartUploadResult, PrecreateResult


@runtime_checkable
class IRemoteUploadClient(Protocol):
    """Interface for the three-phase chunked upload protocol."""

    async def precreate(
        self,
        credential: str,
        path: str,
        size: int,
        block_list: List[str],
    ) -> PrecreateResult:
        """Register an upload and learn which parts are still required."""
        ...

    async def upload_part(
        self,
        credential: str,
        upload_id: str,
        path: str,
        chunk_path: Path,
        part_index: int,
    ) -> PartUploadResult:
        """Upload one chunk file as part `part_index`."""
        ...

    async def finalize_create(
        self,
        credential: str,
        upload_id: str,
        path: str,
        size: int,
        block_list: List[str],
    ) -> CreateResult:
        """Assemble uploaded parts into the remote file."""
        ...
