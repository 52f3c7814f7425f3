"""Shared fixtures: an in-memory remote upload client."""
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from netdisk_uploader.models import CreateResult, PartUploadResult, PrecreateResult


class FakeRemoteClient:
    """
    In-memory IRemoteUploadClient.

    Stores uploaded part bytes per remote path so tests can check what the
    remote side received. `part_errors` maps a part index to a list of
    exceptions raised on successive attempts.
    """

    def __init__(
        self,
        exists: bool = False,
        required: Optional[List[int]] = None,
        create_errno: int = 0,
        part_errors: Optional[Dict[int, List[Exception]]] = None,
        precreate_error: Optional[Exception] = None,
    ):
        self.exists = exists
        self.required = required
        self.create_errno = create_errno
        self.part_errors = {k: list(v) for k, v in (part_errors or {}).items()}
        self.precreate_error = precreate_error
        self.precreate_calls = []
        self.part_calls = []
        self.create_calls = []
        self.parts: Dict[str, Dict[int, bytes]] = {}
        self.seen_chunk_paths: List[Path] = []

    async def precreate(self, credential, path, size, block_list):
        self.precreate_calls.append((credential, path, size, list(block_list)))
        if self.precreate_error is not None:
            raise self.precreate_error
        required = list(range(len(block_list))) if self.required is None else list(self.required)
        return PrecreateResult(upload_id=f"upload-{len(self.precreate_calls)}", block_list=required, exists=self.exists)

    async def upload_part(self, credential, upload_id, path, chunk_path, part_index):
        self.part_calls.append((upload_id, path, part_index))
        errors = self.part_errors.get(part_index)
        if errors:
            raise errors.pop(0)
        chunk_path = Path(chunk_path)
        self.seen_chunk_paths.append(chunk_path)
        self.parts.setdefault(path, {})[part_index] = chunk_path.read_bytes()
        return PartUploadResult(md5="")

    async def finalize_create(self, credential, upload_id, path, size, block_list):
        self.create_calls.append((upload_id, path, size, list(block_list)))
        return CreateResult(errno=self.create_errno, path=path if self.create_errno == 0 else "")

    def assembled(self, path: str) -> bytes:
        parts = self.parts.get(path, {})
        return b"".join(parts[i] for i in sorted(parts))


async def no_sleep(delay: float) -> None:
    return None


@pytest.fixture
def fake_client():
    return FakeRemoteClient()


@pytest.fixture
def cache_dir(tmp_path):
    directory = tmp_path / "cache"
    directory.mkdir()
    return directory
