"""HTTP adapter for the netdisk chunked upload API."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ProtocolError, RemoteAPIError
from ..models import CreateResult, PartUploadResult, PrecreateResult

DEFAULT_API_URL = "https://pan.baidu.com"
DEFAULT_PCS_URL = "https://d.pcs.baidu.com"
FILE_ENDPOINT = "/rest/2.0/xpan/file"
SUPERFILE_ENDPOINT = "/rest/2.0/pcs/superfile2"

RETURN_TYPE_EXISTS = 2
RTYPE_OVERWRITE = 3


class XpanUploadClient:
    """
    HTTP client adapter for precreate / upload / create.

    Implements IRemoteUploadClient. Transport failures are raised as
    RemoteAPIError whose message keeps the httpx exception name and text, so
    retry classification can see "timeout", "connection refused" and so on.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        pcs_url: str = DEFAULT_PCS_URL,
        timeout: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_url = api_url.rstrip("/")
        self._pcs_url = pcs_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def precreate(
        self,
        credential: str,
        path: str,
        size: int,
        block_list: List[str],
    ) -> PrecreateResult:
        data = await self._post(
            f"{self._api_url}{FILE_ENDPOINT}",
            params={"method": "precreate", "access_token": credential},
            data={
                "path": path,
                "size": str(size),
                "isdir": "0",
                "autoinit": "1",
                "rtype": str(RTYPE_OVERWRITE),
                "block_list": json.dumps(block_list),
            },
        )
        errno = int(data.get("errno", 0) or 0)
        if errno != 0:
            raise ProtocolError(f"precreate rejected with errno {errno}")

        return PrecreateResult(
            upload_id=str(data.get("uploadid", "")),
            block_list=[int(seq) for seq in data.get("block_list", []) or []],
            exists=int(data.get("return_type", 0) or 0) == RETURN_TYPE_EXISTS,
        )

    async def upload_part(
        self,
        credential: str,
        upload_id: str,
        path: str,
        chunk_path: Path,
        part_index: int,
    ) -> PartUploadResult:
        chunk_path = Path(chunk_path)
        content = await asyncio.to_thread(chunk_path.read_bytes)
        data = await self._post(
            f"{self._pcs_url}{SUPERFILE_ENDPOINT}",
            params={
                "method": "upload",
                "access_token": credential,
                "type": "tmpfile",
                "path": path,
                "uploadid": upload_id,
                "partseq": str(part_index),
            },
            files={"file": (chunk_path.name, content, "application/octet-stream")},
        )
        errno = int(data.get("errno", 0) or 0)
        if errno != 0:
            raise RemoteAPIError(f"upload of part {part_index} rejected with errno {errno}", errno=errno)
        return PartUploadResult(md5=str(data.get("md5", "")))

    async def finalize_create(
        self,
        credential: str,
        upload_id: str,
        path: str,
        size: int,
        block_list: List[str],
    ) -> CreateResult:
        data = await self._post(
            f"{self._api_url}{FILE_ENDPOINT}",
            params={"method": "create", "access_token": credential},
            data={
                "path": path,
                "size": str(size),
                "isdir": "0",
                "uploadid": upload_id,
                "rtype": str(RTYPE_OVERWRITE),
                "block_list": json.dumps(block_list),
            },
        )
        return CreateResult(
            errno=int(data.get("errno", 0) or 0),
            path=str(data.get("path", "") or ""),
        )

    async def _post(self, url: str, **kwargs) -> Dict[str, Any]:
        if not self._client:
            raise RuntimeError("XpanUploadClient not initialized. Use 'async with' context.")

        try:
            response = await self._client.post(url, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteAPIError(f"{type(exc).__name__}: {exc}") from exc

        if response.status_code >= 400:
            raise RemoteAPIError(
                f"{response.status_code} {response.reason_phrase}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteAPIError(f"invalid JSON response from {url}") from exc
