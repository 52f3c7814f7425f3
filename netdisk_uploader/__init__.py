"""
netdisk_uploader - chunked, retrying uploads of files and folders to a netdisk.

Usage:
    from netdisk_uploader import UploadOrchestrator, UploadConfig
    from netdisk_uploader.services import XpanUploadClient

    async with XpanUploadClient() as client:
        uploader = UploadOrchestrator(client, access_token, UploadConfig())
        result = await uploader.upload_file("video.mp4")

        process = uploader.upload_folder("photos", max_concurrency=3)
        process.on_file_complete(lambda r: print(r.remote_path))
        folder_result = await process.wait()
"""
from .errors import (
    AuthError,
    ConfigError,
    FolderUploadError,
    ProtocolError,
    RemoteAPIError,
    RetryExhaustedError,
    UploadError,
    UploaderError,
)
from .models import (
    FolderUploadResult,
    UploadConfig,
    UploadJob,
    UploadPhase,
    UploadResult,
    UploadStatus,
)
from .orchestrator import FolderUploadProcess, UploadOrchestrator, upload_directory, upload_file
from .protocols import IRemoteUploadClient

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "FolderUploadProcess",
    "upload_file",
    "upload_directory",
    "IRemoteUploadClient",
    # Models
    "UploadConfig",
    "UploadJob",
    "UploadPhase",
    "UploadResult",
    "UploadStatus",
    "FolderUploadResult",
    # Errors
    "UploaderError",
    "ConfigError",
    "AuthError",
    "RemoteAPIError",
    "ProtocolError",
    "RetryExhaustedError",
    "UploadError",
    "FolderUploadError",
]
