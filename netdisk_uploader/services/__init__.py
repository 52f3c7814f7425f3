"""Services for netdisk_uploader."""
from .api_client import XpanUploadClient
from .cache import ChunkCache, ChunkSession
from .chunker import Chunker
from .retry import RetryingPartUploader, RetryPolicy, is_retryable_error

__all__ = [
    "XpanUploadClient",
    "ChunkCache",
    "ChunkSession",
    "Chunker",
    "RetryPolicy",
    "RetryingPartUploader",
    "is_retryable_error",
]
