"""Exception types raised by the uploader."""
from pathlib import Path
from typing import Optional

from .models import UploadPhase


class UploaderError(RuntimeError):
    """Base class for uploader failures."""


class ConfigError(UploaderError):
    """Configuration file missing, unreadable or incomplete."""


class AuthError(UploaderError):
    """Authorization or token exchange failed."""


class RemoteAPIError(UploaderError):
    """
    Transport or HTTP failure reported by the remote upload client.

    The message text decides whether a part upload is retried.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, errno: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
        self.errno = errno


class ProtocolError(UploaderError):
    """The remote service answered in a way the upload cannot continue from."""


class RetryExhaustedError(UploaderError):
    """A part kept failing with retryable errors until attempts ran out."""

    def __init__(self, part_index: int, attempts: int, last_error: Exception):
        super().__init__(
            f"part {part_index} failed after {attempts} attempts: {last_error}"
        )
        self.part_index = part_index
        self.attempts = attempts
        self.last_error = last_error


class UploadError(UploaderError):
    """Upload of one file failed in a given phase."""

    def __init__(self, local_path: Path, phase: UploadPhase, cause: Exception):
        super().__init__(f"{Path(local_path).name}: {phase.value} failed: {_describe(cause)}")
        self.local_path = Path(local_path)
        self.phase = phase
        self.cause = cause


class FolderUploadError(UploaderError):
    """One or more files of a directory upload failed."""

    def __init__(self, failed_files: int, total_files: int):
        super().__init__(f"{failed_files} of {total_files} files failed to upload")
        self.failed_files = failed_files
        self.total_files = total_files


def _describe(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"
