"""
Retrying part uploads.

A part upload is attempted up to ``max_retries + 1`` times with exponential
backoff between attempts. Only errors that look like transient network or
server failures are retried; anything else is raised at once.
"""
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

from ..errors import RetryExhaustedError
from ..models import PartUploadResult
from ..protocols import IRemoteUploadClient

logger = logging.getLogger(__name__)

RETRYABLE_MARKERS = (
    "timeout",
    "connection reset",
    "connection refused",
    "network unreachable",
    "temporary failure",
    "502 bad gateway",
    "503 service unavailable",
    "504 gateway timeout",
    "500 internal server error",
    "i/o timeout",
    "unexpected end of input",
    "unexpected eof",
    "broken pipe",
)

Sleeper = Callable[[float], Awaitable[None]]


def is_retryable_error(error: Optional[BaseException]) -> bool:
    """True when the error message names a transient failure."""
    if error is None:
        return False
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with capped exponential backoff."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    @property
    def max_attempts(self) -> int:
        return max(self.max_retries, 0) + 1

    def delay_for(self, attempt: int) -> float:
        """Sleep before retry number `attempt` (1-based): base * 2**(attempt-1), capped."""
        if attempt < 1:
            return 0.0
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


@dataclass
class RetryState:
    attempt: int = 0
    last_error: Optional[Exception] = None


class RetryingPartUploader:
    """Wraps IRemoteUploadClient.upload_part with the retry policy."""

    def __init__(
        self,
        client: IRemoteUploadClient,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._client = client
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def upload(
        self,
        credential: str,
        upload_id: str,
        remote_path: str,
        chunk_path: Path,
        part_index: int,
    ) -> PartUploadResult:
        state = RetryState()
        attempts = self._policy.max_attempts

        while state.attempt < attempts:
            if state.attempt > 0:
                delay = self._policy.delay_for(state.attempt)
                logger.warning(f"Part {part_index + 1}: retry {state.attempt}, waiting {delay:.1f}s")
                await self._sleep(delay)

            try:
                result = await self._client.upload_part(
                    credential, upload_id, remote_path, chunk_path, part_index
                )
            except Exception as e:
                state.last_error = e
                if not is_retryable_error(e):
                    logger.error(f"Part {part_index + 1}: non-retryable error: {e}")
                    raise
                logger.warning(
                    f"Part {part_index + 1} failed (attempt {state.attempt + 1}/{attempts}): {e}"
                )
                state.attempt += 1
                continue

            if state.attempt > 0:
                logger.info(f"Part {part_index + 1}: recovered after {state.attempt} retries")
            return result

        raise RetryExhaustedError(part_index, attempts, state.last_error) from state.last_error
