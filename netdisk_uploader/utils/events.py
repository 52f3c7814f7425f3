"""Event plumbing for upload progress."""
import asyncio
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

FILE_START = "file_start"
FILE_COMPLETE = "file_complete"
FILE_FAIL = "file_fail"
PART_PROGRESS = "part_progress"
PROGRESS = "progress"
FINISH = "finish"
ERROR = "error"


class EventEmitter:
    """Named events with sync or async listeners."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, callback: Callable) -> None:
        """Subscribe to an event."""
        listeners = self._listeners.setdefault(event_name, [])
        if callback not in listeners:
            listeners.append(callback)

    def off(self, event_name: str, callback: Callable) -> None:
        """Unsubscribe from an event."""
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name))

    async def emit(self, event_name: str, *args, **kwargs) -> None:
        """Call every listener; a failing listener is logged and skipped."""
        for callback in list(self._listeners.get(event_name, [])):
            try:
                result = callback(*args, **kwargs)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in event listener for {event_name}: {e}")
