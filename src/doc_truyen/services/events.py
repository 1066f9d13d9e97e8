"""Event pub/sub for queue and document state changes.

Lets the orchestrator stay ignorant of who is watching:
- CLI subscribes → rich progress output
- API subscribes → WebSocket → reader UI state
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

import structlog

logger = structlog.get_logger()


@dataclass
class ReaderEvent:
    """A single state-change notification."""

    type: str
    data: dict = field(default_factory=dict)
    file_id: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Serialize for WebSocket JSON transport."""
        return {
            "type": self.type,
            "data": self.data,
            "file_id": self.file_id,
            "timestamp": self.timestamp,
        }


class EventBus:
    """Synchronous event bus.

    Subscribers run in the emitter's context. A subscriber that raises is
    logged and skipped; it never breaks the emitter.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, Callable[[ReaderEvent], None]] = {}

    def subscribe(self, callback: Callable[[ReaderEvent], None]) -> str:
        """Register a callback. Returns subscription ID for unsubscribe."""
        sub_id = str(uuid.uuid4())
        self._subscribers[sub_id] = callback
        return sub_id

    def unsubscribe(self, sub_id: str) -> None:
        self._subscribers.pop(sub_id, None)

    def emit(self, event: ReaderEvent) -> None:
        """Send event to all subscribers."""
        for sub_id, callback in list(self._subscribers.items()):
            try:
                callback(event)
            except Exception as e:
                logger.warning(
                    "event_subscriber_failed", subscriber=sub_id, event=event.type, error=str(e)
                )
