import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel, Field


class BridgeEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    event_type: str
    source: str
    command: Optional[str] = None  # terraform command the event belongs to
    payload: Dict[str, Any]


class EventBus:
    """A lightweight, synchronous event bus for executor observability."""

    def __init__(self):
        self._subscribers: List[Callable[[BridgeEvent], None]] = []

    def subscribe(self, callback: Callable[[BridgeEvent], None]) -> None:
        """Register a callback to be executed when an event is emitted."""
        self._subscribers.append(callback)

    def emit(
        self,
        event_type: str,
        source: str,
        payload: Dict[str, Any],
        command: Optional[str] = None,
    ) -> None:
        """Construct and broadcast a BridgeEvent to all subscribers."""
        event = BridgeEvent(
            event_type=event_type,
            source=source,
            command=command,
            payload=payload,
        )

        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                # A broken subscriber must not stop a terraform run halfway
                logger.warning(f"[BUS] Subscriber failed on {event_type}: {e}")


# Global singleton instance for easy imports across the project
bus = EventBus()
