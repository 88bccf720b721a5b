"""Response lifecycle event constants and publisher.

Events are logged and kept in a bounded in-memory buffer so callers (and
tests) can observe what the service layer did without a broker. Once the
buffer is full the oldest events are dropped.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List
import logging

logger = logging.getLogger(__name__)

RESPONSE_CREATED = "response.created"
RESPONSE_UPDATED = "response.updated"
RESPONSE_STATUS_CHANGED = "response.status_changed"
ANSWERS_CLEARED = "answers.cleared"

EVENT_BUFFER_SIZE = 1000


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    EVENT_BUFFER.append({"type": event_type, "payload": payload})


EVENT_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=EVENT_BUFFER_SIZE)


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered events, oldest first; optionally clear the buffer."""
    events = list(EVENT_BUFFER)
    if clear:
        EVENT_BUFFER.clear()
    return events


__all__ = [
    "RESPONSE_CREATED",
    "RESPONSE_UPDATED",
    "RESPONSE_STATUS_CHANGED",
    "ANSWERS_CLEARED",
    "EVENT_BUFFER_SIZE",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
]
