"""In-process publish/subscribe for job queue events."""

import logging
from collections import defaultdict
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class JobQueueEvent(str, Enum):
    """Event names emitted by JobQueueService."""

    QUEUE_STATUS = "queue-status"
    JOB_PROGRESS = "job-progress"
    JOB_COMPLETED = "job-completed"
    JOB_FAILED = "job-failed"
    PLAYLIST_UPDATED = "playlist-updated"
    TRACK_ICON_PROCESSING = "track-icon-processing"
    TRACK_ICON_UPDATED = "track-icon-updated"


class EventBus:
    """Listener lists keyed by event name.

    Hey future me - emit() iterates over a COPY of the listener list, so a
    listener may unsubscribe itself (or subscribe others) while being called
    and the current emit still reaches everyone registered when it started.
    Listeners run synchronously on the worker task: keep them fast, and a
    listener that raises is logged and skipped, never propagated into the
    job that emitted.
    """

    def __init__(self) -> None:
        self._listeners: defaultdict[JobQueueEvent, list[Listener]] = defaultdict(list)

    def subscribe(self, event: JobQueueEvent, listener: Listener) -> Unsubscribe:
        """Register listener for event.

        Returns:
            Callable that removes this registration (safe to call twice)
        """
        self._listeners[event].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event)
            if listeners and listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def emit(self, event: JobQueueEvent, payload: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s raised", event.value)

    def listener_count(self, event: JobQueueEvent) -> int:
        return len(self._listeners.get(event, ()))

    def clear(self) -> None:
        self._listeners.clear()
