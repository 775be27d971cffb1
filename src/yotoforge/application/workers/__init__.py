"""Worker system - the background job queue."""

from yotoforge.application.workers.event_bus import EventBus, JobQueueEvent
from yotoforge.application.workers.job_factories import (
    CreatePlaylistJobFactory,
    JobFactory,
    RegenerateIconsJobFactory,
    UpdatePlaylistJobFactory,
    default_job_factories,
)
from yotoforge.application.workers.job_queue_service import JobQueueService

__all__ = [
    "CreatePlaylistJobFactory",
    "EventBus",
    "JobFactory",
    "JobQueueEvent",
    "JobQueueService",
    "RegenerateIconsJobFactory",
    "UpdatePlaylistJobFactory",
    "default_job_factories",
]
