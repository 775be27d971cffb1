"""Domain entities."""

from yotoforge.domain.entities.icons import (
    ICON_REF_PREFIX,
    CachedIconSet,
    CustomIcon,
    CustomIconMetadata,
    Icon,
    as_vectors,
    icon_ref,
    merge_icons,
)
from yotoforge.domain.entities.jobs import (
    AiConfig,
    AudioFile,
    CreatePlaylistPayload,
    CreatePlaylistRequest,
    Job,
    JobCreationRequest,
    JobPayload,
    JobProgress,
    JobProgressEvent,
    JobStatus,
    JobType,
    PlaylistUpdatedEvent,
    QueueStatus,
    RegenerateIconsPayload,
    RegenerateIconsRequest,
    TrackIconProcessingEvent,
    TrackIconUpdatedEvent,
    UpdatePlaylistPayload,
    UpdatePlaylistRequest,
)

__all__ = [
    "ICON_REF_PREFIX",
    "AiConfig",
    "AudioFile",
    "CachedIconSet",
    "CreatePlaylistPayload",
    "CreatePlaylistRequest",
    "CustomIcon",
    "CustomIconMetadata",
    "Icon",
    "Job",
    "JobCreationRequest",
    "JobPayload",
    "JobProgress",
    "JobProgressEvent",
    "JobStatus",
    "JobType",
    "PlaylistUpdatedEvent",
    "QueueStatus",
    "RegenerateIconsPayload",
    "RegenerateIconsRequest",
    "TrackIconProcessingEvent",
    "TrackIconUpdatedEvent",
    "UpdatePlaylistPayload",
    "UpdatePlaylistRequest",
    "as_vectors",
    "icon_ref",
    "merge_icons",
]
