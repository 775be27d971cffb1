"""Job entities for the background playlist queue.

Hey future me - this is the TAGGED UNION of everything the queue can run!

Each job variant has its own creation request (what callers hand in) and its
own frozen payload (what the worker reads). Only status/progress/result/error
ever change after construction - payloads are frozen dataclasses so nobody
can sneak in a new card_id halfway through an upload.

Lifecycle:
    queued → processing → completed | failed
    queued → (cancelled = removed from the queue, no history record)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

DEFAULT_EMBEDDING_MODEL = "mixedbread-ai/mxbai-embed-xsmall-v1"
DEFAULT_CHAT_MODEL = "openai/gpt-oss-20b"
DEFAULT_TOP_K_ICONS = 100

REDACTED = "***"


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class JobType(str, Enum):
    """Closed set of job variants."""

    CREATE_PLAYLIST = "create-playlist"
    UPDATE_PLAYLIST = "update-playlist"
    REGENERATE_ICONS = "regenerate-icons"


class JobStatus(str, Enum):
    """Job lifecycle states."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class AiConfig:
    """Connection settings for the OpenAI-compatible AI endpoint."""

    base_url: str = ""
    api_key: str = ""
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    chat_model: str = DEFAULT_CHAT_MODEL
    batch_size: int = 50

    @property
    def is_configured(self) -> bool:
        """Both endpoint and credential are present."""
        return bool(self.base_url and self.api_key)

    def to_dict(self, redact: bool = True) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "api_key": REDACTED if redact and self.api_key else self.api_key,
            "embedding_model": self.embedding_model,
            "chat_model": self.chat_model,
            "batch_size": self.batch_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AiConfig:
        if not data:
            return cls()
        return cls(
            base_url=data.get("base_url", ""),
            api_key=data.get("api_key", ""),
            embedding_model=data.get("embedding_model") or DEFAULT_EMBEDDING_MODEL,
            chat_model=data.get("chat_model") or DEFAULT_CHAT_MODEL,
            batch_size=data.get("batch_size") or 50,
        )


@dataclass(frozen=True)
class AudioFile:
    """Reference to a local audio file that a playlist job will upload.

    Bytes are read lazily at upload time so queued jobs stay cheap.
    """

    path: Path
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or Path(self.path).name

    @property
    def size(self) -> int:
        return Path(self.path).stat().st_size

    def read_bytes(self) -> bytes:
        return Path(self.path).read_bytes()


# =============================================================================
# Creation requests (caller input)
# =============================================================================


@dataclass(frozen=True)
class CreatePlaylistRequest:
    """Upload files and create a brand new playlist card."""

    type: ClassVar[JobType] = JobType.CREATE_PLAYLIST

    playlist_title: str
    files: tuple[AudioFile, ...]
    top_k_icons: int | None = None
    cover_image_url: str | None = None


@dataclass(frozen=True)
class UpdatePlaylistRequest:
    """Upload files and replace the content of an existing card."""

    type: ClassVar[JobType] = JobType.UPDATE_PLAYLIST

    playlist_title: str
    files: tuple[AudioFile, ...]
    card_id: str
    top_k_icons: int | None = None
    cover_image_url: str | None = None


@dataclass(frozen=True)
class RegenerateIconsRequest:
    """Re-run AI icon selection for every chapter of an existing card."""

    type: ClassVar[JobType] = JobType.REGENERATE_ICONS

    playlist_id: str
    playlist_title: str
    top_k_icons: int | None = None


JobCreationRequest = CreatePlaylistRequest | UpdatePlaylistRequest | RegenerateIconsRequest


# =============================================================================
# Payloads (immutable worker input)
# =============================================================================


@dataclass(frozen=True)
class BaseJobPayload:
    auth_token: str
    playlist_title: str
    ai_config: AiConfig
    # None = the queue-wide default candidate count
    top_k_icons: int | None = None

    def to_dict(self) -> dict[str, Any]:
        # Credentials never leave memory - history only needs them for display.
        return {
            "auth_token": REDACTED if self.auth_token else "",
            "playlist_title": self.playlist_title,
            "ai_config": self.ai_config.to_dict(),
            "top_k_icons": self.top_k_icons,
        }


@dataclass(frozen=True)
class CreatePlaylistPayload(BaseJobPayload):
    files: tuple[AudioFile, ...] = ()
    cover_image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "files": [f.display_name for f in self.files],
                "cover_image_url": self.cover_image_url,
            }
        )
        return data


@dataclass(frozen=True)
class UpdatePlaylistPayload(CreatePlaylistPayload):
    card_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["card_id"] = self.card_id
        return data


@dataclass(frozen=True)
class RegenerateIconsPayload(BaseJobPayload):
    playlist_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["playlist_id"] = self.playlist_id
        return data


JobPayload = CreatePlaylistPayload | UpdatePlaylistPayload | RegenerateIconsPayload


@dataclass
class JobProgress:
    """Mutable progress snapshot, replaced repeatedly while a job runs."""

    status: str
    current: int | None = None
    total: int | None = None
    file_name: str | None = None
    done: bool | None = None
    success: bool | None = None
    warning: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status}
        for key in ("current", "total", "file_name", "done", "success"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.warning:
            data["warning"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> JobProgress:
        data = data or {}
        return cls(
            status=data.get("status", ""),
            current=data.get("current"),
            total=data.get("total"),
            file_name=data.get("file_name"),
            done=data.get("done"),
            success=data.get("success"),
            warning=bool(data.get("warning", False)),
        )


# =============================================================================
# Job
# =============================================================================


@dataclass
class Job:
    """A unit of queued work.

    Hey future me - id, type, payload and created_at are set by the factory and
    NEVER touched again. The worker only calls the mark_* methods below, which
    keep result and error mutually exclusive.
    """

    id: str
    type: JobType
    playlist_title: str
    payload: JobPayload
    status: JobStatus = JobStatus.QUEUED
    progress: JobProgress = field(default_factory=lambda: JobProgress(status="Queued"))
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def mark_processing(self) -> None:
        self.status = JobStatus.PROCESSING
        self.started_at = utc_now()

    def mark_completed(self, result: dict[str, Any] | None = None) -> None:
        self.status = JobStatus.COMPLETED
        self.result = result if result is not None else {"success": True}
        self.error = None
        self.completed_at = utc_now()

    def mark_failed(self, error: str) -> None:
        self.status = JobStatus.FAILED
        self.error = error
        self.result = None
        self.completed_at = utc_now()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for history persistence (credentials redacted)."""
        return {
            "id": self.id,
            "type": self.type.value,
            "playlist_title": self.playlist_title,
            "status": self.status.value,
            "progress": self.progress.to_dict(),
            "payload": self.payload.to_dict(),
            "result": self.result,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat()
            if self.completed_at
            else None,
        }

    @classmethod
    def from_history_dict(cls, data: dict[str, Any]) -> Job:
        """Rebuild a terminal job from persisted history.

        Files come back as name-only references - history jobs are for
        inspection, they are never executed again.
        """
        job_type = JobType(data["type"])
        raw = data.get("payload") or {}
        base = {
            "auth_token": raw.get("auth_token", ""),
            "playlist_title": raw.get("playlist_title", data.get("playlist_title", "")),
            "ai_config": AiConfig.from_dict(raw.get("ai_config")),
            "top_k_icons": raw.get("top_k_icons"),
        }
        payload: JobPayload
        if job_type == JobType.REGENERATE_ICONS:
            payload = RegenerateIconsPayload(**base, playlist_id=raw.get("playlist_id", ""))
        else:
            playlist_fields = {
                "files": tuple(AudioFile(path=Path(name)) for name in raw.get("files", [])),
                "cover_image_url": raw.get("cover_image_url"),
            }
            if job_type == JobType.UPDATE_PLAYLIST:
                payload = UpdatePlaylistPayload(
                    **base, **playlist_fields, card_id=raw.get("card_id", "")
                )
            else:
                payload = CreatePlaylistPayload(**base, **playlist_fields)

        return cls(
            id=data["id"],
            type=job_type,
            playlist_title=data.get("playlist_title", ""),
            payload=payload,
            status=JobStatus(data["status"]),
            progress=JobProgress.from_dict(data.get("progress")),
            result=data.get("result"),
            error=data.get("error"),
            created_at=_parse_datetime(data.get("created_at")) or utc_now(),
            started_at=_parse_datetime(data.get("started_at")),
            completed_at=_parse_datetime(data.get("completed_at")),
        )


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


# =============================================================================
# Queue status + event payloads
# =============================================================================


@dataclass(frozen=True)
class QueueStatus:
    is_processing: bool
    queue_length: int
    current_job: Job | None


@dataclass(frozen=True)
class JobProgressEvent:
    job_id: str
    progress: JobProgress


@dataclass(frozen=True)
class PlaylistUpdatedEvent:
    job_id: str
    playlist_id: str
    job_type: JobType


@dataclass(frozen=True)
class TrackIconProcessingEvent:
    job_id: str
    playlist_id: str
    track_key: str
    track_title: str


@dataclass(frozen=True)
class TrackIconUpdatedEvent:
    job_id: str
    playlist_id: str
    track_key: str
    icon_ref: str
