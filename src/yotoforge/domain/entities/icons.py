"""Icon entities used by the recommender and the embedding cache."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

ICON_REF_PREFIX = "yoto:#"


def icon_ref(media_id: str) -> str:
    """Build the icon reference stored in a chapter's display block."""
    return f"{ICON_REF_PREFIX}{media_id}"


@dataclass(frozen=True)
class Icon:
    """A 16x16 display icon (public or user-uploaded).

    Tags are an ORDERED set - duplicates are dropped but first-seen order is kept,
    because the tag order feeds the embedding text and the content hash.
    """

    media_id: str
    title: str
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", tuple(dict.fromkeys(self.tags)))

    @property
    def embedding_text(self) -> str:
        """Text representation fed to the embeddings endpoint."""
        return f"{self.title} {' '.join(self.tags)}".strip()

    def to_dict(self) -> dict[str, Any]:
        return {"mediaId": self.media_id, "title": self.title, "tags": list(self.tags)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Icon:
        return cls(
            media_id=data["mediaId"],
            title=data.get("title", ""),
            tags=tuple(data.get("tags") or ()),
        )

    @classmethod
    def from_public_api(cls, data: dict[str, Any]) -> Icon:
        """Build from a `displayIcons` entry of the public icon listing."""
        return cls(
            media_id=data["mediaId"],
            title=data.get("title") or "",
            tags=tuple(data.get("publicTags") or ()),
        )


@dataclass(frozen=True)
class CustomIconMetadata:
    """Locally stored title/tags for a user-uploaded icon (the API has neither)."""

    id: str
    title: str
    tags: tuple[str, ...] = ()
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CustomIconMetadata:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            tags=tuple(data.get("tags") or ()),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass(frozen=True)
class CustomIcon:
    """A user-uploaded icon joined with its local metadata."""

    id: str
    media_id: str
    title: str
    image_url: str = ""
    uploaded_at: str = ""
    tags: tuple[str, ...] = ()

    def as_icon(self) -> Icon:
        return Icon(media_id=self.media_id, title=self.title, tags=self.tags)


@dataclass(frozen=True)
class CachedIconSet:
    """Icons with their embedding vectors and per-icon content hashes.

    Hey future me - the three sequences are PARALLEL. Index i of embeddings and
    content_hashes belongs to icons[i]. The constructor refuses anything else,
    so a CachedIconSet you hold is always internally consistent.
    """

    icons: tuple[Icon, ...]
    embeddings: tuple[tuple[float, ...], ...]
    content_hashes: tuple[str, ...]
    fetched_at: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if not (len(self.icons) == len(self.embeddings) == len(self.content_hashes)):
            raise ValueError(
                "Icons, embeddings and content hashes must have the same length "
                f"({len(self.icons)}/{len(self.embeddings)}/{len(self.content_hashes)})"
            )

    def is_expired(self, ttl_seconds: float, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return current - self.fetched_at >= ttl_seconds

    def to_dict(self, version: str) -> dict[str, Any]:
        return {
            "version": version,
            "icons": [icon.to_dict() for icon in self.icons],
            "embeddings": [list(vector) for vector in self.embeddings],
            "iconHashes": list(self.content_hashes),
            "lastFetched": self.fetched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CachedIconSet:
        return cls(
            icons=tuple(Icon.from_dict(item) for item in data["icons"]),
            embeddings=tuple(tuple(float(x) for x in vec) for vec in data["embeddings"]),
            content_hashes=tuple(data["iconHashes"]),
            fetched_at=float(data["lastFetched"]),
        )


def merge_icons(custom: Iterable[Icon], public: Iterable[Icon]) -> list[Icon]:
    """Merge custom and public icons, custom first, deduplicated by media_id.

    Custom icons come first so they win mediaId collisions AND similarity ties
    (the ranking sort is stable).
    """
    merged: dict[str, Icon] = {}
    for icon in [*custom, *public]:
        merged.setdefault(icon.media_id, icon)
    return list(merged.values())


def as_vectors(embeddings: Iterable[Sequence[float]]) -> tuple[tuple[float, ...], ...]:
    return tuple(tuple(float(x) for x in vector) for vector in embeddings)
