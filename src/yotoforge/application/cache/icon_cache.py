"""Persistent cache of icon embeddings with content-hash invalidation."""

import hashlib
import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from yotoforge.domain.entities import CachedIconSet, Icon, as_vectors
from yotoforge.domain.exceptions import StorageQuotaExceededError, ValidationError
from yotoforge.domain.ports import IKeyValueStore

logger = logging.getLogger(__name__)

CACHE_KEY = "yoto-icons-cache"
CACHE_VERSION = "1.0.0"
DEFAULT_TTL_SECONDS = 24 * 60 * 60


def icon_content_hash(icon: Icon) -> str:
    """Stable hash of the properties that feed an icon's embedding."""
    canonical = json.dumps(
        {"mediaId": icon.media_id, "title": icon.title, "tags": list(icon.tags)},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CachedEmbeddingsLookup:
    """Result of IconCache.get_cached_embeddings_for.

    icons/embeddings are parallel (reusable vectors), missing are the icons
    that need fresh embeddings (new or edited since they were cached).
    """

    icons: tuple[Icon, ...]
    embeddings: tuple[tuple[float, ...], ...]
    missing: tuple[Icon, ...]


class IconCache:
    """Icon embedding cache backed by the key-value store.

    Hey future me - the whole set lives under ONE key and is rewritten
    wholesale. We keep the decoded set in self._snapshot and only ever REPLACE
    that reference (never mutate it), so a reader that grabbed the snapshot
    before a write keeps a consistent icons/embeddings/hashes triple.

    The clock is injectable so TTL tests don't need to sleep for 24 hours.
    """

    def __init__(
        self,
        store: IKeyValueStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: CachedIconSet | None = None
        self._loaded = False

    async def _load(self) -> CachedIconSet | None:
        if self._loaded:
            return self._snapshot

        raw = await self._store.get(CACHE_KEY)
        snapshot: CachedIconSet | None = None
        if raw is not None:
            if not isinstance(raw, dict) or raw.get("version") != CACHE_VERSION:
                logger.info("Icon cache version mismatch, ignoring stored cache")
            else:
                try:
                    snapshot = CachedIconSet.from_dict(raw)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Stored icon cache is corrupt, ignoring it: %s", e)

        self._snapshot = snapshot
        self._loaded = True
        return snapshot

    def _is_expired(self, snapshot: CachedIconSet) -> bool:
        return snapshot.is_expired(self.ttl_seconds, now=self._clock())

    async def get_cached(self) -> CachedIconSet | None:
        """Return the cached set if present and not expired."""
        snapshot = await self._load()
        if snapshot is None:
            logger.info("No cached icon data found")
            return None
        if self._is_expired(snapshot):
            logger.info("Cached icon data is expired")
            return None

        logger.info("Loaded %d icons from cache", len(snapshot.icons))
        return snapshot

    async def set_cached(
        self, icons: Sequence[Icon], embeddings: Sequence[Sequence[float]]
    ) -> CachedIconSet:
        """Replace the cache with icons and their embeddings.

        Raises:
            ValidationError: icons and embeddings differ in length
            StorageQuotaExceededError: store is full (cache is cleared first)
        """
        if len(icons) != len(embeddings):
            raise ValidationError("Icons and embeddings must have the same length")

        snapshot = CachedIconSet(
            icons=tuple(icons),
            embeddings=as_vectors(embeddings),
            content_hashes=tuple(icon_content_hash(icon) for icon in icons),
            fetched_at=self._clock(),
        )
        try:
            await self._store.set(CACHE_KEY, snapshot.to_dict(CACHE_VERSION))
        except StorageQuotaExceededError:
            await self.clear()
            logger.warning("Cleared icon cache due to storage quota exceeded")
            raise

        self._snapshot = snapshot
        self._loaded = True
        logger.info("Cached %d icons with embeddings", len(snapshot.icons))
        return snapshot

    async def should_refresh(self, current_icons: Sequence[Icon] | None = None) -> bool:
        """True when there is no cache, it expired, or current_icons differ from it.

        The hash comparison is order-sensitive: a reordered icon list counts
        as changed, because embeddings are stored positionally.
        """
        snapshot = await self._load()
        if snapshot is None or self._is_expired(snapshot):
            return True

        if current_icons is not None:
            current_hashes = tuple(icon_content_hash(icon) for icon in current_icons)
            if current_hashes != snapshot.content_hashes:
                logger.info("Icons have changed, cache refresh needed")
                return True
        return False

    async def get_cached_embeddings_for(self, icons: Sequence[Icon]) -> CachedEmbeddingsLookup:
        """Split icons into ones with a reusable cached vector and ones without.

        A cached vector is reusable only when the icon's content hash is
        unchanged, so a retitled or retagged icon lands in missing.
        """
        snapshot = await self._load()
        by_hash: dict[str, tuple[float, ...]] = {}
        if snapshot is not None and not self._is_expired(snapshot):
            by_hash = dict(zip(snapshot.content_hashes, snapshot.embeddings, strict=True))

        found_icons: list[Icon] = []
        found_embeddings: list[tuple[float, ...]] = []
        missing: list[Icon] = []
        for icon in icons:
            vector = by_hash.get(icon_content_hash(icon))
            if vector is None:
                missing.append(icon)
            else:
                found_icons.append(icon)
                found_embeddings.append(vector)

        return CachedEmbeddingsLookup(
            icons=tuple(found_icons), embeddings=tuple(found_embeddings), missing=tuple(missing)
        )

    async def clear(self) -> None:
        await self._store.delete(CACHE_KEY)
        self._snapshot = None
        self._loaded = True
        logger.info("Icon cache cleared")

    async def get_stats(self) -> dict[str, Any]:
        """Cache statistics: has_cache, and when present last_fetched, icon_count, is_expired."""
        snapshot = await self._load()
        if snapshot is None:
            return {"has_cache": False}
        return {
            "has_cache": True,
            "last_fetched": datetime.fromtimestamp(snapshot.fetched_at, tz=UTC),
            "icon_count": len(snapshot.icons),
            "is_expired": self._is_expired(snapshot),
        }
