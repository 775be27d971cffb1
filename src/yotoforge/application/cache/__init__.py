"""Caching layer - icon embeddings persisted in the key-value store."""

from yotoforge.application.cache.icon_cache import (
    CACHE_KEY,
    CACHE_VERSION,
    CachedEmbeddingsLookup,
    IconCache,
    icon_content_hash,
)

__all__ = [
    "CACHE_KEY",
    "CACHE_VERSION",
    "CachedEmbeddingsLookup",
    "IconCache",
    "icon_content_hash",
]
