"""Icon services - catalogue, custom uploads and AI icon selection."""

from yotoforge.application.services.icons.custom_icon_service import CustomIconService
from yotoforge.application.services.icons.hybrid_icon_mapper import (
    HybridIconMapper,
    clean_track_title,
    cosine_similarity,
)
from yotoforge.application.services.icons.icon_service import IconService

__all__ = [
    "CustomIconService",
    "HybridIconMapper",
    "IconService",
    "clean_track_title",
    "cosine_similarity",
]
