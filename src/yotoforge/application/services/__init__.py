"""Application services - content API operations and icon selection."""

from yotoforge.application.services.icons import (
    CustomIconService,
    HybridIconMapper,
    IconService,
)
from yotoforge.application.services.playlist_service import PlaylistService
from yotoforge.application.services.song_upload_service import (
    SongUploadService,
    UploadResult,
)

__all__ = [
    "CustomIconService",
    "HybridIconMapper",
    "IconService",
    "PlaylistService",
    "SongUploadService",
    "UploadResult",
]
