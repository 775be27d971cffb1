"""Playlist (card) CRUD against the content API."""

import copy
import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from yotoforge.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainException,
    PlaylistServiceError,
    ValidationError,
)
from yotoforge.domain.ports import IContentHttpClient

logger = logging.getLogger(__name__)


class PlaylistService:
    """Fetch, save and delete playlist cards.

    Hey future me - "save" is ONE endpoint for both create and update: the API
    decides by the presence of cardId in the body. That makes saving idempotent
    by content, which is why the icon job can happily save after every track.
    """

    def __init__(self, client: IContentHttpClient) -> None:
        self._client = client

    @staticmethod
    def validate_playlist_id(playlist_id: str | None) -> str:
        if not playlist_id or not isinstance(playlist_id, str) or not playlist_id.strip():
            raise ValidationError("Invalid playlist ID")
        return playlist_id.strip()

    async def get_playlist(self, playlist_id: str) -> dict[str, Any]:
        """Fetch one playlist document (`{"card": {...}}`)."""
        if not playlist_id:
            raise ValidationError("Playlist ID is required")

        logger.info("Fetching playlist %s", playlist_id)
        try:
            playlist = await self._client.get(f"content/{playlist_id}")
        except (AuthenticationError, AuthorizationError):
            raise
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Error fetching playlist %s: %s", playlist_id, e)
            raise PlaylistServiceError(f"Failed to fetch playlist: {e}") from e

        logger.debug("Fetched playlist %s: %s", playlist_id, playlist)
        return playlist

    async def get_playlists(self) -> list[dict[str, Any]]:
        """Fetch the index of the user's own playlists."""
        logger.info("Fetching playlists")
        try:
            data = await self._client.get("content/mine")
        except (AuthenticationError, AuthorizationError):
            raise
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Error fetching playlists: %s", e)
            raise PlaylistServiceError(f"Failed to fetch playlists: {e}") from e
        return list((data or {}).get("cards") or [])

    async def save_playlist(self, playlist: dict[str, Any]) -> dict[str, Any]:
        """Create or update a playlist.

        Args:
            playlist: Document of the form {"card": {...}}. A truthy card.cardId
                means update, otherwise create.

        Returns:
            {"success", "data" (API response), "is_update", "uploaded_at"}
        """
        card = copy.deepcopy(playlist["card"])
        is_update = bool(card.get("cardId"))
        verb = "update" if is_update else "create"

        # The API rejects display: null on chapters/tracks - it wants {} instead
        for chapter in (card.get("content") or {}).get("chapters") or []:
            if "display" in chapter and chapter["display"] is None:
                chapter["display"] = {}
            for track in chapter.get("tracks") or []:
                if "display" in track and track["display"] is None:
                    track["display"] = {}

        logger.info(
            "%s playlist%s", "Updating" if is_update else "Creating",
            f": {card['cardId']}" if is_update else "",
        )
        try:
            result = await self._client.post("content", json=card)
        except (AuthenticationError, AuthorizationError):
            raise
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Error %sing playlist: %s", verb[:-1], e)
            raise PlaylistServiceError(f"Failed to {verb} playlist: {e}") from e

        logger.info("Successfully %sd playlist", verb)
        return {
            "success": True,
            "data": result,
            "is_update": is_update,
            "uploaded_at": datetime.now(UTC).isoformat(),
        }

    async def delete_playlist(self, playlist_id: str) -> None:
        if not playlist_id:
            raise ValidationError("Playlist ID is required")

        logger.info("Deleting playlist %s", playlist_id)
        try:
            await self._client.delete(f"content/{playlist_id}")
        except (AuthenticationError, AuthorizationError):
            raise
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Error deleting playlist %s: %s", playlist_id, e)
            raise PlaylistServiceError(f"Failed to delete playlist: {e}") from e


def extract_card_id(data: Any) -> str | None:
    """Pull the card ID out of a save response, whatever shape the API used."""
    if not isinstance(data, dict):
        return None
    card = data.get("card")
    return (
        data.get("cardId")
        or (card.get("cardId") if isinstance(card, dict) else None)
        or data.get("id")
        or None
    )
