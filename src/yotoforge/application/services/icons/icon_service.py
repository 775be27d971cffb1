"""Public icon catalogue."""

import logging

import httpx

from yotoforge.domain.entities import Icon
from yotoforge.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainException,
    IconServiceError,
)
from yotoforge.domain.ports import IContentHttpClient

logger = logging.getLogger(__name__)

PUBLIC_ICONS_PATH = "media/displayIcons/user/yoto"


class IconService:
    """Fetch the public 16x16 icon listing.

    Hey future me - no caching here on purpose. The embedding cache in
    IconCache holds the icon list alongside the vectors and checks content
    hashes against whatever we return, so a fresh listing is exactly what lets
    it notice new or renamed icons.
    """

    def __init__(self, client: IContentHttpClient) -> None:
        self._client = client

    async def get_public_icons(self) -> list[Icon]:
        try:
            data = await self._client.get(PUBLIC_ICONS_PATH)
        except (AuthenticationError, AuthorizationError):
            raise
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Error fetching public icons: %s", e)
            raise IconServiceError(f"Failed to fetch icons: {e}") from e

        raw_icons = (data or {}).get("displayIcons") or []
        icons = [Icon.from_public_api(item) for item in raw_icons if item.get("mediaId")]
        logger.info("Fetched %d public icons", len(icons))
        return icons
