"""User-uploaded icons plus locally stored title/tag metadata."""

import asyncio
import logging
from datetime import UTC, datetime
from pathlib import Path

import httpx

from yotoforge.domain.entities import CustomIcon, CustomIconMetadata, Icon
from yotoforge.domain.exceptions import DomainException, IconServiceError
from yotoforge.domain.ports import IContentHttpClient, IKeyValueStore

logger = logging.getLogger(__name__)

CUSTOM_ICONS_PATH = "media/displayIcons/user/me"
METADATA_STORAGE_KEY = "yoto-custom-icon-metadata"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _uploaded_sort_key(icon: CustomIcon) -> datetime:
    try:
        parsed = datetime.fromisoformat(icon.uploaded_at.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class CustomIconService:
    """Custom icon listing, upload and metadata editing.

    The content API stores only the image; titles and tags live in the local
    key-value store under METADATA_STORAGE_KEY, keyed by displayIconId.
    """

    def __init__(self, client: IContentHttpClient, store: IKeyValueStore) -> None:
        self._client = client
        self._store = store

    async def _load_metadata(self) -> dict[str, CustomIconMetadata]:
        try:
            raw = await self._store.get(METADATA_STORAGE_KEY)
        except DomainException as e:
            logger.warning("Error loading custom icon metadata: %s", e)
            return {}
        items = [CustomIconMetadata.from_dict(item) for item in raw or []]
        return {item.id: item for item in items}

    async def _save_metadata(self, metadata: dict[str, CustomIconMetadata]) -> None:
        await self._store.set(METADATA_STORAGE_KEY, [item.to_dict() for item in metadata.values()])

    async def get_custom_icons(self) -> list[CustomIcon]:
        """List the user's icons, newest first. Failures degrade to []."""
        try:
            data = await self._client.get(CUSTOM_ICONS_PATH)
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Failed to fetch custom icons: %s", e)
            return []

        metadata = await self._load_metadata()
        icons = []
        for raw in (data or {}).get("displayIcons") or []:
            icon_id = raw.get("displayIconId")
            if not icon_id or not raw.get("mediaId"):
                continue
            meta = metadata.get(icon_id)
            icons.append(
                CustomIcon(
                    id=icon_id,
                    media_id=raw["mediaId"],
                    title=(meta.title if meta else "") or f"Icon {icon_id}",
                    image_url=raw.get("url", ""),
                    uploaded_at=raw.get("createdAt", ""),
                    tags=meta.tags if meta else (),
                )
            )
        return sorted(icons, key=_uploaded_sort_key, reverse=True)

    async def get_custom_icons_as_icons(self) -> list[Icon]:
        return [icon.as_icon() for icon in await self.get_custom_icons()]

    async def upload_custom_icon(
        self, path: Path, title: str | None = None, content_type: str = "image/png"
    ) -> CustomIcon:
        """Upload an image as a new display icon and record its metadata."""
        path = Path(path)
        file_name = title or path.stem
        content = await asyncio.to_thread(path.read_bytes)

        try:
            response = await self._client.post(
                f"{CUSTOM_ICONS_PATH}/upload",
                content=content,
                headers={"Content-Type": content_type},
                params={"filename": file_name, "autoConvert": "true"},
            )
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Failed to upload custom icon: %s", e)
            raise IconServiceError("Failed to upload custom icon.") from e

        new_icon = (response or {}).get("displayIcon") or {}
        if not new_icon.get("displayIconId") or not new_icon.get("mediaId"):
            raise IconServiceError("Failed to upload custom icon.")

        now = _now_iso()
        metadata = await self._load_metadata()
        metadata[new_icon["displayIconId"]] = CustomIconMetadata(
            id=new_icon["displayIconId"], title=file_name, created_at=now, updated_at=now
        )
        await self._save_metadata(metadata)

        logger.info("Uploaded custom icon %s", new_icon["displayIconId"])
        return CustomIcon(
            id=new_icon["displayIconId"],
            media_id=new_icon["mediaId"],
            title=file_name,
            image_url=new_icon.get("url", ""),
            uploaded_at=new_icon.get("createdAt") or now,
        )

    async def update_custom_icon(
        self,
        icon: CustomIcon,
        title: str | None = None,
        tags: list[str] | tuple[str, ...] | None = None,
    ) -> CustomIcon:
        """Change the local title and/or tags of an icon."""
        metadata = await self._load_metadata()
        existing = metadata.get(icon.id) or CustomIconMetadata(
            id=icon.id, title=icon.title, tags=icon.tags, created_at=icon.uploaded_at
        )
        new_title = existing.title if title is None else title
        new_tags = existing.tags if tags is None else tuple(dict.fromkeys(tags))

        metadata[icon.id] = CustomIconMetadata(
            id=icon.id,
            title=new_title,
            tags=new_tags,
            created_at=existing.created_at,
            updated_at=_now_iso(),
        )
        await self._save_metadata(metadata)

        logger.info("Updated custom icon %s: title=%s tags=%s", icon.id, new_title, ", ".join(new_tags))
        return CustomIcon(
            id=icon.id,
            media_id=icon.media_id,
            title=new_title,
            image_url=icon.image_url,
            uploaded_at=icon.uploaded_at,
            tags=new_tags,
        )
