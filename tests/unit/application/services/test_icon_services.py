"""Tests for the public and custom icon services."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from yotoforge.application.services.icons import CustomIconService, IconService
from yotoforge.application.services.icons.custom_icon_service import METADATA_STORAGE_KEY
from yotoforge.domain.entities import Icon
from yotoforge.domain.exceptions import AuthenticationError, ContentApiError, IconServiceError
from yotoforge.domain.ports import IContentHttpClient
from yotoforge.infrastructure.persistence import InMemoryKeyValueStore


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock(spec=IContentHttpClient)


class TestIconService:
    """Test the public icon catalogue."""

    async def test_get_public_icons(self, client: AsyncMock) -> None:
        client.get.return_value = {
            "displayIcons": [
                {"mediaId": "m1", "title": "Bus", "publicTags": ["car", "bus"]},
                {"title": "No media id"},
                {"mediaId": "m2", "title": "Heart"},
            ]
        }

        icons = await IconService(client).get_public_icons()

        client.get.assert_awaited_once_with("media/displayIcons/user/yoto")
        assert icons == [
            Icon(media_id="m1", title="Bus", tags=("car", "bus")),
            Icon(media_id="m2", title="Heart"),
        ]

    async def test_error_is_wrapped(self, client: AsyncMock) -> None:
        client.get.side_effect = ContentApiError(503, "Service Unavailable", "")

        with pytest.raises(IconServiceError, match="Failed to fetch icons"):
            await IconService(client).get_public_icons()

    async def test_auth_error_passes_through(self, client: AsyncMock) -> None:
        client.get.side_effect = AuthenticationError("Authentication failed")

        with pytest.raises(AuthenticationError):
            await IconService(client).get_public_icons()


class TestCustomIconService:
    """Test custom icons and their local metadata."""

    async def test_listing_joins_metadata_newest_first(
        self, client: AsyncMock, store: InMemoryKeyValueStore
    ) -> None:
        await store.set(METADATA_STORAGE_KEY, [{"id": "d2", "title": "My Dog", "tags": ["pet"]}])
        client.get.return_value = {
            "displayIcons": [
                {"displayIconId": "d1", "mediaId": "m1", "createdAt": "2024-01-01T00:00:00Z"},
                {"displayIconId": "d2", "mediaId": "m2", "createdAt": "2024-06-01T00:00:00Z"},
                {"displayIconId": "d3"},
            ]
        }

        icons = await CustomIconService(client, store).get_custom_icons()

        assert [(i.id, i.title, i.tags) for i in icons] == [
            ("d2", "My Dog", ("pet",)),
            ("d1", "Icon d1", ()),
        ]

    async def test_listing_failure_degrades_to_empty(
        self, client: AsyncMock, store: InMemoryKeyValueStore
    ) -> None:
        client.get.side_effect = ContentApiError(500, "Internal Server Error", "")

        assert await CustomIconService(client, store).get_custom_icons_as_icons() == []

    async def test_upload_records_metadata(
        self, client: AsyncMock, store: InMemoryKeyValueStore, tmp_path: Path
    ) -> None:
        image = tmp_path / "rocket.png"
        image.write_bytes(b"\x89PNG")
        client.post.return_value = {
            "displayIcon": {"displayIconId": "d9", "mediaId": "m9", "url": "https://img/9"}
        }
        service = CustomIconService(client, store)

        icon = await service.upload_custom_icon(image)

        assert icon.title == "rocket"
        assert icon.media_id == "m9"
        kwargs = client.post.await_args.kwargs
        assert kwargs["content"] == b"\x89PNG"
        assert kwargs["params"] == {"filename": "rocket", "autoConvert": "true"}
        stored = await store.get(METADATA_STORAGE_KEY)
        assert stored[0]["id"] == "d9"

    async def test_upload_failure(
        self, client: AsyncMock, store: InMemoryKeyValueStore, tmp_path: Path
    ) -> None:
        image = tmp_path / "rocket.png"
        image.write_bytes(b"\x89PNG")
        client.post.return_value = {}

        with pytest.raises(IconServiceError, match="Failed to upload custom icon"):
            await CustomIconService(client, store).upload_custom_icon(image)

    async def test_update_title_and_tags(self, client: AsyncMock, store: InMemoryKeyValueStore) -> None:
        client.get.return_value = {"displayIcons": [{"displayIconId": "d1", "mediaId": "m1"}]}
        service = CustomIconService(client, store)
        [icon] = await service.get_custom_icons()

        updated = await service.update_custom_icon(icon, title="Rocket", tags=["space", "space", "ship"])

        assert updated.title == "Rocket"
        assert updated.tags == ("space", "ship")
        assert await service.get_custom_icons_as_icons() == [
            Icon(media_id="m1", title="Rocket", tags=("space", "ship"))
        ]
