"""Tests for PlaylistService."""

from unittest.mock import AsyncMock

import pytest
from fakes import make_playlist

from yotoforge.application.services.playlist_service import PlaylistService, extract_card_id
from yotoforge.domain.exceptions import (
    AuthenticationError,
    ContentApiError,
    PlaylistServiceError,
    ValidationError,
)
from yotoforge.domain.ports import IContentHttpClient


@pytest.fixture
def client() -> AsyncMock:
    return AsyncMock(spec=IContentHttpClient)


@pytest.fixture
def service(client: AsyncMock) -> PlaylistService:
    return PlaylistService(client)


class TestGetPlaylist:
    """Test fetching playlists."""

    async def test_get_playlist(self, service: PlaylistService, client: AsyncMock) -> None:
        client.get.return_value = make_playlist("A")

        playlist = await service.get_playlist("card-1")

        client.get.assert_awaited_once_with("content/card-1")
        assert playlist["card"]["cardId"] == "card-1"

    async def test_requires_id(self, service: PlaylistService, client: AsyncMock) -> None:
        with pytest.raises(ValidationError):
            await service.get_playlist("")
        client.get.assert_not_awaited()

    async def test_wraps_api_errors(self, service: PlaylistService, client: AsyncMock) -> None:
        client.get.side_effect = ContentApiError(500, "Internal Server Error", "")

        with pytest.raises(PlaylistServiceError, match="Failed to fetch playlist"):
            await service.get_playlist("card-1")

    async def test_auth_errors_pass_through(self, service: PlaylistService, client: AsyncMock) -> None:
        client.get.side_effect = AuthenticationError("Authentication failed")

        with pytest.raises(AuthenticationError):
            await service.get_playlist("card-1")

    async def test_get_playlists(self, service: PlaylistService, client: AsyncMock) -> None:
        client.get.return_value = {"cards": [{"cardId": "a"}, {"cardId": "b"}]}

        assert await service.get_playlists() == [{"cardId": "a"}, {"cardId": "b"}]
        client.get.assert_awaited_once_with("content/mine")

    @pytest.mark.parametrize("playlist_id", [None, "", "   "])
    def test_validate_playlist_id(self, playlist_id: str | None) -> None:
        with pytest.raises(ValidationError, match="Invalid playlist ID"):
            PlaylistService.validate_playlist_id(playlist_id)


class TestSavePlaylist:
    """Test create/update via the single save endpoint."""

    async def test_create_sanitizes_null_display(self, service: PlaylistService, client: AsyncMock) -> None:
        client.post.return_value = {"card": {"cardId": "new-card"}}
        playlist = make_playlist("A", card_id="")

        result = await service.save_playlist(playlist)

        sent = client.post.await_args.kwargs["json"]
        assert sent["content"]["chapters"][0]["display"] == {}
        assert playlist["card"]["content"]["chapters"][0]["display"] is None
        assert result["success"] is True
        assert result["is_update"] is False
        assert result["data"] == {"card": {"cardId": "new-card"}}
        assert "uploaded_at" in result

    async def test_update(self, service: PlaylistService, client: AsyncMock) -> None:
        client.post.return_value = {}

        result = await service.save_playlist(make_playlist("A", card_id="card-9"))

        assert result["is_update"] is True
        assert client.post.await_args.args == ("content",)

    async def test_failure_message_names_operation(self, service: PlaylistService, client: AsyncMock) -> None:
        client.post.side_effect = ContentApiError(400, "Bad Request", "nope")

        with pytest.raises(PlaylistServiceError, match="Failed to update playlist"):
            await service.save_playlist(make_playlist("A", card_id="card-9"))


class TestDeletePlaylist:
    """Test deletion."""

    async def test_delete(self, service: PlaylistService, client: AsyncMock) -> None:
        await service.delete_playlist("card-1")
        client.delete.assert_awaited_once_with("content/card-1")

    async def test_delete_failure(self, service: PlaylistService, client: AsyncMock) -> None:
        client.delete.side_effect = ContentApiError(404, "Not Found", "")

        with pytest.raises(PlaylistServiceError, match="Failed to delete playlist"):
            await service.delete_playlist("card-1")


class TestExtractCardId:
    """Test pulling the card ID from save responses."""

    @pytest.mark.parametrize(
        ("data", "expected"),
        [
            ({"cardId": "a"}, "a"),
            ({"card": {"cardId": "b"}}, "b"),
            ({"id": "c"}, "c"),
            ({}, None),
            (None, None),
        ],
    )
    def test_shapes(self, data: object, expected: str | None) -> None:
        assert extract_card_id(data) == expected
