"""Tests for the content API HTTP client."""

import json
from unittest.mock import MagicMock

import pytest
from pytest_httpx import HTTPXMock

from yotoforge.config import ContentApiSettings
from yotoforge.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ContentApiError,
)
from yotoforge.infrastructure.integrations import YotoHttpClient, bind_auth_token

BASE_URL = "https://api.example.test"


@pytest.fixture
async def client():
    """Client with a static fallback token."""
    client = YotoHttpClient(ContentApiSettings(base_url=BASE_URL, auth_token="static-token"))
    yield client
    await client.close()


class TestYotoHttpClientAuth:
    """Test credential handling."""

    async def test_uses_static_token(self, client: YotoHttpClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content/mine", json={"cards": []})

        result = await client.get("content/mine")

        assert result == {"cards": []}
        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"] == "Bearer static-token"

    async def test_bound_token_wins(self, client: YotoHttpClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content/card-1", json={"card": {}})

        with bind_auth_token("job-token"):
            await client.get("content/card-1")

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"] == "Bearer job-token"

    async def test_bearer_prefix_not_doubled(
        self, client: YotoHttpClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content/card-1", json={})

        with bind_auth_token("Bearer already-prefixed"):
            await client.get("content/card-1")

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"] == "Bearer already-prefixed"

    async def test_missing_token_fires_callback_without_request(self) -> None:
        client = YotoHttpClient(ContentApiSettings(base_url=BASE_URL))
        callback = MagicMock()
        client.set_auth_failure_callback(callback)

        with pytest.raises(AuthenticationError):
            await client.get("content/mine")

        callback.assert_called_once()
        await client.close()

    async def test_401_fires_callback(self, client: YotoHttpClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content/mine", status_code=401, text="expired")
        callback = MagicMock()
        client.set_auth_failure_callback(callback)

        with pytest.raises(AuthenticationError, match="401"):
            await client.get("content/mine")

        callback.assert_called_once()

    async def test_403_raises_authorization_error(
        self, client: YotoHttpClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content/card-1", method="DELETE", status_code=403)
        callback = MagicMock()
        client.set_auth_failure_callback(callback)

        with pytest.raises(AuthorizationError):
            await client.delete("content/card-1")

        callback.assert_called_once()

    async def test_failing_callback_does_not_mask_error(
        self, client: YotoHttpClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content/mine", status_code=401)
        client.set_auth_failure_callback(MagicMock(side_effect=RuntimeError("ui gone")))

        with pytest.raises(AuthenticationError):
            await client.get("content/mine")


class TestYotoHttpClientRequests:
    """Test request/response handling."""

    async def test_server_error_raises_content_api_error(
        self, client: YotoHttpClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content", method="POST", status_code=500, text="boom")

        with pytest.raises(ContentApiError) as exc_info:
            await client.post("content", json={"title": "x"})

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "boom"

    async def test_post_sends_json(self, client: YotoHttpClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content", method="POST", json={"cardId": "c1"})

        result = await client.post("content", json={"title": "x"})

        assert result == {"cardId": "c1"}
        request = httpx_mock.get_request()
        assert request is not None
        assert json.loads(request.read()) == {"title": "x"}

    async def test_params_are_encoded(self, client: YotoHttpClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}/media/upload/u1/transcoded?loudnorm=false",
            json={"transcode": {}},
        )

        result = await client.get("media/upload/u1/transcoded", params={"loudnorm": "false"})

        assert result == {"transcode": {}}

    async def test_empty_body_returns_none(
        self, client: YotoHttpClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/content/card-1", method="DELETE", status_code=204)

        assert await client.delete("content/card-1") is None

    async def test_put_presigned_sends_no_credentials(
        self, client: YotoHttpClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url="https://bucket.example.test/upload?sig=1", method="PUT")

        await client.put_presigned("https://bucket.example.test/upload?sig=1", b"audio")

        request = httpx_mock.get_request()
        assert request is not None
        assert "Authorization" not in request.headers
        assert request.read() == b"audio"

    async def test_put_presigned_error(self, client: YotoHttpClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url="https://bucket.example.test/upload", method="PUT", status_code=403)

        with pytest.raises(ContentApiError):
            await client.put_presigned("https://bucket.example.test/upload", b"audio")
