"""Tests for the OpenAI-compatible AI client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from pytest_httpx import HTTPXMock

from yotoforge.domain.entities import AiConfig
from yotoforge.domain.exceptions import (
    AiServiceUnavailableError,
    ChatCompletionError,
    EmbeddingError,
)
from yotoforge.infrastructure.integrations import AiClient

BASE_URL = "http://ai.example.test/v1"


@pytest.fixture
async def ai_client():
    client = AiClient(AiConfig(base_url=BASE_URL, api_key="sk-test", batch_size=2))
    yield client
    await client.close()


def _embedding_response(*vectors: list[float], reverse: bool = False) -> dict:
    data = [{"index": i, "embedding": v} for i, v in enumerate(vectors)]
    return {"data": list(reversed(data)) if reverse else data}


class TestProbe:
    """Test the connectivity probe."""

    async def test_probe_success(self, ai_client: AiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/models", json={"data": []})

        await ai_client.probe()

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Authorization"] == "Bearer sk-test"

    async def test_probe_error_status(self, ai_client: AiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/models", status_code=502)

        with pytest.raises(AiServiceUnavailableError, match="502"):
            await ai_client.probe()

    async def test_probe_connection_error(
        self, ai_client: AiClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=f"{BASE_URL}/models")

        with pytest.raises(AiServiceUnavailableError, match="refused"):
            await ai_client.probe()

    async def test_probe_has_hard_timeout(self) -> None:
        async def never_answers(*args, **kwargs):  # type: ignore
            await asyncio.sleep(5)

        http = MagicMock(spec=httpx.AsyncClient)
        http.get = AsyncMock(side_effect=never_answers)
        client = AiClient(
            AiConfig(base_url=BASE_URL, api_key="k"), probe_timeout=0.05, client=http
        )

        with pytest.raises(AiServiceUnavailableError, match="timed out"):
            await client.probe()


class TestEmbeddings:
    """Test batched embeddings."""

    async def test_batches_and_preserves_order(
        self, ai_client: AiClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}/embeddings",
            method="POST",
            match_json={"model": "mixedbread-ai/mxbai-embed-xsmall-v1", "input": ["a", "b"]},
            json=_embedding_response([1.0, 0.0], [0.0, 1.0], reverse=True),
        )
        httpx_mock.add_response(
            url=f"{BASE_URL}/embeddings",
            method="POST",
            match_json={"model": "mixedbread-ai/mxbai-embed-xsmall-v1", "input": ["c"]},
            json=_embedding_response([0.5, 0.5]),
        )

        vectors = await ai_client.create_embeddings(["a", "b", "c"], "icons")

        assert vectors == [[1.0, 0.0], [0.0, 1.0], [0.5, 0.5]]
        assert len(httpx_mock.get_requests()) == 2

    async def test_empty_input_makes_no_request(self, ai_client: AiClient) -> None:
        assert await ai_client.create_embeddings([]) == []

    async def test_error_status(self, ai_client: AiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/embeddings", method="POST", status_code=500)

        with pytest.raises(EmbeddingError, match="Embedding API error: 500"):
            await ai_client.create_embeddings(["a"])

    async def test_count_mismatch(self, ai_client: AiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}/embeddings", method="POST", json=_embedding_response([1.0])
        )

        with pytest.raises(EmbeddingError):
            await ai_client.create_embeddings(["a", "b"])


class TestChat:
    """Test chat completions."""

    async def test_returns_message_content(
        self, ai_client: AiClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=f"{BASE_URL}/chat/completions",
            method="POST",
            json={"choices": [{"message": {"role": "assistant", "content": "Bus"}}]},
        )

        assert await ai_client.complete_chat("system", "user") == "Bus"

    @pytest.mark.parametrize(
        ("status", "message"),
        [
            (404, "AI API endpoint not found (404)"),
            (401, "AI API authentication failed (401)"),
            (500, "Chat API error: 500"),
        ],
    )
    async def test_error_messages(
        self, ai_client: AiClient, httpx_mock: HTTPXMock, status: int, message: str
    ) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/chat/completions", method="POST", status_code=status)

        with pytest.raises(ChatCompletionError) as exc_info:
            await ai_client.complete_chat("system", "user")

        assert message in str(exc_info.value)

    async def test_timeout(self, ai_client: AiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("slow"), url=f"{BASE_URL}/chat/completions")

        with pytest.raises(ChatCompletionError, match="timed out"):
            await ai_client.complete_chat("system", "user")

    async def test_malformed_payload(self, ai_client: AiClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{BASE_URL}/chat/completions", method="POST", json={"choices": []})

        with pytest.raises(ChatCompletionError):
            await ai_client.complete_chat("system", "user")
