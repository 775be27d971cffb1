"""HTTP client for an OpenAI-compatible AI endpoint (embeddings + chat)."""

import asyncio
import logging
from typing import Any

import httpx

from yotoforge.domain.entities import AiConfig
from yotoforge.domain.exceptions import (
    AiServiceUnavailableError,
    ChatCompletionError,
    EmbeddingError,
)
from yotoforge.domain.ports import IAiClient

logger = logging.getLogger(__name__)


class AiClient(IAiClient):
    """Client for `/models`, `/embeddings` and `/chat/completions`.

    Hey future me - base_url is whatever the user typed in settings (LM Studio,
    OpenRouter, a local vLLM...). We never assume OpenAI itself, so no SDK, just
    the three endpoints every compatible server implements.
    """

    def __init__(
        self,
        config: AiConfig,
        probe_timeout: float = 10.0,
        request_timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.probe_timeout = probe_timeout
        self.request_timeout = request_timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "AiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.request_timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _url(self, endpoint: str) -> str:
        return f"{self.config.base_url.rstrip('/')}/{endpoint}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    # Listen up, the probe has its OWN hard wall-clock bound. asyncio.timeout cancels the
    # in-flight request at expiry - httpx timeouts alone are per-phase (connect/read/...)
    # and a slow-dripping server could keep us waiting far longer than 10s.
    async def probe(self) -> None:
        """GET /models to verify the endpoint is reachable."""
        client = await self._get_client()
        try:
            async with asyncio.timeout(self.probe_timeout):
                response = await client.get(self._url("models"), headers=self._headers())
        except TimeoutError as e:
            logger.error("AI API connection test timed out after %.1fs", self.probe_timeout)
            raise AiServiceUnavailableError(
                "AI API is not available. Please check your connection and try again. "
                f"Error: connection test timed out after {self.probe_timeout:g}s "
                f"({self.config.base_url})"
            ) from e
        except httpx.HTTPError as e:
            logger.error("AI API connection test failed: %s", e)
            raise AiServiceUnavailableError(
                "AI API is not available. Please check your connection and try again. "
                f"Error: {e}"
            ) from e

        if response.is_error:
            raise AiServiceUnavailableError(
                "AI API is not available. Please check your connection and try again. "
                f"Error: API endpoint test failed: {response.status_code} {response.reason_phrase}"
            )
        logger.info("AI API connection test successful")

    async def create_embeddings(
        self, texts: list[str], description: str = "texts"
    ) -> list[list[float]]:
        """Embed texts in batches of config.batch_size, preserving order."""
        if not texts:
            return []

        client = await self._get_client()
        batch_size = max(1, self.config.batch_size)
        total_batches = (len(texts) + batch_size - 1) // batch_size
        logger.info("Creating embeddings for %d %s...", len(texts), description)

        embeddings: list[list[float]] = []
        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            logger.debug(
                "Processing %s batch %d/%d", description, start // batch_size + 1, total_batches
            )
            response = await client.post(
                self._url("embeddings"),
                headers=self._headers(),
                json={"model": self.config.embedding_model, "input": batch},
            )
            if response.is_error:
                logger.error(
                    "Embedding API error: %d %s (base URL %s)",
                    response.status_code,
                    response.reason_phrase,
                    self.config.base_url,
                )
                raise EmbeddingError(
                    f"Embedding API error: {response.status_code} {response.reason_phrase}"
                )

            data = response.json().get("data") or []
            if len(data) != len(batch):
                raise EmbeddingError(
                    f"Embedding API returned {len(data)} vectors for {len(batch)} inputs"
                )
            # Servers are allowed to return items out of order - "index" is authoritative
            if all("index" in item for item in data):
                data = sorted(data, key=lambda item: item["index"])
            embeddings.extend([float(x) for x in item["embedding"]] for item in data)

        return embeddings

    async def complete_chat(self, system_prompt: str, user_prompt: str) -> str:
        """Run a single chat completion and return the message content."""
        client = await self._get_client()
        try:
            response = await client.post(
                self._url("chat/completions"),
                headers=self._headers(),
                json={
                    "model": self.config.chat_model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                },
            )
        except httpx.TimeoutException as e:
            raise ChatCompletionError(
                "AI API request timed out. The service may be overloaded."
            ) from e

        if response.status_code == 404:
            raise ChatCompletionError(
                "AI API endpoint not found (404). Check your AI configuration in Settings."
            )
        if response.status_code == 401:
            raise ChatCompletionError(
                "AI API authentication failed (401). Check your API key in Settings."
            )
        if response.is_error:
            raise ChatCompletionError(
                f"Chat API error: {response.status_code} {response.reason_phrase}"
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ChatCompletionError(f"Chat API returned an unexpected payload: {e}") from e
        if not isinstance(content, str):
            raise ChatCompletionError("Chat API returned no message content")
        return content
