"""Domain ports (interfaces) for dependency inversion.

Future me note:
Services in the application layer depend on THESE, never on httpx or
SQLAlchemy directly. Tests swap in AsyncMock(spec=...) or the in-memory
key-value store.
"""

from abc import ABC, abstractmethod
from typing import Any


class IKeyValueStore(ABC):
    """Key-value persistence for job history, icon cache blobs and icon metadata.

    Values are JSON-serializable Python objects. Implementations MUST raise
    StorageQuotaExceededError when a value doesn't fit, so callers can recover
    (clear + warn) instead of crashing on a generic error.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value or None when the key is absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""
        pass


class IContentHttpClient(ABC):
    """Authenticated JSON client for the content service."""

    @abstractmethod
    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        pass

    @abstractmethod
    async def post(
        self,
        path: str,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        pass

    @abstractmethod
    async def delete(self, path: str) -> Any:
        pass

    @abstractmethod
    async def put_presigned(
        self, url: str, content: bytes, content_type: str = "application/x-www-form-urlencoded"
    ) -> None:
        """Raw binary PUT to a pre-signed URL (no bearer credential)."""
        pass


class IAiClient(ABC):
    """OpenAI-compatible embeddings + chat completions endpoint."""

    @abstractmethod
    async def probe(self) -> None:
        """Cheap availability check. Raises AiServiceUnavailableError."""
        pass

    @abstractmethod
    async def create_embeddings(self, texts: list[str], description: str = "texts") -> list[list[float]]:
        """Embed texts in batches, preserving input order."""
        pass

    @abstractmethod
    async def complete_chat(self, system_prompt: str, user_prompt: str) -> str:
        """Return the assistant message content of a single completion."""
        pass


__all__ = ["IAiClient", "IContentHttpClient", "IKeyValueStore"]
