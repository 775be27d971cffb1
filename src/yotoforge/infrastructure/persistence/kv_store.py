"""Key-value store implementations (SQL-backed and in-memory)."""

import asyncio
import json
import logging
from typing import Any

from yotoforge.domain.exceptions import StorageQuotaExceededError
from yotoforge.domain.ports import IKeyValueStore
from yotoforge.infrastructure.persistence.database import Database
from yotoforge.infrastructure.persistence.models import KeyValueModel

logger = logging.getLogger(__name__)


def _encode(key: str, value: Any, max_value_bytes: int | None) -> str:
    encoded = json.dumps(value, separators=(",", ":"))
    size = len(encoded.encode("utf-8"))
    if max_value_bytes is not None and size > max_value_bytes:
        raise StorageQuotaExceededError(key, size, max_value_bytes)
    return encoded


class SqlKeyValueStore(IKeyValueStore):
    """Key-value store persisted in the `key_value_store` table.

    Hey future me - one session per call (session_scope commits on exit). The
    values are JSON text, so what you get back is a fresh object every time -
    mutating it never touches the stored copy.
    """

    def __init__(self, database: Database, max_value_bytes: int | None = None) -> None:
        self._database = database
        self._max_value_bytes = max_value_bytes

    async def get(self, key: str) -> Any | None:
        async with self._database.session_scope() as session:
            model = await session.get(KeyValueModel, key)
            if model is None:
                return None
            return json.loads(model.value)

    async def set(self, key: str, value: Any) -> None:
        encoded = _encode(key, value, self._max_value_bytes)
        async with self._database.session_scope() as session:
            model = await session.get(KeyValueModel, key)
            if model is None:
                session.add(KeyValueModel(key=key, value=encoded))
            else:
                model.value = encoded
        logger.debug("Stored key %s (%d bytes)", key, len(encoded))

    async def delete(self, key: str) -> bool:
        async with self._database.session_scope() as session:
            model = await session.get(KeyValueModel, key)
            if model is None:
                return False
            await session.delete(model)
            return True


class InMemoryKeyValueStore(IKeyValueStore):
    """In-memory key-value store for development and testing.

    Same contract as SqlKeyValueStore, including the quota check, but
    everything is gone when the process exits.
    """

    def __init__(self, max_value_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._max_value_bytes = max_value_bytes

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        encoded = _encode(key, value, self._max_value_bytes)
        async with self._lock:
            self._data[key] = encoded

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> list[str]:
        return list(self._data)
