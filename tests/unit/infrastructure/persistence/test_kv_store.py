"""Tests for the key-value store implementations."""

from pathlib import Path

import pytest

from yotoforge.config import DatabaseSettings, Settings
from yotoforge.domain.exceptions import StorageQuotaExceededError
from yotoforge.infrastructure.persistence import (
    Database,
    InMemoryKeyValueStore,
    SqlKeyValueStore,
)


@pytest.fixture
async def database(tmp_path: Path):
    """File-backed SQLite database with tables created."""
    settings = Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'kv.db'}")
    )
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


class TestInMemoryKeyValueStore:
    """Test the in-memory store."""

    async def test_set_get_delete(self) -> None:
        store = InMemoryKeyValueStore()
        await store.set("k", {"a": [1, 2]})

        assert await store.get("k") == {"a": [1, 2]}
        assert store.keys() == ["k"]
        assert await store.delete("k") is True
        assert await store.get("k") is None
        assert await store.delete("k") is False

    async def test_returned_values_are_independent_copies(self) -> None:
        store = InMemoryKeyValueStore()
        await store.set("k", {"items": [1]})

        value = await store.get("k")
        value["items"].append(2)

        assert await store.get("k") == {"items": [1]}

    async def test_quota_exceeded(self) -> None:
        store = InMemoryKeyValueStore(max_value_bytes=10)
        with pytest.raises(StorageQuotaExceededError) as exc_info:
            await store.set("big", "x" * 100)
        assert exc_info.value.key == "big"
        assert await store.get("big") is None


class TestSqlKeyValueStore:
    """Test the SQLAlchemy-backed store."""

    async def test_set_get_roundtrip(self, database: Database) -> None:
        store = SqlKeyValueStore(database)
        await store.set("jobQueue-history", [{"id": "job-1"}])

        assert await store.get("jobQueue-history") == [{"id": "job-1"}]

    async def test_set_overwrites(self, database: Database) -> None:
        store = SqlKeyValueStore(database)
        await store.set("k", 1)
        await store.set("k", 2)

        assert await store.get("k") == 2

    async def test_missing_key(self, database: Database) -> None:
        store = SqlKeyValueStore(database)
        assert await store.get("nope") is None
        assert await store.delete("nope") is False

    async def test_delete(self, database: Database) -> None:
        store = SqlKeyValueStore(database)
        await store.set("k", "v")

        assert await store.delete("k") is True
        assert await store.get("k") is None

    async def test_quota_exceeded_leaves_previous_value(self, database: Database) -> None:
        store = SqlKeyValueStore(database, max_value_bytes=20)
        await store.set("k", "small")

        with pytest.raises(StorageQuotaExceededError):
            await store.set("k", "y" * 200)

        assert await store.get("k") == "small"
