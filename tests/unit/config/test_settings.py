"""Tests for application settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from yotoforge.config import JobQueueSettings, Settings
from yotoforge.domain.entities import AiConfig


@pytest.fixture(autouse=True)
def no_env_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    """Test out-of-the-box values."""

    def test_job_queue_defaults(self) -> None:
        settings = JobQueueSettings()
        assert settings.history_limit == 50
        assert settings.transcode_timeout_seconds == 300
        assert settings.transcode_poll_interval_seconds == 5

    def test_ai_not_configured_by_default(self) -> None:
        assert not Settings().ai.to_ai_config().is_configured

    def test_cache_ttl(self) -> None:
        assert Settings().cache.ttl_seconds == 24 * 60 * 60


class TestEnvironment:
    """Test environment variable overrides."""

    def test_nested_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("YOTOFORGE_AI__BASE_URL", "http://localhost:1234/v1")
        monkeypatch.setenv("YOTOFORGE_AI__API_KEY", "sk-env")
        monkeypatch.setenv("YOTOFORGE_JOB_QUEUE__HISTORY_LIMIT", "10")

        settings = Settings()

        assert settings.job_queue.history_limit == 10
        assert settings.ai.to_ai_config() == AiConfig(
            base_url="http://localhost:1234/v1", api_key="sk-env"
        )

    def test_log_level_is_normalized(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("YOTOFORGE_LOG_LEVEL", "debug")
        assert Settings().log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_invalid_history_limit(self) -> None:
        with pytest.raises(ValidationError):
            JobQueueSettings(history_limit=0)


class TestSqlitePath:
    """Test SQLite path extraction."""

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("sqlite+aiosqlite:///./data/app.db", Path("./data/app.db")),
            ("sqlite+aiosqlite:///:memory:", None),
            ("postgresql+asyncpg://user@host/db", None),
        ],
    )
    def test_get_sqlite_db_path(self, url: str, expected: Path | None) -> None:
        settings = Settings(database={"url": url})
        assert settings._get_sqlite_db_path() == expected
