"""Application settings loaded from environment variables and .env files.

Hey future me - every knob lives here, grouped per concern. Nested groups are
plain pydantic models; the env delimiter is "__", so e.g.
YOTOFORGE_AI__API_KEY=sk-... or YOTOFORGE_JOB_QUEUE__HISTORY_LIMIT=100.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from yotoforge.domain.entities.jobs import (
    DEFAULT_CHAT_MODEL,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_TOP_K_ICONS,
    AiConfig,
)


class ContentApiSettings(BaseModel):
    """Content service (Yoto API) connection."""

    base_url: str = "https://api.yotoplay.com"
    timeout: float = Field(default=30.0, gt=0)
    # Static fallback credential - jobs normally carry their own token.
    auth_token: str = ""


class AiSettings(BaseModel):
    """OpenAI-compatible AI endpoint used for embeddings and arbitration."""

    base_url: str = ""
    api_key: str = ""
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    chat_model: str = DEFAULT_CHAT_MODEL
    batch_size: int = Field(default=50, gt=0)
    probe_timeout: float = Field(default=10.0, gt=0)
    request_timeout: float = Field(default=60.0, gt=0)
    throttle_seconds: float = Field(default=0.5, ge=0)
    top_k_icons: int = Field(default=DEFAULT_TOP_K_ICONS, gt=0)

    def to_ai_config(self) -> AiConfig:
        return AiConfig(
            base_url=self.base_url,
            api_key=self.api_key,
            embedding_model=self.embedding_model,
            chat_model=self.chat_model,
            batch_size=self.batch_size,
        )


class JobQueueSettings(BaseModel):
    """Background job queue behaviour."""

    history_limit: int = Field(default=50, gt=0)
    start_delay_seconds: float = Field(default=0.1, ge=0)
    transcode_timeout_seconds: float = Field(default=300.0, gt=0)
    transcode_poll_interval_seconds: float = Field(default=5.0, gt=0)
    default_cover_url: str = "https://picsum.photos/400/400"
    shutdown_timeout_seconds: float = Field(default=10.0, ge=0)


class CacheSettings(BaseModel):
    """Icon embedding cache."""

    ttl_hours: float = Field(default=24.0, gt=0)

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_hours * 3600


class DatabaseSettings(BaseModel):
    """Key-value persistence database."""

    url: str = "sqlite+aiosqlite:///./yotoforge.db"
    echo: bool = False
    # None = unlimited. Mirrors the browser storage quota of the old frontend.
    max_value_bytes: int | None = Field(default=None, gt=0)


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_prefix="YOTOFORGE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "yotoforge"
    log_level: str = "INFO"
    log_json: bool = False

    content_api: ContentApiSettings = Field(default_factory=ContentApiSettings)
    ai: AiSettings = Field(default_factory=AiSettings)
    job_queue: JobQueueSettings = Field(default_factory=JobQueueSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level: {v}")
        return level

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for in-memory/non-SQLite URLs."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


# Hey future me - cached, so call get_settings() at startup (lifecycle), never at
# import time of a module. Tests build Settings(...) directly instead.
@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
