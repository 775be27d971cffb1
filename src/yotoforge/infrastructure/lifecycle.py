"""Application wiring and lifecycle (startup/shutdown).

`app_lifespan()` builds everything once, in dependency order, and tears it
down in reverse:

    logging → database (+ tables) → key-value store → content API client
    → services → icon cache → job queue (history loaded)
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from yotoforge.application.cache.icon_cache import IconCache
from yotoforge.application.services.icons.custom_icon_service import CustomIconService
from yotoforge.application.services.icons.hybrid_icon_mapper import HybridIconMapper
from yotoforge.application.services.icons.icon_service import IconService
from yotoforge.application.services.playlist_service import PlaylistService
from yotoforge.application.services.song_upload_service import SongUploadService
from yotoforge.application.workers.job_queue_service import IconMapperFactory, JobQueueService
from yotoforge.config import Settings, get_settings
from yotoforge.domain.entities import AiConfig
from yotoforge.domain.exceptions import ConfigurationError
from yotoforge.infrastructure.integrations import AiClient, YotoHttpClient
from yotoforge.infrastructure.observability import configure_logging
from yotoforge.infrastructure.persistence import Database, SqlKeyValueStore

logger = logging.getLogger(__name__)


# Hey future me, SQLite creates the .db file (plus -journal/-wal files) next to the path
# in the URL, but it will NOT create missing parent directories. Fail here with a clear
# message instead of a cryptic "unable to open database file" on the first query.
def _validate_sqlite_path(settings: Settings) -> None:
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return
    try:
        if str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update YOTOFORGE_DATABASE__URL or adjust directory permissions."
        ) from exc


def build_icon_mapper_factory(
    settings: Settings,
    icon_cache: IconCache,
    custom_icon_service: CustomIconService | None,
) -> IconMapperFactory:
    """Mapper factory for the job queue: one AiClient per icon job, closed afterwards."""

    @asynccontextmanager
    async def icon_mapper(ai_config: AiConfig) -> AsyncIterator[HybridIconMapper]:
        async with AiClient(
            ai_config,
            probe_timeout=settings.ai.probe_timeout,
            request_timeout=settings.ai.request_timeout,
        ) as ai_client:
            yield HybridIconMapper(
                ai_client,
                ai_config,
                icon_cache,
                custom_icon_service=custom_icon_service,
                throttle_seconds=settings.ai.throttle_seconds,
            )

    return icon_mapper


@dataclass
class AppContainer:
    """Everything a caller (CLI, UI backend, tests) needs at runtime."""

    settings: Settings
    database: Database
    store: SqlKeyValueStore
    http_client: YotoHttpClient
    playlist_service: PlaylistService
    upload_service: SongUploadService
    icon_service: IconService
    custom_icon_service: CustomIconService
    icon_cache: IconCache
    job_queue: JobQueueService


@asynccontextmanager
async def app_lifespan(settings: Settings | None = None) -> AsyncGenerator[AppContainer, None]:
    """Build the application, yield it, and clean up on exit."""
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.log_json,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    _validate_sqlite_path(settings)
    database = Database(settings)
    http_client: YotoHttpClient | None = None
    job_queue: JobQueueService | None = None
    try:
        await database.create_tables()
        store = SqlKeyValueStore(database, max_value_bytes=settings.database.max_value_bytes)

        http_client = YotoHttpClient(settings.content_api)
        playlist_service = PlaylistService(http_client)
        upload_service = SongUploadService(
            http_client,
            transcode_timeout=settings.job_queue.transcode_timeout_seconds,
            poll_interval=settings.job_queue.transcode_poll_interval_seconds,
        )
        icon_service = IconService(http_client)
        custom_icon_service = CustomIconService(http_client, store)
        icon_cache = IconCache(store, ttl_seconds=settings.cache.ttl_seconds)

        default_ai_config = settings.ai.to_ai_config()
        job_queue = JobQueueService(
            playlist_service,
            upload_service,
            icon_service,
            build_icon_mapper_factory(settings, icon_cache, custom_icon_service),
            store,
            settings=settings.job_queue,
            top_k_icons=settings.ai.top_k_icons,
            default_ai_config=default_ai_config if default_ai_config.is_configured else None,
        )
        await job_queue.start()

        yield AppContainer(
            settings=settings,
            database=database,
            store=store,
            http_client=http_client,
            playlist_service=playlist_service,
            upload_service=upload_service,
            icon_service=icon_service,
            custom_icon_service=custom_icon_service,
            icon_cache=icon_cache,
            job_queue=job_queue,
        )
    finally:
        logger.info("Shutting down application")
        if job_queue is not None:
            await job_queue.shutdown()
        if http_client is not None:
            await http_client.close()
        await database.close()
        logger.info("Application shutdown complete")
