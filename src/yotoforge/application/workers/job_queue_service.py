# Hey future me - this is THE job queue! Exactly ONE job runs at a time.
#
# add_job() is synchronous: it appends to the FIFO and, when no worker task is
# alive, spawns one. The worker task (_drain) is the single consumer - it pops
# the head, runs it, files it into history and loops until the queue is empty,
# then exits. The next add_job spawns a fresh one. Because add_job never awaits,
# "is a worker alive?" and "start one" can't interleave with the worker's own
# "queue empty → return", so two jobs can never be processing at once.
#
# cancel_job() only ever touches the queued list. The running job lives in
# self._current and can't be cancelled (only shutdown() can stop it).
"""Single-consumer background job queue for playlist and icon jobs."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections import deque
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import httpx

from yotoforge.application.services.icons.hybrid_icon_mapper import (
    HybridIconMapper,
    validate_ai_config,
)
from yotoforge.application.services.icons.icon_service import IconService
from yotoforge.application.services.playlist_service import PlaylistService, extract_card_id
from yotoforge.application.services.song_upload_service import SongUploadService
from yotoforge.application.workers.event_bus import EventBus, JobQueueEvent, Listener, Unsubscribe
from yotoforge.application.workers.job_factories import JobFactory, default_job_factories
from yotoforge.config import JobQueueSettings
from yotoforge.domain.entities import (
    AiConfig,
    AudioFile,
    CreatePlaylistPayload,
    Job,
    JobCreationRequest,
    JobProgress,
    JobProgressEvent,
    JobType,
    PlaylistUpdatedEvent,
    QueueStatus,
    RegenerateIconsPayload,
    RegenerateIconsRequest,
    TrackIconProcessingEvent,
    TrackIconUpdatedEvent,
    UpdatePlaylistPayload,
)
from yotoforge.domain.entities.jobs import DEFAULT_TOP_K_ICONS
from yotoforge.domain.exceptions import (
    DomainException,
    UnsupportedJobTypeError,
    UploadError,
)
from yotoforge.domain.ports import IKeyValueStore
from yotoforge.infrastructure.integrations.yoto_http_client import bind_auth_token
from yotoforge.infrastructure.observability import bound_correlation_id

logger = logging.getLogger(__name__)

HISTORY_STORAGE_KEY = "jobQueue-history"

IconMapperFactory = Callable[[AiConfig], AbstractAsyncContextManager[HybridIconMapper]]


def chapter_from_upload(file: AudioFile, transcode: dict[str, Any], index: int) -> dict[str, Any]:
    """Chapter record (one track) for a transcoded upload.

    Chapter keys are the zero-padded input position ("00", "01", ...), so
    chapter order always matches file order.
    """
    info = transcode.get("transcodedInfo") or {}
    metadata = transcode.get("metadata") or info.get("metadata") or {}
    title = metadata.get("title") or re.sub(r"\.mp3$", "", file.display_name, flags=re.IGNORECASE)
    duration = metadata.get("duration") or info.get("duration") or 0
    return {
        "key": str(index).zfill(2),
        "title": title,
        "tracks": [
            {
                "key": "01",
                "title": title,
                "trackUrl": f"yoto:#{transcode['transcodedSha256']}",
                "type": "audio",
                "format": "mp3",
                "duration": duration,
                "fileSize": file.size,
            }
        ],
    }


class JobQueueService:
    """FIFO job queue with a single worker task.

    Usage:
        queue = JobQueueService(playlists, uploads, icons, mapper_factory, store)
        await queue.start()          # loads persisted history
        job = queue.add_job(CreatePlaylistRequest(...), auth_token, ai_config)
        ...
        await queue.shutdown()
    """

    def __init__(
        self,
        playlist_service: PlaylistService,
        upload_service: SongUploadService,
        icon_service: IconService,
        icon_mapper_factory: IconMapperFactory,
        store: IKeyValueStore,
        settings: JobQueueSettings | None = None,
        top_k_icons: int = DEFAULT_TOP_K_ICONS,
        event_bus: EventBus | None = None,
        factories: dict[JobType, JobFactory] | None = None,
        default_ai_config: AiConfig | None = None,
    ) -> None:
        self._playlist_service = playlist_service
        self._upload_service = upload_service
        self._icon_service = icon_service
        self._icon_mapper_factory = icon_mapper_factory
        self._store = store
        self._settings = settings or JobQueueSettings()
        self._top_k_icons = top_k_icons
        self.events = event_bus or EventBus()
        self._factories = factories if factories is not None else default_job_factories()
        self._default_ai_config = default_ai_config

        self._queue: deque[Job] = deque()
        self._current: Job | None = None
        self._history: list[Job] = []
        self._worker: asyncio.Task[None] | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Load persisted history. Call once before use."""
        try:
            raw = await self._store.get(HISTORY_STORAGE_KEY)
            self._history = [Job.from_history_dict(item) for item in raw or []]
        except (DomainException, KeyError, TypeError, ValueError) as e:
            logger.error("Failed to load job queue state: %s", e)
            self._history = []
        logger.info("Job queue started with %d history entries", len(self._history))

    async def wait_until_idle(self) -> None:
        """Wait until the queue is drained (including jobs queued meanwhile)."""
        while self._worker is not None and not self._worker.done():
            await asyncio.shield(self._worker)

    async def shutdown(self, timeout: float | None = None) -> None:
        """Let the worker finish, cancelling it after timeout seconds.

        A job interrupted by the cancellation is recorded as failed; jobs that
        never started are dropped (they hold local file references only).
        """
        timeout = self._settings.shutdown_timeout_seconds if timeout is None else timeout
        task = self._worker
        if task is None or task.done():
            return

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except TimeoutError:
            logger.warning("Job queue worker did not finish within %.1fs, cancelling", timeout)
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

            if self._current is not None:
                interrupted = self._current
                interrupted.mark_failed("Job queue shut down before the job finished")
                self._record(interrupted)
                self._current = None
                await self._save_history()
            if self._queue:
                logger.warning("Dropping %d queued jobs on shutdown", len(self._queue))
                self._queue.clear()
        finally:
            self._worker = None

    # =========================================================================
    # Public API
    # =========================================================================

    def add_job(
        self,
        request: JobCreationRequest,
        auth_token: str,
        ai_config: AiConfig | None = None,
    ) -> Job:
        """Queue a job and make sure the worker is running. Never blocks.

        Must be called from inside a running event loop. Without ai_config the
        queue-wide default (if any) is used.

        Raises:
            UnsupportedJobTypeError: No factory for request.type
            RuntimeError: Called outside a running event loop (nothing is queued)
        """
        job_type = getattr(request, "type", None)
        factory = self._factories.get(job_type) if isinstance(job_type, JobType) else None
        if factory is None:
            raise UnsupportedJobTypeError(getattr(job_type, "value", str(job_type)))

        # Outside a running loop no worker could be spawned - refuse before queuing anything
        asyncio.get_running_loop()

        job = factory.create_job(request, auth_token, ai_config or self._default_ai_config)
        self._queue.append(job)
        logger.info("Job added to queue: %s (queue length %d)", job.id, len(self._queue))
        self._emit_status()
        self._ensure_worker()
        return job

    def cancel_job(self, job_id: str) -> bool:
        """Remove a queued job. False if not queued (running jobs can't be cancelled)."""
        for job in self._queue:
            if job.id == job_id:
                self._queue.remove(job)
                logger.info("Job canceled from queue: %s", job_id)
                self._emit_status()
                return True
        return False

    def get_status(self) -> QueueStatus:
        return QueueStatus(
            is_processing=self._current is not None,
            queue_length=len(self._queue),
            current_job=self._current,
        )

    def get_queue(self) -> list[Job]:
        return list(self._queue)

    def get_job_history(self) -> list[Job]:
        return list(self._history)

    async def clear_job_history(self) -> None:
        self._history = []
        await self._save_history()

    # Subscriptions - each returns an unsubscribe callable

    def on_queue_status(self, listener: Listener) -> Unsubscribe:
        return self.events.subscribe(JobQueueEvent.QUEUE_STATUS, listener)

    def on_job_progress(self, listener: Listener) -> Unsubscribe:
        return self.events.subscribe(JobQueueEvent.JOB_PROGRESS, listener)

    def on_job_completed(self, listener: Listener) -> Unsubscribe:
        return self.events.subscribe(JobQueueEvent.JOB_COMPLETED, listener)

    def on_job_failed(self, listener: Listener) -> Unsubscribe:
        return self.events.subscribe(JobQueueEvent.JOB_FAILED, listener)

    def on_playlist_updated(self, listener: Listener) -> Unsubscribe:
        return self.events.subscribe(JobQueueEvent.PLAYLIST_UPDATED, listener)

    def on_track_icon_processing(self, listener: Listener) -> Unsubscribe:
        return self.events.subscribe(JobQueueEvent.TRACK_ICON_PROCESSING, listener)

    def on_track_icon_updated(self, listener: Listener) -> Unsubscribe:
        return self.events.subscribe(JobQueueEvent.TRACK_ICON_UPDATED, listener)

    # =========================================================================
    # Worker
    # =========================================================================

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain(), name="job-queue-worker")

    async def _drain(self) -> None:
        while self._queue:
            job = self._queue.popleft()
            self._current = job
            job.mark_processing()
            logger.info("Processing job: %s (%d still queued)", job.id, len(self._queue))
            self._emit_status()

            # Give listeners a moment to render the new current job
            await asyncio.sleep(self._settings.start_delay_seconds)

            await self._run_job(job)

            self._record(job)
            self._current = None
            await self._save_history()
            self._emit_status()

    async def _run_job(self, job: Job) -> None:
        with bound_correlation_id(job.id), bind_auth_token(job.payload.auth_token):
            self._emit_progress(job, JobProgress(status="Starting job..."))
            try:
                result = await self._execute(job)
            except Exception as e:
                job.mark_failed(str(e) or type(e).__name__)
                logger.error("Job failed: %s - %s", job.id, job.error, exc_info=True)
                self.events.emit(JobQueueEvent.JOB_FAILED, job)
            else:
                job.mark_completed(result)
                logger.info("Job completed: %s (%s)", job.id, job.type.value)
                self.events.emit(JobQueueEvent.JOB_COMPLETED, job)

    async def _execute(self, job: Job) -> dict[str, Any]:
        if job.type == JobType.REGENERATE_ICONS:
            assert isinstance(job.payload, RegenerateIconsPayload)
            return await self._regenerate_icons(job, job.payload)
        if job.type in (JobType.CREATE_PLAYLIST, JobType.UPDATE_PLAYLIST):
            assert isinstance(job.payload, CreatePlaylistPayload)
            return await self._process_playlist_job(job, job.payload)
        raise UnsupportedJobTypeError(job.type.value)

    def _record(self, job: Job) -> None:
        self._history.insert(0, job)
        del self._history[self._settings.history_limit :]

    async def _save_history(self) -> None:
        try:
            await self._store.set(HISTORY_STORAGE_KEY, [job.to_dict() for job in self._history])
        except Exception:
            logger.exception("Failed to save job queue state")

    # =========================================================================
    # Regenerate icons
    # =========================================================================

    async def _regenerate_icons(self, job: Job, payload: RegenerateIconsPayload) -> dict[str, Any]:
        playlist_id = PlaylistService.validate_playlist_id(payload.playlist_id)
        validate_ai_config(payload.ai_config)
        self._emit_progress(
            job, JobProgress(status=f"Regenerating icons for {payload.playlist_title}...")
        )

        icons = await self._icon_service.get_public_icons()
        playlist = await self._playlist_service.get_playlist(playlist_id)
        chapters = playlist["card"]["content"]["chapters"]

        def on_progress(progress: JobProgress) -> None:
            self._emit_progress(job, progress)
            if progress.file_name and progress.current:
                index = progress.current - 1
                key = chapters[index].get("key") if index < len(chapters) else None
                self.events.emit(
                    JobQueueEvent.TRACK_ICON_PROCESSING,
                    TrackIconProcessingEvent(
                        job_id=job.id,
                        playlist_id=playlist_id,
                        track_key=key or str(index).zfill(2),
                        track_title=progress.file_name.replace('"', ""),
                    ),
                )

        async def on_chapter_saved(updated: dict[str, Any], track_info: dict[str, str]) -> None:
            await self._playlist_service.save_playlist(updated)
            self.events.emit(
                JobQueueEvent.TRACK_ICON_UPDATED,
                TrackIconUpdatedEvent(
                    job_id=job.id,
                    playlist_id=playlist_id,
                    track_key=track_info["chapterKey"],
                    icon_ref=track_info["iconRef"],
                ),
            )
            self.events.emit(
                JobQueueEvent.PLAYLIST_UPDATED,
                PlaylistUpdatedEvent(job_id=job.id, playlist_id=playlist_id, job_type=job.type),
            )

        async with self._icon_mapper_factory(payload.ai_config) as mapper:
            mapped = await mapper.map_icons(
                playlist,
                icons,
                top_k=payload.top_k_icons or self._top_k_icons,
                on_progress=on_progress,
                on_chapter_saved=on_chapter_saved,
            )

        # Per-chapter saves may have failed (logged by the mapper) - this one must not
        await self._playlist_service.save_playlist(mapped)
        return {"success": True}

    # =========================================================================
    # Create / update playlist
    # =========================================================================

    async def _process_playlist_job(
        self, job: Job, payload: CreatePlaylistPayload
    ) -> dict[str, Any]:
        total = len(payload.files) + 1
        self._emit_progress(
            job, JobProgress(status=f"Processing {payload.playlist_title}...", current=0, total=total)
        )

        chapters = []
        for index, file in enumerate(payload.files):
            self._emit_progress(
                job,
                JobProgress(
                    status=f"Uploading {file.display_name}...",
                    current=index + 1,
                    total=total,
                    file_name=file.display_name,
                ),
            )
            chapters.append(await self._upload_file_to_chapter(file, index))
        logger.info("Uploaded %d chapters", len(chapters))

        is_update = job.type == JobType.UPDATE_PLAYLIST
        self._emit_progress(
            job,
            JobProgress(
                status="Updating playlist..." if is_update else "Creating playlist...",
                current=total,
                total=total,
            ),
        )
        result = await self._playlist_service.save_playlist(
            {"card": self._build_card(payload, chapters)}
        )

        if job.type == JobType.CREATE_PLAYLIST:
            self._queue_icon_generation_if_needed(result, payload)

        return {"success": True, "data": result}

    async def _upload_file_to_chapter(self, file: AudioFile, index: int) -> dict[str, Any]:
        name = file.display_name
        try:
            upload = await self._upload_service.upload_song(
                file, loudnorm=False, wait_for_completion=True
            )
            if not upload.is_transcoding_complete or upload.transcode is None:
                raise UploadError(f"Failed to transcode {name}")
            return chapter_from_upload(file, upload.transcode, index)
        except (DomainException, httpx.HTTPError, OSError, KeyError) as e:
            raise UploadError(f"Failed to upload {name}: {e}") from e

    def _build_card(
        self, payload: CreatePlaylistPayload, chapters: list[dict[str, Any]]
    ) -> dict[str, Any]:
        card: dict[str, Any] = {
            "title": payload.playlist_title,
            "content": {"chapters": chapters},
            "metadata": {
                "cover": {"imageL": payload.cover_image_url or self._settings.default_cover_url}
            },
        }
        if isinstance(payload, UpdatePlaylistPayload) and payload.card_id:
            card = {"cardId": payload.card_id, **card}
        return card

    def _queue_icon_generation_if_needed(
        self, result: dict[str, Any], payload: CreatePlaylistPayload
    ) -> None:
        if result.get("is_update") or not result.get("data"):
            return
        card_id = extract_card_id(result["data"])
        if not card_id:
            logger.warning("Created playlist response has no card ID, skipping icon generation")
            return
        if not payload.ai_config.is_configured:
            logger.info("AI not configured, skipping icon generation for %s", card_id)
            return

        logger.info("Playlist created with ID %s, queuing AI icon generation", card_id)
        try:
            self.add_job(
                RegenerateIconsRequest(
                    playlist_id=card_id,
                    playlist_title=payload.playlist_title,
                    top_k_icons=payload.top_k_icons,
                ),
                payload.auth_token,
                payload.ai_config,
            )
        except Exception:
            # The playlist exists; losing the follow-up only costs the icons
            logger.exception("Failed to queue icon generation job")

    # =========================================================================
    # Events
    # =========================================================================

    def _emit_status(self) -> None:
        self.events.emit(JobQueueEvent.QUEUE_STATUS, self.get_status())

    def _emit_progress(self, job: Job, progress: JobProgress) -> None:
        job.progress = progress
        self.events.emit(JobQueueEvent.JOB_PROGRESS, JobProgressEvent(job_id=job.id, progress=progress))
