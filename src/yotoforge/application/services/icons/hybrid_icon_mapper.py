"""Pick one display icon per chapter: embedding similarity + LLM arbitration.

Hey future me - the pipeline is:

    1. validate AI config, refuse an empty icon list (no I/O yet!)
    2. probe the AI endpoint
    3. merge custom icons (first, so they win ties) with public icons
    4. icon embeddings from IconCache, only new/edited icons get re-embedded
    5. fresh embeddings for the (cleaned) chapter titles
    6. per chapter: cosine rank → top K → ask the LLM for one title
    7. write yoto:#<mediaId> into chapter + track display blocks

A bad LLM answer or a failed chat call NEVER fails the job - the chapter gets
the top-similarity icon instead. Only chat call failures are counted for the
final warning; a mismatched title is just logged.
"""

import asyncio
import copy
import json
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx

from yotoforge.application.cache.icon_cache import IconCache, icon_content_hash
from yotoforge.application.services.icons.custom_icon_service import CustomIconService
from yotoforge.domain.entities import AiConfig, Icon, JobProgress, icon_ref, merge_icons
from yotoforge.domain.exceptions import (
    ConfigurationError,
    DomainException,
    StorageQuotaExceededError,
    ValidationError,
)
from yotoforge.domain.ports import IAiClient

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[JobProgress], None]
ChapterSavedCallback = Callable[[dict[str, Any], dict[str, str]], Awaitable[None]]

TITLE_DELIMITERS = (" - ", " – ", " — ", "|")

SYSTEM_PROMPT = """**Task**: Icon Matching for Song Titles

You will be given:
1. A song title
2. A list of icon candidates showing the title and tags of each icon

**Your job**: Return the exact 'title' of the icon that best matches the song title.

**Instructions**:
- Analyze the song title for key themes, objects, emotions, or concepts
- Compare against both the 'title' and 'tags' of each icon
- Look for direct matches first (e.g., "bus" in song title → icon with "bus" tag)
- Consider metaphorical or thematic connections (e.g., love songs → heart icons)
- Prioritize icons that match multiple aspects of the song
- If multiple icons seem equally relevant, choose the most specific/direct match

**Response format**: Return only the exact icon 'title' string, nothing else.

**If no suitable match exists**: Return the 'title' of the most generic or closest thematically related icon from the available options."""


def clean_track_title(title: str) -> str:
    """Drop a leading "Artist - " style prefix.

    Splits at the earliest delimiter found; if nothing is left after it the
    title is returned unchanged.
    """
    positions = [
        (index, delimiter)
        for delimiter in TITLE_DELIMITERS
        if (index := title.find(delimiter)) != -1
    ]
    if not positions:
        return title
    index, delimiter = min(positions)
    remainder = title[index + len(delimiter) :].strip()
    return remainder or title


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity, or -1.0 for mismatched/empty/zero-magnitude vectors."""
    if not a or not b or len(a) != len(b):
        return -1.0
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    magnitude_a = math.sqrt(sum(x * x for x in a))
    magnitude_b = math.sqrt(sum(y * y for y in b))
    if magnitude_a == 0 or magnitude_b == 0:
        return -1.0
    return dot / (magnitude_a * magnitude_b)


def rank_icons(
    track_vector: Sequence[float],
    icons: Sequence[Icon],
    icon_vectors: Sequence[Sequence[float]],
    top_k: int,
) -> list[Icon]:
    """Top-k icons by similarity, descending. Ties keep input order."""
    scores = [cosine_similarity(track_vector, vector) for vector in icon_vectors]
    # sorted() is stable, and reverse=True keeps equal keys in original order
    order = sorted(range(len(icons)), key=lambda j: scores[j], reverse=True)
    return [icons[j] for j in order[: max(1, top_k)]]


def build_user_prompt(track_title: str, candidates: Sequence[Icon]) -> str:
    payload = [{"title": icon.title, "tags": list(icon.tags)} for icon in candidates]
    return (
        f'Song title: "{track_title}"\n'
        f"Icons: {json.dumps(payload, indent=2, ensure_ascii=False)}\n"
        "Response:"
    )


def normalize_answer(answer: str) -> str:
    return answer.strip().replace('"', "").replace("'", "").strip()


def validate_ai_config(config: AiConfig) -> None:
    """Raise ConfigurationError unless config has both a base URL and an API key."""
    if not config.base_url:
        raise ConfigurationError(
            "AI configuration (base URL) is required for icon mapping. "
            "Please configure it in Settings."
        )
    if not config.api_key:
        raise ConfigurationError(
            "AI API key is required for icon mapping. Please configure it in Settings."
        )


def apply_icons(playlist: dict[str, Any], media_ids: Sequence[str]) -> dict[str, Any]:
    """Copy of playlist with chapter i (and its tracks) pointing at media_ids[i]."""
    updated = copy.deepcopy(playlist)
    chapters = updated["card"]["content"]["chapters"]
    for chapter, media_id in zip(chapters, media_ids, strict=False):
        ref = icon_ref(media_id)
        chapter["display"] = {**(chapter.get("display") or {}), "icon16x16": ref}
        for track in chapter.get("tracks") or []:
            track["display"] = {**(track.get("display") or {}), "icon16x16": ref}
    return updated


class HybridIconMapper:
    """Assign icons to every chapter of a playlist."""

    def __init__(
        self,
        ai_client: IAiClient,
        ai_config: AiConfig,
        icon_cache: IconCache,
        custom_icon_service: CustomIconService | None = None,
        throttle_seconds: float = 0.5,
    ) -> None:
        self._ai = ai_client
        self.ai_config = ai_config
        self._cache = icon_cache
        self._custom_icons = custom_icon_service
        self.throttle_seconds = throttle_seconds

    def validate_for_mapping(self) -> None:
        validate_ai_config(self.ai_config)

    async def map_icons(
        self,
        playlist: dict[str, Any],
        icons: Sequence[Icon],
        top_k: int = 100,
        on_progress: ProgressCallback | None = None,
        on_chapter_saved: ChapterSavedCallback | None = None,
    ) -> dict[str, Any]:
        """Choose an icon for every chapter.

        Args:
            playlist: {"card": {...}} document; never mutated
            icons: Public icons (custom icons are merged in here)
            top_k: Candidates handed to the LLM per chapter
            on_progress: Called with a JobProgress per chapter (and warnings)
            on_chapter_saved: Awaited after each chapter with the playlist so
                far and {"chapterKey", "iconRef"}. Failures are logged only.

        Returns:
            Updated copy of playlist

        Raises:
            ConfigurationError: AI base URL or API key missing
            ValidationError: icons is empty
            AiServiceUnavailableError: probe failed
            EmbeddingError: embedding call failed
        """
        self.validate_for_mapping()
        if not icons:
            raise ValidationError("No icons available for mapping")

        self._emit(on_progress, JobProgress(status="Testing AI API connection..."))
        await self._ai.probe()

        all_icons = await self._merge_with_custom(icons)

        chapters = playlist["card"]["content"]["chapters"]
        if not chapters:
            logger.info("Playlist has no chapters, nothing to map")
            return copy.deepcopy(playlist)

        titles = [clean_track_title(chapter.get("title") or "") for chapter in chapters]
        icon_vectors = await self._get_icon_embeddings(all_icons)
        track_vectors = await self._ai.create_embeddings(titles, "track titles")

        total = len(chapters)
        media_ids: list[str] = []
        failed = 0

        for i, chapter in enumerate(chapters):
            title = titles[i]
            self._emit(
                on_progress,
                JobProgress(
                    status=f"Mapping icons: processing track {i + 1} of {total}",
                    current=i + 1,
                    total=total,
                    file_name=f'"{title}"',
                ),
            )

            candidates = rank_icons(track_vectors[i], all_icons, icon_vectors, top_k)
            try:
                selected = await self.select_best_icon(title, candidates)
            except (DomainException, httpx.HTTPError) as e:
                logger.error("Failed to map icon for chapter %r: %s", title, e)
                failed += 1
                selected = candidates[0]

            media_ids.append(selected.media_id)

            if on_chapter_saved is not None:
                track_info = {
                    "chapterKey": chapter.get("key", ""),
                    "iconRef": icon_ref(selected.media_id),
                }
                try:
                    await on_chapter_saved(apply_icons(playlist, media_ids), track_info)
                except Exception:
                    # Next chapter still gets mapped; the final save catches up
                    logger.exception("Failed to save playlist after mapping icon for %r", title)

            if i < total - 1 and self.throttle_seconds > 0:
                await asyncio.sleep(self.throttle_seconds)

        if failed:
            message = (
                f"Warning: {failed} out of {total} icon mappings failed "
                "and used fallback icons."
            )
            logger.warning(message)
            self._emit(
                on_progress,
                JobProgress(status=message, current=total, total=total, warning=True),
            )

        return apply_icons(playlist, media_ids)

    async def select_best_icon(self, track_title: str, candidates: Sequence[Icon]) -> Icon:
        """Ask the LLM for the best title; top candidate when it answers nonsense."""
        answer = await self._ai.complete_chat(
            SYSTEM_PROMPT, build_user_prompt(track_title, candidates)
        )
        selected_title = normalize_answer(answer)
        for icon in candidates:
            if icon.title == selected_title:
                return icon

        logger.info(
            "AI returned invalid title %r for %r, using highest similarity as fallback",
            selected_title,
            track_title,
        )
        return candidates[0]

    async def _merge_with_custom(self, icons: Sequence[Icon]) -> list[Icon]:
        if self._custom_icons is None:
            return merge_icons([], icons)
        custom = await self._custom_icons.get_custom_icons_as_icons()
        if custom:
            logger.info("Including %d custom icons", len(custom))
        return merge_icons(custom, icons)

    async def _get_icon_embeddings(self, icons: Sequence[Icon]) -> list[tuple[float, ...]]:
        if not await self._cache.should_refresh(icons):
            cached = await self._cache.get_cached()
            if cached is not None:
                logger.info("Using cached icon embeddings...")
                return list(cached.embeddings)

        lookup = await self._cache.get_cached_embeddings_for(icons)
        vectors_by_hash = {
            icon_content_hash(icon): vector
            for icon, vector in zip(lookup.icons, lookup.embeddings, strict=True)
        }
        if lookup.missing:
            logger.info(
                "Embedding %d new or changed icons (%d reused from cache)",
                len(lookup.missing),
                len(lookup.icons),
            )
            fresh = await self._ai.create_embeddings(
                [icon.embedding_text for icon in lookup.missing], "icons"
            )
            for icon, vector in zip(lookup.missing, fresh, strict=True):
                vectors_by_hash[icon_content_hash(icon)] = tuple(vector)

        embeddings = [vectors_by_hash[icon_content_hash(icon)] for icon in icons]
        try:
            await self._cache.set_cached(icons, embeddings)
        except StorageQuotaExceededError as e:
            # Cache is already cleared at this point; the vectors are still good for this run
            logger.warning("Could not cache icon embeddings: %s", e)
        return embeddings

    @staticmethod
    def _emit(callback: ProgressCallback | None, progress: JobProgress) -> None:
        if callback is not None:
            callback(progress)
