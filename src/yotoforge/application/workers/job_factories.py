"""Factories turning creation requests into queued jobs, one per job variant."""

from abc import ABC, abstractmethod
from uuid import uuid4

from yotoforge.domain.entities import (
    AiConfig,
    CreatePlaylistPayload,
    CreatePlaylistRequest,
    Job,
    JobCreationRequest,
    JobType,
    RegenerateIconsPayload,
    RegenerateIconsRequest,
    UpdatePlaylistPayload,
    UpdatePlaylistRequest,
)
from yotoforge.domain.exceptions import InvalidJobTypeError


class JobFactory(ABC):
    """Build a fresh queued Job for exactly one job type.

    Factories are pure: new id, "Queued" progress, created_at = now, nothing
    else happens. Handing a factory the wrong request type is a wiring bug and
    raises InvalidJobTypeError.
    """

    job_type: JobType

    def create_job(
        self,
        request: JobCreationRequest,
        auth_token: str,
        ai_config: AiConfig | None = None,
    ) -> Job:
        if request.type != self.job_type:
            raise InvalidJobTypeError(type(self).__name__, request.type.value)
        return self._build(request, auth_token, ai_config or AiConfig())

    @abstractmethod
    def _build(self, request: JobCreationRequest, auth_token: str, ai_config: AiConfig) -> Job:
        pass


class CreatePlaylistJobFactory(JobFactory):
    job_type = JobType.CREATE_PLAYLIST

    def _build(self, request: JobCreationRequest, auth_token: str, ai_config: AiConfig) -> Job:
        assert isinstance(request, CreatePlaylistRequest)
        return Job(
            id=str(uuid4()),
            type=self.job_type,
            playlist_title=request.playlist_title,
            payload=CreatePlaylistPayload(
                auth_token=auth_token,
                playlist_title=request.playlist_title,
                ai_config=ai_config,
                files=tuple(request.files),
                top_k_icons=request.top_k_icons,
                cover_image_url=request.cover_image_url,
            ),
        )


class UpdatePlaylistJobFactory(JobFactory):
    job_type = JobType.UPDATE_PLAYLIST

    def _build(self, request: JobCreationRequest, auth_token: str, ai_config: AiConfig) -> Job:
        assert isinstance(request, UpdatePlaylistRequest)
        return Job(
            id=str(uuid4()),
            type=self.job_type,
            playlist_title=request.playlist_title,
            payload=UpdatePlaylistPayload(
                auth_token=auth_token,
                playlist_title=request.playlist_title,
                ai_config=ai_config,
                files=tuple(request.files),
                card_id=request.card_id,
                top_k_icons=request.top_k_icons,
                cover_image_url=request.cover_image_url,
            ),
        )


class RegenerateIconsJobFactory(JobFactory):
    job_type = JobType.REGENERATE_ICONS

    def _build(self, request: JobCreationRequest, auth_token: str, ai_config: AiConfig) -> Job:
        assert isinstance(request, RegenerateIconsRequest)
        return Job(
            id=str(uuid4()),
            type=self.job_type,
            playlist_title=request.playlist_title,
            payload=RegenerateIconsPayload(
                auth_token=auth_token,
                playlist_title=request.playlist_title,
                ai_config=ai_config,
                playlist_id=request.playlist_id,
                top_k_icons=request.top_k_icons,
            ),
        )


def default_job_factories() -> dict[JobType, JobFactory]:
    factories: list[JobFactory] = [
        CreatePlaylistJobFactory(),
        UpdatePlaylistJobFactory(),
        RegenerateIconsJobFactory(),
    ]
    return {factory.job_type: factory for factory in factories}
