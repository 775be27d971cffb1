"""Audio upload pipeline: upload URL → transfer → wait for transcode."""

import asyncio
import base64
import hashlib
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from yotoforge.domain.entities import AudioFile
from yotoforge.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainException,
    TranscodeTimeoutError,
    UploadError,
)
from yotoforge.domain.ports import IContentHttpClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadUrl:
    upload_id: str
    upload_url: str | None
    file_name: str
    sha256: str

    @property
    def already_exists(self) -> bool:
        return self.upload_url is None


@dataclass(frozen=True)
class UploadResult:
    """Outcome of SongUploadService.upload_song."""

    upload_id: str
    file_name: str
    sha256: str
    transcode: dict[str, Any] | None
    already_exists: bool

    @property
    def is_transcoding_complete(self) -> bool:
        return bool(self.transcode) and self.transcode.get("transcodedAt") is not None

    @property
    def message(self) -> str:
        if self.already_exists:
            return "File already exists in Yoto system"
        return "File uploaded successfully"


def sha256_base64url(data: bytes) -> str:
    """SHA-256 digest, base64url encoded without padding (the API's file ID)."""
    digest = hashlib.sha256(data).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class SongUploadService:
    """Upload audio files and wait for the server-side transcode.

    Hey future me - the API deduplicates by content hash. If it already has the
    file it hands back an upload ID WITHOUT an upload URL, and we skip straight
    to the transcode check. Uploading the same album twice is nearly free.
    """

    def __init__(
        self,
        client: IContentHttpClient,
        transcode_timeout: float = 300.0,
        poll_interval: float = 5.0,
    ) -> None:
        self._client = client
        self.transcode_timeout = transcode_timeout
        self.poll_interval = poll_interval

    async def get_upload_url(self, file: AudioFile, data: bytes | None = None) -> UploadUrl:
        """Request an upload slot for file.

        Args:
            file: Local audio file
            data: File contents, if already read (avoids a second disk read)

        Returns:
            UploadUrl; upload_url is None when the file already exists remotely
        """
        if data is None:
            data = await asyncio.to_thread(file.read_bytes)
        file_name = file.display_name
        sha256 = sha256_base64url(data)

        logger.info("Getting upload URL for: %s", file_name)
        try:
            result = await self._client.get(
                "media/transcode/audio/uploadUrl",
                params={"sha256": sha256, "filename": file_name},
            )
        except (AuthenticationError, AuthorizationError):
            raise
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Error getting upload URL for %s: %s", file_name, e)
            raise UploadError(f"Failed to get upload URL: {e}") from e

        upload = (result or {}).get("upload") or {}
        upload_id = upload.get("uploadId")
        if not upload_id:
            raise UploadError("Failed to get upload URL: API response missing upload ID")

        upload_url = upload.get("uploadUrl") or None
        if upload_url is None:
            logger.info("File already exists in Yoto system: %s", file_name)
        return UploadUrl(
            upload_id=upload_id, upload_url=upload_url, file_name=file_name, sha256=sha256
        )

    async def upload_file(self, file: AudioFile, upload_url: str, data: bytes | None = None) -> None:
        """PUT the raw bytes to the pre-signed URL."""
        if not upload_url:
            raise UploadError("Upload URL is required but was empty")
        if data is None:
            data = await asyncio.to_thread(file.read_bytes)

        logger.info("Uploading file: %s (%d bytes)", file.display_name, len(data))
        try:
            await self._client.put_presigned(upload_url, data)
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Error uploading file %s: %s", file.display_name, e)
            raise UploadError(f"Failed to upload file: {e}") from e

    async def check_transcoding_status(
        self, upload_id: str, loudnorm: bool = False
    ) -> tuple[bool, dict[str, Any] | None]:
        """Returns (is_complete, transcode_record)."""
        logger.debug("Checking transcoding status for upload: %s", upload_id)
        try:
            result = await self._client.get(
                f"media/upload/{upload_id}/transcoded",
                params={"loudnorm": "true" if loudnorm else "false"},
            )
        except (AuthenticationError, AuthorizationError):
            raise
        except (DomainException, httpx.HTTPError) as e:
            logger.error("Error checking transcoding status for %s: %s", upload_id, e)
            raise UploadError(f"Failed to check transcoding status: {e}") from e

        transcode = (result or {}).get("transcode")
        is_complete = bool(transcode) and transcode.get("transcodedAt") is not None
        return is_complete, transcode

    async def wait_for_transcoding(
        self,
        upload_id: str,
        loudnorm: bool = False,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> dict[str, Any]:
        """Poll until the transcode finishes.

        Raises:
            TranscodeTimeoutError: Not finished within timeout seconds
        """
        timeout = self.transcode_timeout if timeout is None else timeout
        poll_interval = self.poll_interval if poll_interval is None else poll_interval

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            is_complete, transcode = await self.check_transcoding_status(upload_id, loudnorm)
            if is_complete and transcode is not None:
                logger.info("Transcoding completed for upload: %s", upload_id)
                return transcode

            logger.debug(
                "Transcoding still in progress for %s, waiting %.1fs...", upload_id, poll_interval
            )
            await asyncio.sleep(min(poll_interval, max(0.0, deadline - loop.time())))

        raise TranscodeTimeoutError(upload_id, timeout)

    async def upload_song(
        self, file: AudioFile, loudnorm: bool = False, wait_for_completion: bool = True
    ) -> UploadResult:
        """Run the full pipeline for one file."""
        logger.info("Starting song upload for: %s", file.display_name)
        data = await asyncio.to_thread(file.read_bytes)

        details = await self.get_upload_url(file, data)
        if details.already_exists:
            logger.info("Skipping file transfer - file already exists in Yoto system")
        else:
            await self.upload_file(file, details.upload_url or "", data)

        if wait_for_completion:
            transcode: dict[str, Any] | None = await self.wait_for_transcoding(
                details.upload_id, loudnorm
            )
        else:
            _, transcode = await self.check_transcoding_status(details.upload_id, loudnorm)

        return UploadResult(
            upload_id=details.upload_id,
            file_name=details.file_name,
            sha256=details.sha256,
            transcode=transcode,
            already_exists=details.already_exists,
        )
