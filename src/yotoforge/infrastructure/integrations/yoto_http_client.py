"""Authenticated HTTP client for the Yoto content API."""

import contextvars
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from yotoforge.config import ContentApiSettings
from yotoforge.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ContentApiError,
)
from yotoforge.domain.ports import IContentHttpClient

logger = logging.getLogger(__name__)

AuthFailureCallback = Callable[[], None]
TokenProvider = Callable[[], str | None]

# Hey future me - jobs carry their OWN credential (the user who queued them), so the
# worker binds it here for the job's duration. Same trick as the correlation ID in
# observability/logging.py: contextvars are per-task, so a job running in the worker
# task never leaks its token into whoever calls the client from elsewhere.
auth_token_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "content_auth_token", default=""
)


@contextmanager
def bind_auth_token(token: str) -> Iterator[None]:
    """Use token for every content API call made inside the block."""
    reset_token = auth_token_var.set(token)
    try:
        yield
    finally:
        auth_token_var.reset(reset_token)


class YotoHttpClient(IContentHttpClient):
    """HTTP client for content API operations.

    Token resolution order: bound job token → token_provider() → static
    settings token. 401/403 responses fire the auth-failure callback BEFORE
    raising, so the UI can log the user out even if the caller swallows the
    exception.
    """

    def __init__(
        self,
        settings: ContentApiSettings,
        client: httpx.AsyncClient | None = None,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._token_provider = token_provider
        self._auth_failure_callback: AuthFailureCallback | None = None

    def set_auth_failure_callback(self, callback: AuthFailureCallback | None) -> None:
        """Set callback to handle auth failures (401/403 or missing token)."""
        self._auth_failure_callback = callback

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client (only if we created it)."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_auth_token(self) -> str | None:
        token = auth_token_var.get()
        if token:
            return token
        if self._token_provider is not None:
            token = self._token_provider() or ""
            if token:
                return token
        return self.settings.auth_token or None

    def _notify_auth_failure(self) -> None:
        if self._auth_failure_callback is None:
            return
        try:
            self._auth_failure_callback()
        except Exception:
            logger.exception("Auth failure callback raised")

    def _build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        token = self._get_auth_token()
        if not token:
            self._notify_auth_failure()
            raise AuthenticationError("No authentication token available")

        request_headers = {
            "Authorization": token if token.startswith("Bearer ") else f"Bearer {token}",
            "Accept": "application/json",
            **(headers or {}),
        }

        client = await self._get_client()
        response = await client.request(
            method,
            self._build_url(path),
            params=params,
            json=json,
            content=content,
            headers=request_headers,
        )

        if response.is_error:
            status = response.status_code
            body = response.text
            message = f"HTTP error! status: {status} {response.reason_phrase} - {body}"
            if status in (401, 403):
                logger.warning("Auth failure detected: %d %s", status, response.reason_phrase)
                self._notify_auth_failure()
                if status == 401:
                    raise AuthenticationError(message)
                raise AuthorizationError(message)
            raise ContentApiError(status, response.reason_phrase, body)

        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post(
        self,
        path: str,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return await self._request(
            "POST", path, json=json, content=content, headers=headers, params=params
        )

    async def delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    # Yo, pre-signed upload URLs point at object storage, NOT the content API. Sending
    # our bearer token there would be a leak (and S3 rejects unexpected auth anyway).
    async def put_presigned(
        self, url: str, content: bytes, content_type: str = "application/x-www-form-urlencoded"
    ) -> None:
        client = await self._get_client()
        response = await client.put(url, content=content, headers={"Content-Type": content_type})
        if response.is_error:
            raise ContentApiError(response.status_code, response.reason_phrase, response.text)
