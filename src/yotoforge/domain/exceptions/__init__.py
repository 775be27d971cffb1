"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing str(exception).
    # Job failure records use str(exc) verbatim, so keep messages human readable!
    # DON'T raise this directly - pick a specific subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ValidationError(DomainException):
    """Input validation failed.

    Raised when input data fails validation rules (missing fields,
    empty icon sets, blank playlist IDs).

    Example:
        raise ValidationError("Playlist ID is required")
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    Example:
        raise ConfigurationError("AI API key is required for icon mapping")
    """

    pass


class AuthenticationError(DomainException):
    """User is not authenticated or token expired (HTTP 401 from the content API)."""

    pass


class AuthorizationError(DomainException):
    """User is authenticated but not authorized for this action (HTTP 403)."""

    pass


# =============================================================================
# Job queue faults
# =============================================================================


class InvalidJobTypeError(DomainException):
    """A job factory received a request for a different job variant.

    Hey future me - this is a PROGRAMMING error, not a user error! The queue
    looks up the factory by request.type, so hitting this means someone wired
    a factory to the wrong key. Never retry, never swallow.
    """

    def __init__(self, factory_name: str, job_type: str) -> None:
        super().__init__(f"Invalid job type '{job_type}' for {factory_name}")
        self.factory_name = factory_name
        self.job_type = job_type


class UnsupportedJobTypeError(DomainException):
    """No factory or workflow is registered for the requested job type."""

    def __init__(self, job_type: str) -> None:
        super().__init__(f"Unsupported job type: {job_type}")
        self.job_type = job_type


# =============================================================================
# Content API faults
# =============================================================================


class ContentApiError(DomainException):
    """Non-success response from the content API (anything but 401/403)."""

    def __init__(self, status_code: int, reason: str, body: str = "") -> None:
        super().__init__(f"HTTP error! status: {status_code} {reason} - {body}")
        self.status_code = status_code
        self.reason = reason
        self.body = body


class PlaylistServiceError(DomainException):
    """Fetching, saving or deleting a playlist failed."""

    pass


class IconServiceError(DomainException):
    """Fetching or uploading icons failed."""

    pass


class UploadError(DomainException):
    """An audio upload step (upload URL, transfer, transcode status) failed."""

    pass


class TranscodeTimeoutError(UploadError):
    """Transcoding did not finish within the configured wall-clock bound."""

    # Yo, the message MUST contain both the bound and the upload ID - that's what
    # ends up in the job history and it's the only clue when someone asks "why
    # did my playlist fail?". Don't shorten it!
    def __init__(self, upload_id: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Transcoding timeout after {timeout_seconds:g}s for upload: {upload_id}"
        )
        self.upload_id = upload_id
        self.timeout_seconds = timeout_seconds


# =============================================================================
# AI API faults
# =============================================================================


class AiServiceUnavailableError(DomainException):
    """The AI endpoint failed the connectivity probe."""

    pass


class EmbeddingError(DomainException):
    """The embeddings endpoint returned an error."""

    pass


class ChatCompletionError(DomainException):
    """The chat completions endpoint returned an error or an unusable answer."""

    pass


# =============================================================================
# Persistence faults
# =============================================================================


class StorageQuotaExceededError(DomainException):
    """A value did not fit into the key-value store."""

    def __init__(self, key: str, size: int, limit: int) -> None:
        super().__init__(
            f"Storage quota exceeded for '{key}': {size} bytes > {limit} bytes"
        )
        self.key = key
        self.size = size
        self.limit = limit


__all__ = [
    "AiServiceUnavailableError",
    "AuthenticationError",
    "AuthorizationError",
    "ChatCompletionError",
    "ConfigurationError",
    "ContentApiError",
    "DomainException",
    "EmbeddingError",
    "IconServiceError",
    "InvalidJobTypeError",
    "PlaylistServiceError",
    "StorageQuotaExceededError",
    "TranscodeTimeoutError",
    "UnsupportedJobTypeError",
    "UploadError",
    "ValidationError",
]
