"""External service integrations (content API, AI API)."""

from yotoforge.infrastructure.integrations.ai_client import AiClient
from yotoforge.infrastructure.integrations.yoto_http_client import (
    YotoHttpClient,
    auth_token_var,
    bind_auth_token,
)

__all__ = ["AiClient", "YotoHttpClient", "auth_token_var", "bind_auth_token"]
