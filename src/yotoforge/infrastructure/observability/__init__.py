"""Observability - structured logging with correlation IDs."""

from yotoforge.infrastructure.observability.logging import (
    bound_correlation_id,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "bound_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "set_correlation_id",
]
