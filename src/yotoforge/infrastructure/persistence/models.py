"""SQLAlchemy ORM models for YotoForge."""

from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me - this single table IS the persistence collaborator. Job history,
# the icon embedding cache and custom icon metadata all live here as JSON text
# under well-known keys ("jobQueue-history", "yoto-icons-cache", ...). The
# embedding blob can get big (hundreds of icons x 384 floats), hence Text.
class KeyValueModel(Base):
    """JSON value stored under a string key."""

    __tablename__ = "key_value_store"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )
