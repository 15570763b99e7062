"""Column mixins shared by the models."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import declared_attr


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TimestampMixin:
    """created_at/updated_at, filled in Python so every backend stores the same instant."""

    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )


class OwnedByUserMixin:
    """Rows that belong to exactly one user and are only read back for that user."""

    @declared_attr
    def user_id(cls):
        return Column(
            Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
        )
