"""
Mixins for SQLAlchemy models.
Provides reusable column sets for timestamps and soft deletion.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime
from sqlalchemy.sql import func


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """
    Adds created/updated timestamps to any model.

    Provides:
    - created_at: Automatic timestamp (UTC) when record is created
    - updated_at: Automatic timestamp (UTC) when record is modified
    """

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        comment="UTC timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
        comment="UTC timestamp when record was last updated"
    )


class SoftDeleteMixin:
    """
    Soft deletion: rows are stamped with deleted_at instead of being removed,
    so audit history survives. Active queries filter on deleted_at IS NULL.
    """

    deleted_at = Column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
        comment="UTC timestamp when record was soft-deleted"
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def mark_deleted(self) -> None:
        self.deleted_at = utcnow()
