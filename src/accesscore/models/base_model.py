"""Standard column definitions for consistency."""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from sqlalchemy.types import DateTime


def uuid_pk():
    return Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
        nullable=False
    )


def uuid_fk(table: str, nullable: bool = False, ondelete: str = "CASCADE"):
    return Column(
        UUID(as_uuid=True),
        ForeignKey(f"{table}.id", ondelete=ondelete),
        nullable=nullable,
        index=True
    )


def _utcnow():
    return datetime.now(timezone.utc)


def timestamp_created():
    return Column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False
    )
