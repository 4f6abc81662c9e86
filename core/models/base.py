"""Base model and mixins for all SQLAlchemy models.

Provides:
- Base: Declarative base class for all models
- EntityMixin: Adds a string UUID primary key and audit timestamps

Ids are stored as 36-character strings so they travel over the wire
unchanged and work identically on PostgreSQL and SQLite.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_valid_id(value: object) -> bool:
    """True when value is a well-formed entity id (canonical UUID string)."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False


def as_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive input is taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    """Render a timestamp as ISO-8601, treating naive values as UTC."""
    if value is None:
        return None
    return as_utc(value).isoformat()


class Base(DeclarativeBase):
    """Declarative base for all TaskHub models."""
    pass


class EntityMixin:
    """Mixin providing the primary key and standard audit columns.

    Adds:
    - id: UUID string primary key (auto-generated)
    - created_at: Timestamp set on insert
    - updated_at: Timestamp updated on every change

    Timestamps are set client-side with microsecond precision so that
    creation order is stable for ordered collections (subtasks, comments).
    """

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_id,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
