# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Declarative base and shared column mixins for ORM models.

Identifiers are stored as 36-character UUID strings and JSON columns use
JSONB on PostgreSQL, so the same metadata can be created on the
production database and on the lightweight test database.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from academic_progression.utils.datetime import utc_now

JSONType = JSON().with_variant(JSONB(), "postgresql")


def generate_uuid() -> str:
    """Generate a new string UUID for primary keys."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Declarative base for all tenant models."""

    pass


class UUIDPrimaryKeyMixin:
    """Adds a string UUID primary key."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)


class TimestampMixin:
    """Adds created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )
