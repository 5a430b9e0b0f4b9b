# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models.

Importing this package registers every table on Base.metadata.
"""

from academic_progression.infrastructure.database.models.base import (
    Base,
    JSONType,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
    generate_uuid,
)
from academic_progression.infrastructure.database.models import tenant

__all__ = [
    "Base",
    "JSONType",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "generate_uuid",
    "tenant",
]
