# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Promotion audit model.

One StudentPromotion row is written for every applied class transition.
Rows embed denormalized before/after enrollment snapshots so the history
stays readable when courses or classes change later, and they are never
updated or deleted by the engine.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from academic_progression.infrastructure.database.models.base import (
    Base,
    JSONType,
    UUIDPrimaryKeyMixin,
)
from academic_progression.utils.datetime import utc_now


class ImmutableRecordError(Exception):
    """Raised when code tries to modify a written audit record."""

    pass


class StudentPromotion(UUIDPrimaryKeyMixin, Base):
    """Immutable audit entry for one student's class transition.

    Attributes:
        previous_enrollments: Snapshot of enrollments before the transition.
        new_enrollments: Snapshot of enrollments after the transition.
        changes: Course ids grouped as added, removed and retained.
        execution_id: Correlation id of the run that wrote the row.
        progression_id: Correlation id of the progression the run belongs to.
    """

    __tablename__ = "student_class_promotions"
    __table_args__ = (
        Index("ix_student_class_promotions_school_execution", "school_id", "execution_id"),
        Index("ix_student_class_promotions_school_progression", "school_id", "progression_id"),
        Index("ix_student_class_promotions_student_id", "student_id"),
    )

    school_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=True
    )
    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    from_class_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True
    )
    to_class_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False
    )
    triggered_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    previous_enrollments: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONType, nullable=True
    )
    new_enrollments: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    changes: Mapped[dict[str, list[str]] | None] = mapped_column(JSONType, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    execution_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    progression_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    def __repr__(self) -> str:
        return f"<StudentPromotion {self.student_id}: {self.from_class_id} -> {self.to_class_id}>"


@event.listens_for(StudentPromotion, "before_update")
def _reject_promotion_update(mapper, connection, target: StudentPromotion) -> None:
    raise ImmutableRecordError(f"Promotion record {target.id} is append-only")
