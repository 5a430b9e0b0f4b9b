# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course registration models.

Contains course offerings, student enrollments in them, and the per-course
aggregated exam results used by threshold promotion.
"""

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from academic_progression.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)
from academic_progression.utils.datetime import utc_now


class Course(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A course offering.

    class_id binds the course to one class; a null class_id marks a
    cross-class elective. enrollment_count is only changed through atomic
    UPDATE statements.
    """

    __tablename__ = "courses"
    __table_args__ = (
        Index("ix_courses_school_id", "school_id"),
        Index("ix_courses_class_id", "class_id"),
    )

    school_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=True
    )
    class_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    enrollment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Course {self.code}: {self.name}>"


class Enrollment(UUIDPrimaryKeyMixin, Base):
    """A student's registration in a course for a period."""

    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_enrollments_student_course"),
        Index("ix_enrollments_student_id", "student_id"),
    )

    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    period_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("periods.id", ondelete="CASCADE"), nullable=False
    )
    school_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    enrollment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )


class ExamResultAggregate(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Aggregated exam result of one student in one course for one period."""

    __tablename__ = "exam_results"
    __table_args__ = (
        UniqueConstraint(
            "student_id", "course_id", "period_id", name="uq_exam_results_student_course_period"
        ),
    )

    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    period_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("periods.id", ondelete="CASCADE"), nullable=False
    )
    school_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=True
    )
    final_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    passed: Mapped[bool | None] = mapped_column("pass", Boolean, nullable=True)
    computed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
