# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""School organisation models.

Contains the tenant (School), its academic calendar (AcademicCycle and
Period), the ranked classes students progress through, and the students
themselves.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from academic_progression.infrastructure.database.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class School(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A school (tenant).

    progression_mode and pass_threshold are optional per-school overrides
    of the global progression defaults.
    """

    __tablename__ = "schools"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    progression_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    pass_threshold: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<School {self.code}: {self.name}>"


class AcademicCycle(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """An academic year made of ordered periods.

    Tracks whether end-of-cycle progression has already been executed and
    which run did it.
    """

    __tablename__ = "academic_cycles"
    __table_args__ = (Index("ix_academic_cycles_school_id", "school_id"),)

    school_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    progression_executed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    progression_executed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    progression_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    progression_execution_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class Period(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A term within an academic cycle.

    position is the period's place in its cycle (1, 2, 3 ...).
    """

    __tablename__ = "periods"
    __table_args__ = (Index("ix_periods_school_id", "school_id"),)

    school_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False
    )
    cycle_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("academic_cycles.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Period {self.name} (position {self.position})>"


class Class(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A ranked class (grade level) within a school.

    rank defines the promotion order; there is no stored "next class"
    pointer. The graduation class is identified by its reserved name.
    school_id is nullable because legacy rows were created without it.
    """

    __tablename__ = "classes"
    __table_args__ = (Index("ix_classes_school_id_rank", "school_id", "rank"),)

    school_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Class {self.name} (rank {self.rank})>"


class Student(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A student; class_id is the student's current class."""

    __tablename__ = "students"
    __table_args__ = (
        Index("ix_students_school_id", "school_id"),
        Index("ix_students_class_id", "class_id"),
    )

    school_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=True
    )
    class_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("classes.id", ondelete="SET NULL"), nullable=True
    )
    student_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<Student {self.student_number or self.id}>"
