# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment reconciliation for a student changing class.

Policy:
- An enrollment is removed only when its course is bound to a class other
  than the destination. Courses without a class are cross-class electives
  and are always kept.
- A course of the destination class is added when the student has no
  enrollment in it yet.
- Everything not removed is retained.

Reconciling an already reconciled set yields nothing to add or remove.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import case, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.infrastructure.database.models.tenant.course import Course, Enrollment
from academic_progression.utils.datetime import utc_today


@dataclass(frozen=True)
class EnrollmentSnapshot:
    """Denormalized view of one enrollment, as stored in audit records."""

    course_id: str
    course_name: str
    class_id: str | None
    period_id: str | None
    enrollment_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "course_id": self.course_id,
            "course_name": self.course_name,
            "class_id": self.class_id,
            "period_id": self.period_id,
        }


@dataclass(frozen=True)
class CourseRef:
    """Plain copy of a course offering."""

    id: str
    name: str
    class_id: str | None


@dataclass
class EnrollmentDiff:
    """Changes needed to align a student's enrollments with a class."""

    to_remove: list[EnrollmentSnapshot] = field(default_factory=list)
    to_add: list[CourseRef] = field(default_factory=list)
    retained: list[EnrollmentSnapshot] = field(default_factory=list)

    @property
    def removed_course_ids(self) -> list[str]:
        return [e.course_id for e in self.to_remove]

    @property
    def added_course_ids(self) -> list[str]:
        return [c.id for c in self.to_add]

    @property
    def retained_course_ids(self) -> list[str]:
        return [e.course_id for e in self.retained]

    @property
    def is_empty(self) -> bool:
        return not self.to_remove and not self.to_add


def compute_enrollment_diff(
    current: Sequence[EnrollmentSnapshot],
    offerings: Iterable[CourseRef],
    destination_class_id: str,
) -> EnrollmentDiff:
    """Compute the enrollment diff for a move to the destination class.

    Args:
        current: The student's enrollments before the move.
        offerings: Courses offered by the destination class.
        destination_class_id: Destination class id.

    Returns:
        The diff. Pure function, nothing is persisted.
    """
    diff = EnrollmentDiff()
    for enrollment in current:
        if enrollment.class_id is not None and enrollment.class_id != destination_class_id:
            diff.to_remove.append(enrollment)
        else:
            diff.retained.append(enrollment)

    enrolled = {e.course_id for e in current}
    seen: set[str] = set()
    for course in offerings:
        if course.class_id != destination_class_id:
            continue
        if course.id in enrolled or course.id in seen:
            continue
        seen.add(course.id)
        diff.to_add.append(course)

    return diff


class EnrollmentReconciler:
    """Reads enrollments and offerings and computes the diff.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def snapshot(self, student_id: str) -> list[EnrollmentSnapshot]:
        """Snapshot every enrollment of a student, ordered by course name."""
        query = (
            select(Enrollment, Course)
            .join(Course, Course.id == Enrollment.course_id)
            .where(Enrollment.student_id == student_id)
            .order_by(Course.name, Course.id)
        )
        result = await self.db.execute(query)
        return [
            EnrollmentSnapshot(
                course_id=course.id,
                course_name=course.name,
                class_id=course.class_id,
                period_id=enrollment.period_id,
                enrollment_id=enrollment.id,
            )
            for enrollment, course in result.all()
        ]

    async def destination_offerings(self, destination_class_id: str) -> list[CourseRef]:
        """Get the courses bound to the destination class."""
        query = (
            select(Course)
            .where(Course.class_id == destination_class_id)
            .order_by(Course.name, Course.id)
        )
        result = await self.db.execute(query)
        return [CourseRef(id=c.id, name=c.name, class_id=c.class_id) for c in result.scalars()]

    async def reconcile(
        self,
        student_id: str,
        destination_class_id: str,
        current: Sequence[EnrollmentSnapshot] | None = None,
    ) -> EnrollmentDiff:
        """Compute the diff for moving a student to the destination class.

        Args:
            student_id: Student identifier.
            destination_class_id: Destination class id.
            current: Pre-loaded snapshot; loaded when omitted.

        Returns:
            The enrollment diff.
        """
        if current is None:
            current = await self.snapshot(student_id)
        offerings = await self.destination_offerings(destination_class_id)
        return compute_enrollment_diff(current, offerings, destination_class_id)

    async def remove_enrollments(self, student_id: str, course_ids: Sequence[str]) -> int:
        """Delete a student's enrollments in the given courses.

        Each affected course counter is decremented once, never below zero.

        Returns:
            Number of enrollments deleted.
        """
        if not course_ids:
            return 0
        result = await self.db.execute(
            delete(Enrollment).where(
                Enrollment.student_id == student_id,
                Enrollment.course_id.in_(course_ids),
            )
        )
        await self._adjust_counts(course_ids, -1)
        return result.rowcount or 0

    async def add_enrollments(
        self,
        student_id: str,
        course_ids: Sequence[str],
        period_id: str,
        school_id: str | None,
    ) -> int:
        """Enroll a student in the given courses for a period.

        Returns:
            Number of enrollments created.
        """
        if not course_ids:
            return 0
        today = utc_today()
        for course_id in course_ids:
            self.db.add(
                Enrollment(
                    student_id=student_id,
                    course_id=course_id,
                    period_id=period_id,
                    school_id=school_id,
                    status="active",
                    enrollment_date=today,
                )
            )
        await self.db.flush()
        await self._adjust_counts(course_ids, 1)
        return len(course_ids)

    async def _adjust_counts(self, course_ids: Sequence[str], delta: int) -> None:
        """Atomically move the enrollment counters of courses by one."""
        if delta > 0:
            value = Course.enrollment_count + 1
        else:
            value = case((Course.enrollment_count > 0, Course.enrollment_count - 1), else_=0)
        await self.db.execute(
            update(Course)
            .where(Course.id.in_(list(course_ids)))
            .values(enrollment_count=value)
            .execution_options(synchronize_session=False)
        )
