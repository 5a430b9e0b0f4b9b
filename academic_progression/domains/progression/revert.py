# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Revert of a promotion run.

Audit records are never touched. A revert moves students back to the class
stored in the most recent matching record. By default only the class is
restored; enrollment changes are replayed in reverse on request.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.domains.progression.exceptions import (
    InvalidRevertRequestError,
    StudentNotFoundError,
)
from academic_progression.domains.progression.periods import AcademicPeriodService
from academic_progression.domains.progression.reconciler import EnrollmentReconciler
from academic_progression.infrastructure.database.models.tenant.course import Course
from academic_progression.infrastructure.database.models.tenant.promotion import StudentPromotion
from academic_progression.infrastructure.database.models.tenant.school import Period, Student
from academic_progression.models.progression import EntityError, RevertResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _RecordRef:
    student_id: str
    from_class_id: str | None
    to_class_id: str
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    previous_enrollments: list[dict[str, Any]] = field(default_factory=list)


def _newest(rows: list[StudentPromotion]) -> StudentPromotion:
    """Pick the newest of one student's records, sorted newest first.

    Records with identical timestamps are ordered along the class chain:
    the newest is the one whose destination no other tied record starts from.
    """
    head = rows[0]
    tied = [
        row
        for row in rows
        if row.executed_at == head.executed_at and row.created_at == head.created_at
    ]
    if len(tied) == 1:
        return head
    starts = {row.from_class_id for row in tied}
    for row in tied:
        if row.to_class_id not in starts:
            return row
    return head


class RevertCoordinator:
    """Moves the students of a run back to their previous class.

    Attributes:
        db: Async database session.
        period_service: Period and cycle lookups.
        reconciler: Enrollment reconciler used to replay enrollment changes.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.period_service = AcademicPeriodService(db)
        self.reconciler = EnrollmentReconciler(db)

    async def revert(
        self,
        school_id: str,
        execution_id: str | None = None,
        progression_id: str | None = None,
        restore_enrollments: bool = False,
    ) -> RevertResult:
        """Revert the promotions of a run.

        Records must match every correlation id given. Only the newest
        matching record of each student is applied. No match is not an
        error: the run was never executed or is already reverted.

        Args:
            school_id: School identifier.
            execution_id: Execution id of the run.
            progression_id: Progression id of the run.
            restore_enrollments: Also undo the enrollment changes.

        Returns:
            Revert result with per-student errors.

        Raises:
            InvalidRevertRequestError: If no correlation id is given.
        """
        if not execution_id and not progression_id:
            raise InvalidRevertRequestError("execution_id or progression_id is required")

        result = RevertResult(execution_id=execution_id, progression_id=progression_id)

        records = await self._latest_records(school_id, execution_id, progression_id)
        if not records:
            logger.info(
                "No promotion records for school %s match execution %s / progression %s",
                school_id,
                execution_id,
                progression_id,
            )
            return result

        for record in records:
            if record.from_class_id is None:
                result.errors.append(
                    EntityError(
                        student_id=record.student_id,
                        message="Student had no previous class to restore",
                    )
                )
                continue

            try:
                async with self.db.begin_nested():
                    restored = await self._revert_one(school_id, record, restore_enrollments)
            except Exception as e:
                logger.error("Failed to revert student %s: %s", record.student_id, e)
                result.errors.append(EntityError(student_id=record.student_id, message=str(e)))
                continue

            result.reverted_count += 1
            result.restored_enrollments += restored

        cleared = await self.period_service.clear_progression_executed(
            school_id, execution_id, progression_id
        )

        logger.info(
            "Reverted %d students of school %s (%d errors, %d cycles reopened)",
            result.reverted_count,
            school_id,
            len(result.errors),
            cleared,
        )
        return result

    async def _latest_records(
        self,
        school_id: str,
        execution_id: str | None,
        progression_id: str | None,
    ) -> list[_RecordRef]:
        """Get the newest matching record of each student."""
        query = select(StudentPromotion).where(StudentPromotion.school_id == school_id)
        if execution_id:
            query = query.where(StudentPromotion.execution_id == execution_id)
        if progression_id:
            query = query.where(StudentPromotion.progression_id == progression_id)
        query = query.order_by(
            StudentPromotion.executed_at.desc().nulls_last(),
            StudentPromotion.created_at.desc(),
            StudentPromotion.id.desc(),
        )

        result = await self.db.execute(query)

        by_student: dict[str, list[StudentPromotion]] = {}
        for row in result.scalars():
            by_student.setdefault(row.student_id, []).append(row)

        latest: list[_RecordRef] = []
        for rows in by_student.values():
            row = _newest(rows)
            changes = row.changes or {}
            latest.append(
                _RecordRef(
                    student_id=row.student_id,
                    from_class_id=row.from_class_id,
                    to_class_id=row.to_class_id,
                    added=list(changes.get("added", [])),
                    removed=list(changes.get("removed", [])),
                    previous_enrollments=list(row.previous_enrollments or []),
                )
            )
        return latest

    async def _revert_one(
        self,
        school_id: str,
        record: _RecordRef,
        restore_enrollments: bool,
    ) -> int:
        """Restore one student's class, and optionally its enrollments.

        Returns:
            Number of enrollments re-created.
        """
        result = await self.db.execute(select(Student).where(Student.id == record.student_id))
        student = result.scalar_one_or_none()
        if student is None:
            raise StudentNotFoundError(f"Student {record.student_id} no longer exists")

        student.class_id = record.from_class_id
        await self.db.flush()

        if not restore_enrollments:
            return 0
        return await self._restore_enrollments(school_id, record)

    async def _restore_enrollments(self, school_id: str, record: _RecordRef) -> int:
        """Replay a record's enrollment changes in reverse."""
        current = {e.course_id for e in await self.reconciler.snapshot(record.student_id)}

        to_delete = [course_id for course_id in record.added if course_id in current]
        await self.reconciler.remove_enrollments(record.student_id, to_delete)

        missing = [course_id for course_id in record.removed if course_id not in current]
        if not missing:
            return 0

        existing = await self.db.execute(select(Course.id).where(Course.id.in_(missing)))
        existing_courses = set(existing.scalars())
        skipped = [course_id for course_id in missing if course_id not in existing_courses]
        if skipped:
            logger.warning(
                "Courses %s of student %s no longer exist, not re-enrolling",
                skipped,
                record.student_id,
            )

        snapshot_periods = {
            entry.get("course_id"): entry.get("period_id") for entry in record.previous_enrollments
        }
        period_ids = {p for p in snapshot_periods.values() if p}
        existing = await self.db.execute(select(Period.id).where(Period.id.in_(period_ids)))
        existing_periods = set(existing.scalars())

        restorable = [c for c in missing if c in existing_courses]
        fallback_id: str | None = None
        if any(snapshot_periods.get(c) not in existing_periods for c in restorable):
            fallback = await self.period_service.resolve_enrollment_period(school_id, period_ids)
            fallback_id = fallback.id if fallback else None

        by_period: dict[str, list[str]] = defaultdict(list)
        for course_id in restorable:
            period_id = snapshot_periods.get(course_id)
            if period_id not in existing_periods:
                period_id = fallback_id
            if period_id is None:
                logger.warning(
                    "No period available to re-enroll student %s in course %s",
                    record.student_id,
                    course_id,
                )
                continue
            by_period[period_id].append(course_id)

        restored = 0
        for period_id, course_ids in by_period.items():
            restored += await self.reconciler.add_enrollments(
                record.student_id, course_ids, period_id, school_id
            )
        return restored
