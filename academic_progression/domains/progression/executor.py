# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Single-student class transition.

This module provides the PromotionExecutor class for:
- Resolving a student's destination class
- Reconciling the student's enrollments with that class
- Writing the audit record of the transition

The executor never commits. All writes happen in the caller's transaction,
so a failure leaves nothing behind once the caller rolls back.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.domains.progression.exceptions import (
    LevelNotFoundError,
    StudentNotFoundError,
)
from academic_progression.domains.progression.hierarchy import (
    LevelHierarchy,
    LevelHierarchyResolver,
)
from academic_progression.domains.progression.periods import AcademicPeriodService
from academic_progression.domains.progression.reconciler import EnrollmentReconciler
from academic_progression.infrastructure.database.models.tenant.promotion import StudentPromotion
from academic_progression.infrastructure.database.models.tenant.school import Class, Student
from academic_progression.models.progression import (
    PromotionOptions,
    PromotionResult,
    PromotionStatus,
)
from academic_progression.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class PromotionExecutor:
    """Moves one student to a destination class.

    Attributes:
        db: Async database session.
        hierarchy_resolver: Resolves the class hierarchy of a school.
        period_service: Period lookups for new enrollments.
        reconciler: Enrollment reconciler.
    """

    def __init__(
        self,
        db: AsyncSession,
        hierarchy_resolver: LevelHierarchyResolver,
        period_service: AcademicPeriodService | None = None,
        reconciler: EnrollmentReconciler | None = None,
    ) -> None:
        self.db = db
        self.hierarchy_resolver = hierarchy_resolver
        self.period_service = period_service or AcademicPeriodService(db)
        self.reconciler = reconciler or EnrollmentReconciler(db)

    async def promote(
        self,
        school_id: str,
        student_id: str,
        options: PromotionOptions | None = None,
        hierarchy: LevelHierarchy | None = None,
    ) -> PromotionResult:
        """Promote a student to the next class, or to an explicit target.

        Args:
            school_id: School the student belongs to.
            student_id: Student identifier.
            options: Target, dry run flag, audit metadata.
            hierarchy: Already resolved hierarchy of the school. Targets it
                contains are not looked up again.

        Returns:
            Promotion result. Terminal and no-op results change nothing.

        Raises:
            StudentNotFoundError: If the student is not in the school.
            LevelNotFoundError: If the explicit target is not a class of the school.
        """
        options = options or PromotionOptions()

        student = await self._get_student(school_id, student_id)
        if student is None:
            raise StudentNotFoundError(f"Student {student_id} not found in school {school_id}")

        from_class_id = student.class_id

        if options.target_class_id and hierarchy and hierarchy.get(options.target_class_id):
            to_class_id: str | None = options.target_class_id
        elif options.target_class_id:
            target = await self.hierarchy_resolver.get_level(school_id, options.target_class_id)
            if target is None:
                raise LevelNotFoundError(
                    f"Class {options.target_class_id} not found in school {school_id}"
                )
            to_class_id = target.id
        else:
            hierarchy = hierarchy or await self.hierarchy_resolver.resolve(school_id)
            next_level = hierarchy.next_level(from_class_id)
            to_class_id = next_level.id if next_level else None

        if to_class_id is None:
            return PromotionResult(
                student_id=student_id,
                from_class_id=from_class_id,
                to_class_id=None,
                dry_run=options.dry_run,
                status=PromotionStatus.TERMINAL,
            )

        if to_class_id == from_class_id:
            return PromotionResult(
                student_id=student_id,
                from_class_id=from_class_id,
                to_class_id=None,
                dry_run=options.dry_run,
                status=PromotionStatus.NO_OP,
            )

        previous = await self.reconciler.snapshot(student_id)
        diff = await self.reconciler.reconcile(student_id, to_class_id, current=previous)

        result = PromotionResult(
            student_id=student_id,
            from_class_id=from_class_id,
            to_class_id=to_class_id,
            added_course_ids=diff.added_course_ids,
            removed_course_ids=diff.removed_course_ids,
            retained_course_ids=diff.retained_course_ids,
            dry_run=options.dry_run,
            status=PromotionStatus.PREVIEWED,
        )
        if options.dry_run:
            return result

        student.class_id = to_class_id
        await self.db.flush()

        await self.reconciler.remove_enrollments(student_id, diff.removed_course_ids)

        added: list[str] = []
        if diff.to_add:
            period = await self.period_service.resolve_enrollment_period(
                school_id,
                (e.period_id for e in previous if e.period_id),
            )
            if period is None:
                logger.warning(
                    "No period available for school %s, skipping %d new enrollments of student %s",
                    school_id,
                    len(diff.to_add),
                    student_id,
                )
            else:
                added = diff.added_course_ids
                await self.reconciler.add_enrollments(student_id, added, period.id, school_id)

        current = await self.reconciler.snapshot(student_id)

        record = StudentPromotion(
            school_id=school_id,
            student_id=student_id,
            from_class_id=from_class_id,
            to_class_id=to_class_id,
            triggered_by=options.triggered_by,
            previous_enrollments=[e.to_dict() for e in previous],
            new_enrollments=[e.to_dict() for e in current],
            changes={
                "added": added,
                "removed": diff.removed_course_ids,
                "retained": diff.retained_course_ids,
            },
            note=options.note,
            execution_id=options.execution_id,
            progression_id=options.progression_id,
            executed_at=options.executed_at or utc_now(),
        )
        self.db.add(record)
        await self.db.flush()

        logger.info(
            "Promoted student %s from class %s to %s (+%d -%d)",
            student_id,
            from_class_id,
            to_class_id,
            len(added),
            len(diff.removed_course_ids),
        )

        return result.model_copy(
            update={
                "added_course_ids": added,
                "status": PromotionStatus.APPLIED,
                "promotion_id": record.id,
            }
        )

    async def _get_student(self, school_id: str, student_id: str) -> Student | None:
        """Get a student of the school.

        Students without a school tag are accepted when their class belongs
        to the school.
        """
        query = (
            select(Student)
            .outerjoin(Class, Class.id == Student.class_id)
            .where(
                Student.id == student_id,
                or_(
                    Student.school_id == school_id,
                    (Student.school_id.is_(None)) & (Class.school_id == school_id),
                ),
            )
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
