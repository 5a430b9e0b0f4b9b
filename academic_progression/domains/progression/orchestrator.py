# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Batch promotion of every student of a school.

The run is sequential. Each student is processed inside its own SAVEPOINT,
so one failing student is rolled back and recorded while the others keep
their changes. Structural problems found before the loop (unknown mode,
no progression period, cycle already progressed) abort the whole run.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.core.config.settings import ProgressionSettings
from academic_progression.domains.progression.exceptions import (
    ProgressionAlreadyExecutedError,
    ProgressionError,
    TerminalLevelNotConfiguredError,
)
from academic_progression.domains.progression.executor import PromotionExecutor
from academic_progression.domains.progression.hierarchy import (
    LevelHierarchy,
    LevelHierarchyResolver,
)
from academic_progression.domains.progression.periods import AcademicPeriodService
from academic_progression.domains.progression.policy import (
    ProgressionPolicy,
    SchoolSettingsService,
)
from academic_progression.infrastructure.database.models.tenant.course import ExamResultAggregate
from academic_progression.infrastructure.database.models.tenant.school import Student
from academic_progression.models.progression import (
    BatchPromotionOptions,
    BatchPromotionResult,
    EntityError,
    PromotionMode,
    PromotionOptions,
    PromotionStatus,
)
from academic_progression.utils.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)

PROMOTED = "promoted"
GRADUATED = "graduated"
RETAINED = "retained"
SKIPPED = "skipped"


@dataclass(frozen=True)
class StudentRef:
    """Plain copy of the student columns a run needs."""

    id: str
    class_id: str | None
    name: str = ""


async def load_school_students(
    db: AsyncSession,
    school_id: str,
    hierarchy: LevelHierarchy,
    allow_legacy_fallback: bool = True,
) -> list[StudentRef]:
    """Load the students of a school in a stable order.

    When no student is tagged with the school, untagged students sitting in
    one of the hierarchy's classes are used instead.
    """
    columns = (Student.id, Student.class_id, Student.first_name, Student.last_name)
    order = (Student.last_name, Student.first_name, Student.id)
    result = await db.execute(
        select(*columns).where(Student.school_id == school_id).order_by(*order)
    )
    rows = result.all()

    if not rows and allow_legacy_fallback and not hierarchy.is_empty:
        result = await db.execute(
            select(*columns)
            .where(
                Student.school_id.is_(None),
                Student.class_id.in_(sorted(hierarchy.level_ids)),
            )
            .order_by(*order)
        )
        rows = result.all()
        if rows:
            logger.warning(
                "no_students_tagged_with_school_using_class_references",
                school_id=school_id,
                student_count=len(rows),
            )

    return [
        StudentRef(id=row.id, class_id=row.class_id, name=f"{row.first_name} {row.last_name}")
        for row in rows
    ]


class ProgressionOrchestrator:
    """Runs a promotion over every student of a school.

    Attributes:
        db: Async database session.
        settings_service: Per-school policy lookup.
        period_service: Period and cycle lookups.
    """

    def __init__(self, db: AsyncSession, defaults: ProgressionSettings | None = None) -> None:
        self.db = db
        self.settings_service = SchoolSettingsService(db, defaults)
        self.period_service = AcademicPeriodService(db)

    async def run(
        self,
        school_id: str,
        options: BatchPromotionOptions | None = None,
    ) -> BatchPromotionResult:
        """Promote every student of a school.

        Args:
            school_id: School identifier.
            options: Audit metadata, dry run and rerun flags.

        Returns:
            Counts per outcome plus per-student errors.

        Raises:
            InvalidProgressionModeError: If the school's mode is unknown.
            ProgressionPeriodNotFoundError: If no final period is available.
            ProgressionAlreadyExecutedError: If the cycle was already progressed.
        """
        options = options or BatchPromotionOptions()
        bind_context(school_id=school_id, execution_id=options.execution_id)
        try:
            return await self._run(school_id, options)
        finally:
            clear_context()

    async def _run(self, school_id: str, options: BatchPromotionOptions) -> BatchPromotionResult:
        policy = await self.settings_service.get_progression_policy(school_id)
        period = await self.period_service.resolve_progression_period(
            school_id, policy.final_period_position
        )
        period_id = period.id
        cycle_id = period.cycle_id

        result = BatchPromotionResult(
            execution_id=options.execution_id,
            progression_id=options.progression_id,
            period_id=period_id,
            mode=policy.mode,
            dry_run=options.dry_run,
        )

        cycle = await self.period_service.get_cycle(cycle_id)
        if (
            cycle is not None
            and cycle.progression_executed
            and not options.allow_rerun
            and not options.dry_run
        ):
            raise ProgressionAlreadyExecutedError(
                f"Cycle {cycle.name} was already progressed by run "
                f"{cycle.progression_execution_id}"
            )

        resolver = LevelHierarchyResolver(
            self.db,
            policy.terminal_level_name,
            allow_legacy_fallback=policy.allow_legacy_fallback,
        )
        hierarchy = await resolver.resolve(school_id)
        if not hierarchy.levels:
            logger.warning("no_classes_resolvable", school_id=school_id)
            return result

        students = await load_school_students(
            self.db, school_id, hierarchy, policy.allow_legacy_fallback
        )
        executor = PromotionExecutor(self.db, resolver, self.period_service)

        logger.info(
            "progression_started",
            mode=policy.mode.value,
            period_id=period_id,
            student_count=len(students),
            class_count=len(hierarchy.levels),
            degraded=hierarchy.degraded,
            dry_run=options.dry_run,
        )

        for student in students:
            if student.class_id is None:
                result.errors.append(
                    EntityError(student_id=student.id, message="Student has no class assigned")
                )
                continue

            try:
                async with self.db.begin_nested():
                    outcome = await self._process_student(
                        school_id, student, hierarchy, policy, period_id, executor, options
                    )
            except Exception as e:
                logger.error(
                    "student_promotion_failed",
                    student_id=student.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.errors.append(EntityError(student_id=student.id, message=str(e)))
                continue

            if outcome == PROMOTED:
                result.promoted_count += 1
            elif outcome == GRADUATED:
                result.graduated_count += 1
            elif outcome == RETAINED:
                result.retained_count += 1
            else:
                result.skipped_count += 1

        if not options.dry_run:
            cycle = await self.period_service.get_cycle(cycle_id)
            if cycle is not None:
                await self.period_service.mark_progression_executed(
                    cycle, options.execution_id, options.progression_id, options.executed_at
                )

        logger.info(
            "progression_completed",
            promoted=result.promoted_count,
            graduated=result.graduated_count,
            retained=result.retained_count,
            skipped=result.skipped_count,
            errors=len(result.errors),
        )
        return result

    async def _process_student(
        self,
        school_id: str,
        student: StudentRef,
        hierarchy: LevelHierarchy,
        policy: ProgressionPolicy,
        period_id: str,
        executor: PromotionExecutor,
        options: BatchPromotionOptions,
    ) -> str:
        """Promote, graduate, retain or skip one student.

        Raises:
            ProgressionError: If the student cannot be placed.
        """
        if hierarchy.is_terminal(student.class_id):
            return SKIPPED

        current = hierarchy.get(student.class_id)
        if current is None:
            raise ProgressionError(f"Class {student.class_id} is not part of the school")

        if policy.mode == PromotionMode.THRESHOLD:
            score = await self.get_average_score(student.id, period_id)
            if score is None or score < policy.pass_threshold:
                logger.debug(
                    "student_retained",
                    student_id=student.id,
                    score=score,
                    threshold=policy.pass_threshold,
                )
                return RETAINED

        next_level = hierarchy.next_level(current.id)
        if next_level is not None:
            target_id, outcome = next_level.id, PROMOTED
        elif hierarchy.terminal is not None:
            target_id, outcome = hierarchy.terminal.id, GRADUATED
        else:
            raise TerminalLevelNotConfiguredError(
                f"Class {current.name} is the highest class and no "
                f"'{policy.terminal_level_name}' class exists"
            )

        promotion = await executor.promote(
            school_id,
            student.id,
            PromotionOptions(
                target_class_id=target_id,
                triggered_by=options.triggered_by,
                dry_run=options.dry_run,
                note=options.note,
                execution_id=options.execution_id,
                executed_at=options.executed_at,
                progression_id=options.progression_id,
            ),
            hierarchy=hierarchy,
        )
        if promotion.status in (PromotionStatus.APPLIED, PromotionStatus.PREVIEWED):
            return outcome
        return SKIPPED

    async def get_average_score(self, student_id: str, period_id: str) -> float | None:
        """Average the student's aggregated percentages for a period.

        Returns:
            Average, or None when no usable score exists.
        """
        result = await self.db.execute(
            select(func.avg(ExamResultAggregate.final_percentage)).where(
                ExamResultAggregate.student_id == student_id,
                ExamResultAggregate.period_id == period_id,
                ExamResultAggregate.final_percentage.is_not(None),
            )
        )
        average = result.scalar_one_or_none()
        return float(average) if average is not None else None
