# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read-only projection of a batch promotion.

The preview looks at class ranks only. Threshold policy and enrollments
are ignored, and nothing is written.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.core.config.settings import ProgressionSettings
from academic_progression.domains.progression.hierarchy import LevelHierarchyResolver
from academic_progression.domains.progression.orchestrator import load_school_students
from academic_progression.domains.progression.periods import AcademicPeriodService
from academic_progression.domains.progression.policy import SchoolSettingsService
from academic_progression.models.progression import (
    LevelBreakdown,
    PreviewRow,
    PreviewStatus,
    PromotionPreview,
)

logger = logging.getLogger(__name__)


class PreviewService:
    """Projects what a batch promotion would do.

    Attributes:
        db: Async database session.
        settings_service: Per-school policy lookup.
        period_service: Period lookups.
    """

    def __init__(self, db: AsyncSession, defaults: ProgressionSettings | None = None) -> None:
        self.db = db
        self.settings_service = SchoolSettingsService(db, defaults)
        self.period_service = AcademicPeriodService(db)

    async def preview(self, school_id: str) -> PromotionPreview:
        """Preview the promotion of every student of a school.

        Students on the graduation class are counted as already graduated
        and get no row.

        Args:
            school_id: School identifier.

        Returns:
            Per-student rows, summary counts and a per-class breakdown.
        """
        policy = await self.settings_service.get_progression_policy(school_id)
        current_period = await self.period_service.get_current_period(school_id)

        resolver = LevelHierarchyResolver(
            self.db,
            policy.terminal_level_name,
            allow_legacy_fallback=policy.allow_legacy_fallback,
        )
        hierarchy = await resolver.resolve(school_id)
        students = await load_school_students(
            self.db, school_id, hierarchy, policy.allow_legacy_fallback
        )

        preview = PromotionPreview(
            is_progression_period=(
                current_period is not None
                and current_period.position == policy.final_period_position
            ),
            current_period_position=current_period.position if current_period else None,
        )
        breakdown = {
            level.id: LevelBreakdown(class_id=level.id, class_name=level.name, rank=level.rank)
            for level in hierarchy.levels
        }
        summary = preview.summary
        summary.total_students = len(students)

        for student in students:
            if hierarchy.is_terminal(student.class_id):
                summary.already_graduated += 1
                continue

            current = hierarchy.get(student.class_id)
            row = PreviewRow(
                student_id=student.id,
                student_name=student.name,
                current_class_id=student.class_id,
                current_class_name=current.name if current else None,
                next_class_id=None,
                next_class_name=None,
                status=PreviewStatus.ERROR,
            )

            if current is not None:
                target = hierarchy.next_level(current.id)
                if target is not None:
                    row.status = PreviewStatus.PROMOTE
                    breakdown[current.id].promote += 1
                    summary.to_promote += 1
                elif hierarchy.terminal is not None:
                    target = hierarchy.terminal
                    row.status = PreviewStatus.GRADUATE
                    breakdown[current.id].graduate += 1
                    summary.to_graduate += 1
                if target is not None:
                    row.next_class_id = target.id
                    row.next_class_name = target.name

            if row.status == PreviewStatus.ERROR:
                summary.errors += 1
            preview.promotions.append(row)

        preview.breakdown = list(breakdown.values())

        logger.debug(
            "Previewed school %s: %d to promote, %d to graduate, %d errors",
            school_id,
            summary.to_promote,
            summary.to_graduate,
            summary.errors,
        )
        return preview
