# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic period lookups used by progression.

This module provides the AcademicPeriodService class for:
- Finding the current period of a school
- Resolving the final period a progression runs against
- Resolving the period new enrollments are attached to
- Tracking whether a cycle has already been progressed
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.domains.progression.exceptions import ProgressionPeriodNotFoundError
from academic_progression.infrastructure.database.models.tenant.school import (
    AcademicCycle,
    Period,
)

logger = logging.getLogger(__name__)


class AcademicPeriodService:
    """Service for period and cycle lookups.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize academic period service.

        Args:
            db: Async database session for tenant database.
        """
        self.db = db

    async def get_current_period(self, school_id: str) -> Period | None:
        """Get the current period of a school.

        If several periods are flagged current, the latest started wins.
        """
        query = (
            select(Period)
            .where(Period.school_id == school_id, Period.is_current.is_(True))
            .order_by(Period.start_date.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def resolve_progression_period(
        self,
        school_id: str,
        final_position: int,
    ) -> Period:
        """Resolve the period a progression run is executed against.

        Prefers the current period when it is the final period of its
        cycle, otherwise the most recently started completed final period.

        Args:
            school_id: School identifier.
            final_position: Position of the last period of a cycle.

        Returns:
            The progression period.

        Raises:
            ProgressionPeriodNotFoundError: If no final period is available.
        """
        current = await self.get_current_period(school_id)
        if current is not None and current.position == final_position:
            return current

        query = (
            select(Period)
            .where(
                Period.school_id == school_id,
                Period.position == final_position,
                Period.is_completed.is_(True),
            )
            .order_by(Period.start_date.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        period = result.scalar_one_or_none()

        if period is None:
            raise ProgressionPeriodNotFoundError(
                f"School {school_id} has no current or completed period {final_position}"
            )

        logger.info(
            "Current period is not final, progressing against completed period %s",
            period.id,
        )
        return period

    async def resolve_enrollment_period(
        self,
        school_id: str,
        candidate_period_ids: Iterable[str],
    ) -> Period | None:
        """Resolve the period new enrollments are attached to.

        Tries, in order: the current period, any period referenced by the
        student's enrollments before the transition, the most recently
        started period of the school.

        Args:
            school_id: School identifier.
            candidate_period_ids: Periods of the pre-transition enrollments.

        Returns:
            Period, or None when the school has no period at all.
        """
        current = await self.get_current_period(school_id)
        if current is not None:
            return current

        candidates = sorted({pid for pid in candidate_period_ids if pid})
        if candidates:
            result = await self.db.execute(
                select(Period)
                .where(Period.id.in_(candidates))
                .order_by(Period.start_date.desc())
                .limit(1)
            )
            period = result.scalar_one_or_none()
            if period is not None:
                return period

        result = await self.db.execute(
            select(Period)
            .where(Period.school_id == school_id)
            .order_by(Period.start_date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_cycle(self, cycle_id: str | None) -> AcademicCycle | None:
        """Get an academic cycle by ID."""
        if cycle_id is None:
            return None
        result = await self.db.execute(select(AcademicCycle).where(AcademicCycle.id == cycle_id))
        return result.scalar_one_or_none()

    async def mark_progression_executed(
        self,
        cycle: AcademicCycle,
        execution_id: str,
        progression_id: str | None,
        executed_at: datetime,
    ) -> None:
        """Record that the cycle has been progressed by a run."""
        cycle.progression_executed = True
        cycle.progression_executed_at = executed_at
        cycle.progression_execution_id = execution_id
        cycle.progression_id = progression_id
        await self.db.flush()

        logger.info("Marked cycle %s as progressed by run %s", cycle.id, execution_id)

    async def clear_progression_executed(
        self,
        school_id: str,
        execution_id: str | None,
        progression_id: str | None,
    ) -> int:
        """Clear the progressed flag of cycles marked by the given run.

        Every id given must match the ids stored on the cycle.

        Returns:
            Number of cycles cleared.
        """
        matchers = []
        if execution_id:
            matchers.append(AcademicCycle.progression_execution_id == execution_id)
        if progression_id:
            matchers.append(AcademicCycle.progression_id == progression_id)
        if not matchers:
            return 0

        stmt = (
            update(AcademicCycle)
            .where(
                AcademicCycle.school_id == school_id,
                AcademicCycle.progression_executed.is_(True),
                *matchers,
            )
            .values(
                progression_executed=False,
                progression_executed_at=None,
                progression_execution_id=None,
                progression_id=None,
            )
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0
