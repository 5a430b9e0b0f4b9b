# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Promotion audit history queries."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.infrastructure.database.models.tenant.promotion import StudentPromotion


class PromotionHistoryService:
    """Reads StudentPromotion audit records.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_records(
        self,
        school_id: str,
        student_id: str | None = None,
        execution_id: str | None = None,
        progression_id: str | None = None,
        limit: int = 100,
    ) -> list[StudentPromotion]:
        """List audit records of a school, newest first.

        Args:
            school_id: School identifier.
            student_id: Only records of this student.
            execution_id: Only records of this execution.
            progression_id: Only records of this progression.
            limit: Maximum number of records.

        Returns:
            Audit records.
        """
        query = select(StudentPromotion).where(StudentPromotion.school_id == school_id)

        if student_id:
            query = query.where(StudentPromotion.student_id == student_id)
        if execution_id:
            query = query.where(StudentPromotion.execution_id == execution_id)
        if progression_id:
            query = query.where(StudentPromotion.progression_id == progression_id)

        query = query.order_by(
            StudentPromotion.created_at.desc(), StudentPromotion.id.desc()
        ).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())
