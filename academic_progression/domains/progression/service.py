# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression service.

Entry point for the progression engine. Every operation accepts an
optional caller-owned session. With one, the operation joins the caller's
transaction and never commits. Without one, it opens its own session and
commits once at the end.

Example:
    service = ProgressionService()
    result = await service.promote_batch(school_id, BatchPromotionOptions(triggered_by=user_id))

    async with get_session() as session:
        await close_cycle(session)
        await service.promote_batch(school_id, session=session)
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academic_progression.core.config.settings import Settings, get_settings
from academic_progression.domains.progression.executor import PromotionExecutor
from academic_progression.domains.progression.hierarchy import LevelHierarchyResolver
from academic_progression.domains.progression.history import PromotionHistoryService
from academic_progression.domains.progression.orchestrator import ProgressionOrchestrator
from academic_progression.domains.progression.policy import SchoolSettingsService
from academic_progression.domains.progression.preview import PreviewService
from academic_progression.domains.progression.revert import RevertCoordinator
from academic_progression.infrastructure.database.connection import session_scope
from academic_progression.models.progression import (
    BatchPromotionOptions,
    BatchPromotionResult,
    PromotionOptions,
    PromotionPreview,
    PromotionRecordResponse,
    PromotionResult,
    RevertResult,
)


class ProgressionService:
    """Facade over the progression components.

    Attributes:
        sessionmaker: Used when no session is supplied; defaults to the
            application sessionmaker.
        settings: Application settings.
    """

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.sessionmaker = sessionmaker
        self.settings = settings or get_settings()

    async def promote_one(
        self,
        school_id: str,
        student_id: str,
        options: PromotionOptions | None = None,
        session: AsyncSession | None = None,
    ) -> PromotionResult:
        """Promote one student to the next class or an explicit target.

        Raises:
            StudentNotFoundError: If the student is not in the school.
            LevelNotFoundError: If the explicit target is not a class of the school.
        """
        async with session_scope(session, self.sessionmaker) as db:
            policy = await SchoolSettingsService(
                db, self.settings.progression
            ).get_progression_policy(school_id)
            resolver = LevelHierarchyResolver(
                db,
                policy.terminal_level_name,
                allow_legacy_fallback=policy.allow_legacy_fallback,
            )
            return await PromotionExecutor(db, resolver).promote(school_id, student_id, options)

    async def promote_batch(
        self,
        school_id: str,
        options: BatchPromotionOptions | None = None,
        session: AsyncSession | None = None,
    ) -> BatchPromotionResult:
        """Promote every student of a school.

        Raises:
            ConfigurationError: If the school cannot be progressed.
        """
        async with session_scope(session, self.sessionmaker) as db:
            orchestrator = ProgressionOrchestrator(db, self.settings.progression)
            return await orchestrator.run(school_id, options)

    async def preview_batch(
        self,
        school_id: str,
        session: AsyncSession | None = None,
    ) -> PromotionPreview:
        """Preview a batch promotion without writing anything."""
        async with session_scope(session, self.sessionmaker) as db:
            return await PreviewService(db, self.settings.progression).preview(school_id)

    async def revert_batch(
        self,
        school_id: str,
        execution_id: str | None = None,
        progression_id: str | None = None,
        restore_enrollments: bool = False,
        session: AsyncSession | None = None,
    ) -> RevertResult:
        """Revert the promotions of a run.

        Raises:
            InvalidRevertRequestError: If no correlation id is given.
        """
        async with session_scope(session, self.sessionmaker) as db:
            return await RevertCoordinator(db).revert(
                school_id,
                execution_id=execution_id,
                progression_id=progression_id,
                restore_enrollments=restore_enrollments,
            )

    async def list_history(
        self,
        school_id: str,
        student_id: str | None = None,
        execution_id: str | None = None,
        progression_id: str | None = None,
        limit: int = 100,
        session: AsyncSession | None = None,
    ) -> list[PromotionRecordResponse]:
        """List promotion audit records of a school, newest first."""
        async with session_scope(session, self.sessionmaker) as db:
            records = await PromotionHistoryService(db).list_records(
                school_id,
                student_id=student_id,
                execution_id=execution_id,
                progression_id=progression_id,
                limit=limit,
            )
            return [PromotionRecordResponse.model_validate(r) for r in records]
