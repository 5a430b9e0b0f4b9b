# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression policy resolution.

Resolves the progression policy of a school by layering the optional
per-school overrides stored on the school row over the global defaults.

Example:
    >>> service = SchoolSettingsService(db_session)
    >>> policy = await service.get_progression_policy(school_id)
    >>> policy.mode
    <PromotionMode.AUTOMATIC: 'automatic'>
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.core.config.settings import ProgressionSettings, get_settings
from academic_progression.domains.progression.exceptions import InvalidProgressionModeError
from academic_progression.infrastructure.database.models.tenant.school import School
from academic_progression.models.progression import PromotionMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressionPolicy:
    """Effective progression configuration for one school.

    Attributes:
        mode: Automatic or threshold promotion.
        pass_threshold: Minimum aggregated percentage in threshold mode.
        final_period_position: Position of the last period of a cycle.
        terminal_level_name: Reserved name of the graduation class.
        allow_legacy_fallback: Whether legacy discovery may be used.
    """

    mode: PromotionMode
    pass_threshold: float
    final_period_position: int
    terminal_level_name: str
    allow_legacy_fallback: bool = True


class SchoolSettingsService:
    """Reads per-school progression configuration.

    Attributes:
        db: Async database session.
        defaults: Global progression defaults.
    """

    def __init__(
        self,
        db: AsyncSession,
        defaults: ProgressionSettings | None = None,
    ) -> None:
        """Initialize school settings service.

        Args:
            db: Async database session for tenant database.
            defaults: Global defaults; read from application settings if omitted.
        """
        self.db = db
        self.defaults = defaults or get_settings().progression

    async def get_progression_policy(self, school_id: str) -> ProgressionPolicy:
        """Get the effective progression policy for a school.

        A school without a row, or without overrides, gets the global defaults.

        Args:
            school_id: School identifier.

        Returns:
            Effective policy.

        Raises:
            InvalidProgressionModeError: If the school stores an unknown mode.
        """
        school = await self._get_by_id(school_id)

        mode_value = self.defaults.default_mode
        threshold = self.defaults.default_pass_threshold

        if school is None:
            logger.debug("School %s has no settings row, using defaults", school_id)
        else:
            if school.progression_mode:
                mode_value = school.progression_mode.strip().lower()
            if school.pass_threshold is not None:
                threshold = float(school.pass_threshold)

        try:
            mode = PromotionMode(mode_value)
        except ValueError as e:
            raise InvalidProgressionModeError(
                f"School {school_id} has unknown progression mode '{mode_value}'"
            ) from e

        return ProgressionPolicy(
            mode=mode,
            pass_threshold=threshold,
            final_period_position=self.defaults.final_period_position,
            terminal_level_name=self.defaults.terminal_level_name,
            allow_legacy_fallback=self.defaults.allow_legacy_fallback,
        )

    async def _get_by_id(self, school_id: str) -> School | None:
        """Get school by ID."""
        result = await self.db.execute(select(School).where(School.id == school_id))
        return result.scalar_one_or_none()
