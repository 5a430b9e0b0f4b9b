# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class hierarchy resolution.

Classes carry an integer rank and no stored "next class" pointer. The
hierarchy is rebuilt for every operation: an ordered list of classes plus
a rank -> next class map, so reordering classes never leaves stale links.
The graduation class is recognised by its reserved name and sits outside
the ordering.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academic_progression.infrastructure.database.models.tenant.school import Class, Student

logger = logging.getLogger(__name__)


class _RankedClass(Protocol):
    id: str
    name: str
    rank: int


@dataclass(frozen=True)
class LevelRef:
    """Plain copy of a class row."""

    id: str
    name: str
    rank: int


@dataclass
class LevelHierarchy:
    """Classes of a school ordered by rank.

    Attributes:
        levels: Non-terminal classes, rank ascending.
        terminal: The graduation class, if the school has one.
        next_by_rank: rank -> id of the class at rank + 1.
        degraded: True when built from legacy references.
    """

    levels: list[LevelRef] = field(default_factory=list)
    terminal: LevelRef | None = None
    next_by_rank: dict[int, str] = field(default_factory=dict)
    degraded: bool = False

    def __post_init__(self) -> None:
        self._by_id = {level.id: level for level in self.levels}
        if self.terminal is not None:
            self._by_id[self.terminal.id] = self.terminal

    @property
    def is_empty(self) -> bool:
        return not self.levels and self.terminal is None

    @property
    def level_ids(self) -> set[str]:
        """Ids of every class in the hierarchy, terminal included."""
        return set(self._by_id)

    def get(self, class_id: str | None) -> LevelRef | None:
        if class_id is None:
            return None
        return self._by_id.get(class_id)

    def is_terminal(self, class_id: str | None) -> bool:
        return self.terminal is not None and class_id == self.terminal.id

    def next_level(self, class_id: str | None) -> LevelRef | None:
        """Get the class whose rank is exactly one above the given class.

        Returns None for the highest ranked class, for the terminal class
        and for classes outside the hierarchy.
        """
        level = self.get(class_id)
        if level is None or self.is_terminal(level.id):
            return None
        next_id = self.next_by_rank.get(level.rank)
        return self._by_id.get(next_id) if next_id else None


def build_hierarchy(
    classes: Iterable[_RankedClass],
    terminal_name: str,
    degraded: bool = False,
) -> LevelHierarchy:
    """Build a hierarchy from class rows.

    Classes sharing a rank are ordered by name; the first of them is the
    "next" class for the rank below.

    Args:
        classes: Class rows (or any objects with id, name and rank).
        terminal_name: Reserved name of the graduation class.
        degraded: Mark the hierarchy as derived from legacy references.

    Returns:
        The hierarchy.
    """
    wanted = terminal_name.strip().lower()
    ordered = sorted(
        (LevelRef(id=c.id, name=c.name, rank=c.rank) for c in classes),
        key=lambda ref: (ref.rank, ref.name, ref.id),
    )

    terminal: LevelRef | None = None
    levels: list[LevelRef] = []
    for ref in ordered:
        if ref.name.strip().lower() == wanted and terminal is None:
            terminal = ref
        elif ref.name.strip().lower() != wanted:
            levels.append(ref)

    first_at_rank: dict[int, LevelRef] = {}
    for ref in levels:
        first_at_rank.setdefault(ref.rank, ref)

    next_by_rank = {
        rank: first_at_rank[rank + 1].id
        for rank in first_at_rank
        if rank + 1 in first_at_rank
    }

    return LevelHierarchy(
        levels=levels,
        terminal=terminal,
        next_by_rank=next_by_rank,
        degraded=degraded,
    )


class LevelHierarchyResolver:
    """Loads the class hierarchy of a school.

    Attributes:
        db: Async database session.
        terminal_level_name: Reserved name of the graduation class.
        allow_legacy_fallback: Derive classes from student references when
            the school has no tagged classes.
    """

    def __init__(
        self,
        db: AsyncSession,
        terminal_level_name: str,
        allow_legacy_fallback: bool = True,
    ) -> None:
        self.db = db
        self.terminal_level_name = terminal_level_name
        self.allow_legacy_fallback = allow_legacy_fallback

    async def resolve(self, school_id: str) -> LevelHierarchy:
        """Resolve the hierarchy of a school.

        Uses the classes tagged with the school. When there are none, falls
        back to the classes referenced by the school's students. The
        fallback is a recovery path for legacy rows and is logged as such.

        Args:
            school_id: School identifier.

        Returns:
            The hierarchy, possibly empty.
        """
        result = await self.db.execute(select(Class).where(Class.school_id == school_id))
        classes = list(result.scalars().all())
        if classes:
            return build_hierarchy(classes, self.terminal_level_name)

        if not self.allow_legacy_fallback:
            return LevelHierarchy()

        referenced = (
            select(Student.class_id)
            .where(Student.school_id == school_id, Student.class_id.is_not(None))
            .distinct()
        )
        result = await self.db.execute(select(Class).where(Class.id.in_(referenced)))
        classes = list(result.scalars().all())

        if classes:
            logger.warning(
                "No classes tagged with school %s; derived %d classes from student references",
                school_id,
                len(classes),
            )
            return build_hierarchy(classes, self.terminal_level_name, degraded=True)

        logger.warning("No classes found for school %s", school_id)
        return LevelHierarchy()

    async def get_level(self, school_id: str, class_id: str) -> Class | None:
        """Get a class of the school, accepting untagged legacy classes.

        A legacy class (no school_id) is accepted when a student of the
        school references it.
        """
        result = await self.db.execute(select(Class).where(Class.id == class_id))
        level = result.scalar_one_or_none()
        if level is None:
            return None
        if level.school_id == school_id:
            return level
        if level.school_id is None and self.allow_legacy_fallback:
            referenced = await self.db.execute(
                select(Student.id)
                .where(Student.school_id == school_id, Student.class_id == class_id)
                .limit(1)
            )
            if referenced.scalar_one_or_none() is not None:
                return level
        return None
