# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for class hierarchy building and resolution."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from academic_progression.domains.progression.hierarchy import (
    LevelHierarchy,
    LevelHierarchyResolver,
    LevelRef,
    build_hierarchy,
)


def make_class(id: str, name: str, rank: int, school_id: str | None = "school-1") -> MagicMock:
    cls = MagicMock()
    cls.id = id
    cls.name = name
    cls.rank = rank
    cls.school_id = school_id
    return cls


def scalars_result(rows: list) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


class TestBuildHierarchy:
    """Tests for build_hierarchy."""

    def test_orders_by_rank(self) -> None:
        hierarchy = build_hierarchy(
            [
                LevelRef("g3", "Grade 3", 3),
                LevelRef("g1", "Grade 1", 1),
                LevelRef("g2", "Grade 2", 2),
            ],
            "Graduated",
        )

        assert [level.id for level in hierarchy.levels] == ["g1", "g2", "g3"]
        assert hierarchy.next_by_rank == {1: "g2", 2: "g3"}

    def test_next_level_is_exactly_one_rank_above(self) -> None:
        hierarchy = build_hierarchy(
            [LevelRef("g1", "Grade 1", 1), LevelRef("g3", "Grade 3", 3)],
            "Graduated",
        )

        assert hierarchy.next_level("g1") is None
        assert hierarchy.next_level("g3") is None

    def test_highest_class_has_no_next_level(self) -> None:
        hierarchy = build_hierarchy(
            [LevelRef("g1", "Grade 1", 1), LevelRef("g2", "Grade 2", 2)],
            "Graduated",
        )

        assert hierarchy.next_level("g1").id == "g2"
        assert hierarchy.next_level("g2") is None

    def test_terminal_class_is_outside_ordering(self) -> None:
        """The graduation class never becomes a next class, whatever its rank."""
        hierarchy = build_hierarchy(
            [
                LevelRef("g1", "Grade 1", 1),
                LevelRef("g2", "Grade 2", 2),
                LevelRef("grad", "graduated", 3),
            ],
            "Graduated",
        )

        assert hierarchy.terminal is not None
        assert hierarchy.terminal.id == "grad"
        assert [level.id for level in hierarchy.levels] == ["g1", "g2"]
        assert hierarchy.next_level("g2") is None
        assert hierarchy.next_level("grad") is None
        assert hierarchy.is_terminal("grad")
        assert hierarchy.level_ids == {"g1", "g2", "grad"}

    def test_rank_tie_picks_first_by_name(self) -> None:
        hierarchy = build_hierarchy(
            [
                LevelRef("g1", "Grade 1", 1),
                LevelRef("g2b", "Grade 2 B", 2),
                LevelRef("g2a", "Grade 2 A", 2),
            ],
            "Graduated",
        )

        assert hierarchy.next_level("g1").id == "g2a"

    def test_unknown_class(self) -> None:
        hierarchy = build_hierarchy([LevelRef("g1", "Grade 1", 1)], "Graduated")

        assert hierarchy.get("missing") is None
        assert hierarchy.next_level("missing") is None
        assert hierarchy.next_level(None) is None

    def test_empty(self) -> None:
        hierarchy = LevelHierarchy()

        assert hierarchy.is_empty
        assert hierarchy.terminal is None


class TestLevelHierarchyResolver:
    """Tests for LevelHierarchyResolver with a mocked session."""

    @pytest.fixture
    def mock_db(self):
        db = AsyncMock()
        db.execute = AsyncMock()
        return db

    @pytest.mark.asyncio
    async def test_uses_school_classes(self, mock_db) -> None:
        mock_db.execute.return_value = scalars_result(
            [make_class("g1", "Grade 1", 1), make_class("g2", "Grade 2", 2)]
        )
        resolver = LevelHierarchyResolver(mock_db, "Graduated")

        hierarchy = await resolver.resolve("school-1")

        assert hierarchy.degraded is False
        assert hierarchy.next_level("g1").id == "g2"
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_student_references(self, mock_db) -> None:
        mock_db.execute.side_effect = [
            scalars_result([]),
            scalars_result([make_class("g2", "Grade 2", 2, None), make_class("g1", "Grade 1", 1, None)]),
        ]
        resolver = LevelHierarchyResolver(mock_db, "Graduated")

        hierarchy = await resolver.resolve("school-1")

        assert hierarchy.degraded is True
        assert [level.id for level in hierarchy.levels] == ["g1", "g2"]

    @pytest.mark.asyncio
    async def test_fallback_disabled(self, mock_db) -> None:
        mock_db.execute.return_value = scalars_result([])
        resolver = LevelHierarchyResolver(mock_db, "Graduated", allow_legacy_fallback=False)

        hierarchy = await resolver.resolve("school-1")

        assert hierarchy.is_empty
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_get_level_rejects_other_school(self, mock_db) -> None:
        result = MagicMock()
        result.scalar_one_or_none.return_value = make_class("g1", "Grade 1", 1, "school-2")
        mock_db.execute.return_value = result
        resolver = LevelHierarchyResolver(mock_db, "Graduated")

        assert await resolver.get_level("school-1", "g1") is None
