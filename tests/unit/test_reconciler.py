# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the enrollment diff."""

from academic_progression.domains.progression.reconciler import (
    CourseRef,
    EnrollmentSnapshot,
    compute_enrollment_diff,
)

GRADE_1 = "grade-1"
GRADE_2 = "grade-2"


def enrolled(course_id: str, class_id: str | None, period_id: str = "p1") -> EnrollmentSnapshot:
    return EnrollmentSnapshot(
        course_id=course_id,
        course_name=course_id.title(),
        class_id=class_id,
        period_id=period_id,
    )


class TestComputeEnrollmentDiff:
    """Tests for compute_enrollment_diff."""

    def test_moving_up_one_class(self) -> None:
        current = [enrolled("course-a", GRADE_1), enrolled("course-z", None)]
        offerings = [CourseRef("course-b", "Course B", GRADE_2)]

        diff = compute_enrollment_diff(current, offerings, GRADE_2)

        assert diff.removed_course_ids == ["course-a"]
        assert diff.added_course_ids == ["course-b"]
        assert diff.retained_course_ids == ["course-z"]

    def test_electives_are_never_removed(self) -> None:
        current = [enrolled("art", None), enrolled("music", None)]

        diff = compute_enrollment_diff(current, [], GRADE_2)

        assert diff.to_remove == []
        assert diff.retained_course_ids == ["art", "music"]

    def test_existing_destination_enrollment_is_not_added_again(self) -> None:
        current = [enrolled("course-b", GRADE_2)]
        offerings = [CourseRef("course-b", "Course B", GRADE_2)]

        diff = compute_enrollment_diff(current, offerings, GRADE_2)

        assert diff.added_course_ids == []
        assert diff.retained_course_ids == ["course-b"]

    def test_offerings_of_other_classes_are_ignored(self) -> None:
        offerings = [
            CourseRef("course-b", "Course B", GRADE_2),
            CourseRef("course-x", "Course X", GRADE_1),
            CourseRef("elective", "Elective", None),
        ]

        diff = compute_enrollment_diff([], offerings, GRADE_2)

        assert diff.added_course_ids == ["course-b"]

    def test_duplicate_offerings_added_once(self) -> None:
        offerings = [
            CourseRef("course-b", "Course B", GRADE_2),
            CourseRef("course-b", "Course B", GRADE_2),
        ]

        diff = compute_enrollment_diff([], offerings, GRADE_2)

        assert diff.added_course_ids == ["course-b"]

    def test_reconciling_twice_changes_nothing(self) -> None:
        """A reconciled enrollment set reconciles to an empty diff."""
        current = [
            enrolled("course-a", GRADE_1),
            enrolled("course-z", None),
            enrolled("course-c", "grade-0"),
        ]
        offerings = [
            CourseRef("course-b", "Course B", GRADE_2),
            CourseRef("course-d", "Course D", GRADE_2),
        ]

        first = compute_enrollment_diff(current, offerings, GRADE_2)
        assert not first.is_empty

        after = list(first.retained) + [
            enrolled(course.id, course.class_id, "p2") for course in first.to_add
        ]
        second = compute_enrollment_diff(after, offerings, GRADE_2)

        assert second.is_empty
        assert second.to_add == []
        assert second.to_remove == []

    def test_snapshot_dict_has_no_enrollment_id(self) -> None:
        snapshot = EnrollmentSnapshot("c1", "Maths", GRADE_1, "p1", enrollment_id="e1")

        assert snapshot.to_dict() == {
            "course_id": "c1",
            "course_name": "Maths",
            "class_id": GRADE_1,
            "period_id": "p1",
        }
