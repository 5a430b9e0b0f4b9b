# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tenant database models.

Every model here is scoped to a school through its school_id column.
"""

from academic_progression.infrastructure.database.models.tenant.course import (
    Course,
    Enrollment,
    ExamResultAggregate,
)
from academic_progression.infrastructure.database.models.tenant.promotion import (
    ImmutableRecordError,
    StudentPromotion,
)
from academic_progression.infrastructure.database.models.tenant.school import (
    AcademicCycle,
    Class,
    Period,
    School,
    Student,
)

__all__ = [
    # Organization
    "School",
    "AcademicCycle",
    "Period",
    "Class",
    "Student",
    # Courses
    "Course",
    "Enrollment",
    "ExamResultAggregate",
    # Audit
    "StudentPromotion",
    "ImmutableRecordError",
]
