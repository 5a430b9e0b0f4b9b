# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression domain.

Class hierarchy, enrollment reconciliation, single and batch promotion,
preview, revert and audit history.
"""

from academic_progression.domains.progression.exceptions import (
    ConfigurationError,
    InvalidProgressionModeError,
    InvalidRevertRequestError,
    LevelNotFoundError,
    NotFoundError,
    ProgressionAlreadyExecutedError,
    ProgressionError,
    ProgressionPeriodNotFoundError,
    StudentNotFoundError,
    TerminalLevelNotConfiguredError,
)
from academic_progression.domains.progression.executor import PromotionExecutor
from academic_progression.domains.progression.hierarchy import (
    LevelHierarchy,
    LevelHierarchyResolver,
    LevelRef,
    build_hierarchy,
)
from academic_progression.domains.progression.history import PromotionHistoryService
from academic_progression.domains.progression.orchestrator import ProgressionOrchestrator
from academic_progression.domains.progression.periods import AcademicPeriodService
from academic_progression.domains.progression.policy import (
    ProgressionPolicy,
    SchoolSettingsService,
)
from academic_progression.domains.progression.preview import PreviewService
from academic_progression.domains.progression.reconciler import (
    CourseRef,
    EnrollmentDiff,
    EnrollmentReconciler,
    EnrollmentSnapshot,
    compute_enrollment_diff,
)
from academic_progression.domains.progression.revert import RevertCoordinator
from academic_progression.domains.progression.service import ProgressionService

__all__ = [
    "AcademicPeriodService",
    "ConfigurationError",
    "CourseRef",
    "EnrollmentDiff",
    "EnrollmentReconciler",
    "EnrollmentSnapshot",
    "InvalidProgressionModeError",
    "InvalidRevertRequestError",
    "LevelHierarchy",
    "LevelHierarchyResolver",
    "LevelNotFoundError",
    "LevelRef",
    "NotFoundError",
    "PreviewService",
    "ProgressionAlreadyExecutedError",
    "ProgressionError",
    "ProgressionOrchestrator",
    "ProgressionPeriodNotFoundError",
    "ProgressionPolicy",
    "ProgressionService",
    "PromotionExecutor",
    "PromotionHistoryService",
    "RevertCoordinator",
    "SchoolSettingsService",
    "StudentNotFoundError",
    "TerminalLevelNotConfiguredError",
    "build_hierarchy",
    "compute_enrollment_diff",
]
