# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic schemas exchanged with callers of the progression engine."""

from academic_progression.models.progression import (
    BatchPromotionOptions,
    BatchPromotionResult,
    EntityError,
    LevelBreakdown,
    PreviewRow,
    PreviewStatus,
    PreviewSummary,
    PromotionMode,
    PromotionOptions,
    PromotionPreview,
    PromotionRecordResponse,
    PromotionResult,
    PromotionStatus,
    RevertResult,
)

__all__ = [
    "PromotionMode",
    "PromotionStatus",
    "PreviewStatus",
    "PromotionOptions",
    "BatchPromotionOptions",
    "PromotionResult",
    "EntityError",
    "BatchPromotionResult",
    "PreviewRow",
    "LevelBreakdown",
    "PreviewSummary",
    "PromotionPreview",
    "RevertResult",
    "PromotionRecordResponse",
]
