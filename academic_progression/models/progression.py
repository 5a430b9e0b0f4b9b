# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Progression request and result schemas.

These models are what callers of ProgressionService pass in and get back.
They carry plain ids only, never ORM instances.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field

from academic_progression.utils.datetime import utc_now


class PromotionMode(str, Enum):
    """Promotion policy of a school."""

    AUTOMATIC = "automatic"
    THRESHOLD = "threshold"


class PromotionStatus(str, Enum):
    """Outcome of a single-student promotion.

    TERMINAL means no destination class could be resolved; NO_OP means the
    destination equals the current class. Neither writes an audit record.
    """

    TERMINAL = "terminal"
    NO_OP = "no_op"
    PREVIEWED = "previewed"
    APPLIED = "applied"


class PreviewStatus(str, Enum):
    """Projected outcome of a student in a preview."""

    PROMOTE = "promote"
    GRADUATE = "graduate"
    ERROR = "error"


class PromotionOptions(BaseModel):
    """Options for promoting one student."""

    target_class_id: str | None = Field(
        default=None,
        description="Explicit destination class. Defaults to the next class by rank.",
    )
    triggered_by: str | None = Field(default=None, description="User who triggered the promotion")
    dry_run: bool = False
    note: str | None = None
    execution_id: str | None = None
    executed_at: datetime | None = None
    progression_id: str | None = None


class BatchPromotionOptions(BaseModel):
    """Options for promoting every student of a school."""

    triggered_by: str | None = None
    dry_run: bool = False
    note: str | None = None
    execution_id: str = Field(default_factory=lambda: str(uuid4()))
    executed_at: datetime = Field(default_factory=utc_now)
    progression_id: str | None = None
    allow_rerun: bool = Field(
        default=False,
        description="Run even if the cycle is already marked as progressed.",
    )


class PromotionResult(BaseModel):
    """Result of promoting one student."""

    student_id: str
    from_class_id: str | None
    to_class_id: str | None
    added_course_ids: list[str] = Field(default_factory=list)
    removed_course_ids: list[str] = Field(default_factory=list)
    retained_course_ids: list[str] = Field(default_factory=list)
    dry_run: bool = False
    status: PromotionStatus
    promotion_id: str | None = Field(default=None, description="Audit record id when applied")


class EntityError(BaseModel):
    """A failure isolated to one student during a batch operation."""

    student_id: str | None
    message: str


class BatchPromotionResult(BaseModel):
    """Result of a batch promotion run."""

    promoted_count: int = 0
    graduated_count: int = 0
    retained_count: int = 0
    skipped_count: int = 0
    errors: list[EntityError] = Field(default_factory=list)
    execution_id: str
    progression_id: str | None = None
    period_id: str | None = None
    mode: PromotionMode | None = None
    dry_run: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_processed(self) -> int:
        """Every loaded student lands in exactly one bucket."""
        return (
            self.promoted_count
            + self.graduated_count
            + self.retained_count
            + self.skipped_count
            + len(self.errors)
        )


class PreviewRow(BaseModel):
    """Projected promotion of one student."""

    student_id: str
    student_name: str
    current_class_id: str | None
    current_class_name: str | None
    next_class_id: str | None
    next_class_name: str | None
    status: PreviewStatus


class LevelBreakdown(BaseModel):
    """Projected counts for the students of one class."""

    class_id: str
    class_name: str
    rank: int
    promote: int = 0
    graduate: int = 0


class PreviewSummary(BaseModel):
    """Aggregate counts of a preview."""

    total_students: int = 0
    to_promote: int = 0
    to_graduate: int = 0
    errors: int = 0
    already_graduated: int = 0


class PromotionPreview(BaseModel):
    """Read-only projection of a batch promotion."""

    promotions: list[PreviewRow] = Field(default_factory=list)
    summary: PreviewSummary = Field(default_factory=PreviewSummary)
    breakdown: list[LevelBreakdown] = Field(default_factory=list)
    is_progression_period: bool = False
    current_period_position: int | None = None


class RevertResult(BaseModel):
    """Result of reverting a promotion run."""

    reverted_count: int = 0
    restored_enrollments: int = 0
    errors: list[EntityError] = Field(default_factory=list)
    execution_id: str | None = None
    progression_id: str | None = None


class PromotionRecordResponse(BaseModel):
    """Audit record of one applied promotion."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    school_id: str | None
    student_id: str
    from_class_id: str | None
    to_class_id: str
    triggered_by: str | None
    previous_enrollments: list[dict] | None
    new_enrollments: list[dict] | None
    changes: dict[str, list[str]] | None
    note: str | None
    execution_id: str | None
    progression_id: str | None
    executed_at: datetime | None
    created_at: datetime
