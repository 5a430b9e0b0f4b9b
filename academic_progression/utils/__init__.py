# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility modules for the progression engine."""

from academic_progression.utils.datetime import utc_now, utc_today
from academic_progression.utils.logging import (
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
)

__all__ = [
    "utc_now",
    "utc_today",
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
