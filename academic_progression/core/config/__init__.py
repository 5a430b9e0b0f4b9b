# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the progression engine.

Example:
    >>> from academic_progression.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.progression.terminal_level_name)
    'Graduated'
"""

from academic_progression.core.config.settings import (
    DatabaseSettings,
    ProgressionSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "DatabaseSettings",
    "ProgressionSettings",
]
