# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests
- Integration tests (database backed)
"""

from collections.abc import Generator

import pytest

from academic_progression.core.config.settings import ProgressionSettings, clear_settings_cache


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires a database)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Make every test read settings from a clean cache."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def progression_defaults() -> ProgressionSettings:
    """Provide progression defaults independent of the environment."""
    return ProgressionSettings(
        default_mode="automatic",
        default_pass_threshold=50.0,
        final_period_position=3,
        terminal_level_name="Graduated",
        allow_legacy_fallback=True,
    )


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_school_id() -> str:
    """Provide a sample school ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def sample_student_id() -> str:
    """Provide a sample student ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440001"
