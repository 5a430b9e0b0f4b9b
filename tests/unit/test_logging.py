# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for logging helpers."""

import json
import logging

import pytest
import structlog

from academic_progression.core.config.settings import Settings
from academic_progression.utils.logging import (
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo setup_logging so other tests see default logging."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == "academic_progression":
            root.removeHandler(handler)
    structlog.reset_defaults()
    clear_context()


def _json_lines(out: str) -> list[dict]:
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_sets_package_level(self) -> None:
        settings = Settings(_env_file=None, log_level="WARNING")  # type: ignore[call-arg]

        setup_logging(settings)

        assert logging.getLogger("academic_progression").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_get_logger_returns_usable_logger(self, capsys) -> None:
        setup_logging(Settings(_env_file=None, log_level="DEBUG"))  # type: ignore[call-arg]

        logger = get_logger(__name__)
        logger.info("test_event", value=1)

        assert "test_event" in capsys.readouterr().out

    def test_renders_json_outside_development(self, capsys) -> None:
        setup_logging(Settings(_env_file=None, environment="staging"))  # type: ignore[call-arg]

        bind_context(school_id="school-1")
        get_logger("academic_progression.tests").info("run_done", promoted=3)

        [event] = [e for e in _json_lines(capsys.readouterr().out) if e["event"] == "run_done"]
        assert event["promoted"] == 3
        assert event["school_id"] == "school-1"
        assert event["level"] == "info"
        assert event["logger"] == "academic_progression.tests"

    def test_stdlib_records_share_the_handler(self, capsys) -> None:
        setup_logging(Settings(_env_file=None, environment="staging"))  # type: ignore[call-arg]

        logging.getLogger("academic_progression.tests").info("Moved %d students", 2)

        events = _json_lines(capsys.readouterr().out)
        assert {"event": "Moved 2 students", "level": "info"}.items() <= events[-1].items()

    def test_level_filters_structlog_events(self, capsys) -> None:
        setup_logging(Settings(_env_file=None, environment="staging", log_level="WARNING"))  # type: ignore[call-arg]

        get_logger("academic_progression.tests").info("quiet_event")

        assert "quiet_event" not in capsys.readouterr().out

    def test_repeated_setup_keeps_one_handler(self) -> None:
        settings = Settings(_env_file=None)  # type: ignore[call-arg]

        setup_logging(settings)
        setup_logging(settings)

        named = [h for h in logging.getLogger().handlers if h.get_name() == "academic_progression"]
        assert len(named) == 1


class TestContext:
    """Tests for context binding."""

    def test_bind_and_clear(self) -> None:
        clear_context()
        bind_context(school_id="school-1", execution_id="run-1")

        assert structlog.contextvars.get_contextvars() == {
            "school_id": "school-1",
            "execution_id": "run-1",
        }

        clear_context()

        assert structlog.contextvars.get_contextvars() == {}
