# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the progression domain.

NotFoundError and ConfigurationError abort the operation that raised them.
Inside batch operations any exception raised for a single student is
recorded as an EntityError instead of propagating.
"""


class ProgressionError(Exception):
    """Base exception for progression errors."""

    pass


class NotFoundError(ProgressionError):
    """Raised when a required record does not exist in the school."""

    pass


class StudentNotFoundError(NotFoundError):
    """Raised when a student is not found."""

    pass


class LevelNotFoundError(NotFoundError):
    """Raised when a class is not found."""

    pass


class ConfigurationError(ProgressionError):
    """Raised when the school is not set up for progression."""

    pass


class ProgressionPeriodNotFoundError(ConfigurationError):
    """Raised when no final period is available to progress against."""

    pass


class TerminalLevelNotConfiguredError(ConfigurationError):
    """Raised when the graduation class does not exist."""

    pass


class InvalidProgressionModeError(ConfigurationError):
    """Raised when a school stores an unknown progression mode."""

    pass


class ProgressionAlreadyExecutedError(ConfigurationError):
    """Raised when the cycle has already been progressed."""

    pass


class InvalidRevertRequestError(ProgressionError):
    """Raised when a revert is requested without a correlation id."""

    pass
