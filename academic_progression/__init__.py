# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic progression engine.

Promotes students to their next class at the end of an academic cycle,
keeps their course registrations aligned with the new class, and keeps
an immutable audit trail that can be used to revert a run.
"""

__version__ = "0.1.0"
