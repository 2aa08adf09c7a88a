# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background maintenance jobs."""

from authcore.infrastructure.background.sweeper import (
    MaintenanceScheduler,
    purge_expired_tokens,
    sweep_rate_limits,
)

__all__ = [
    "MaintenanceScheduler",
    "purge_expired_tokens",
    "sweep_rate_limits",
]
