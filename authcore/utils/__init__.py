# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for authcore.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog and secret redaction
- datetime: Timezone-aware datetime operations
"""

from authcore.utils.datetime import ensure_utc, is_expired, utc_from_timestamp, utc_now
from authcore.utils.logging import (
    bind_context,
    clear_context,
    mask_email,
    mask_token,
    setup_logging,
)

__all__ = [
    # Logging
    "setup_logging",
    "bind_context",
    "clear_context",
    "mask_email",
    "mask_token",
    # Datetime
    "utc_now",
    "utc_from_timestamp",
    "ensure_utc",
    "is_expired",
]
