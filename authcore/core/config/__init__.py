# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for authcore.

Settings are Pydantic models loaded from environment variables, one
subsettings class per concern, aggregated by Settings.

Example:
    >>> from authcore.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.jwt.access_token_expire_minutes
    60
"""

from authcore.core.config.settings import (
    CORSSettings,
    DatabaseSettings,
    JWTSettings,
    PasswordSettings,
    RateLimitSettings,
    SchedulerSettings,
    Settings,
    SingleUseTokenSettings,
    SMTPSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "JWTSettings",
    "PasswordSettings",
    "SingleUseTokenSettings",
    "RateLimitSettings",
    "SMTPSettings",
    "SchedulerSettings",
    "CORSSettings",
]
