# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Outbound account notifications."""

from authcore.infrastructure.notifications.base import AuthMessage, BaseNotifier, LoggingNotifier
from authcore.infrastructure.notifications.email import SMTPNotifier

__all__ = [
    "AuthMessage",
    "BaseNotifier",
    "LoggingNotifier",
    "SMTPNotifier",
]
