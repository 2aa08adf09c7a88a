# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for authcore.

All timestamps are timezone-aware UTC. Expiry checks are strict: a value
expiring at instant T is already expired at T, and no clock skew leeway
is applied anywhere in the token lifecycle.

Usage:
    from authcore.utils.datetime import utc_now

    expires_at = utc_now() + timedelta(hours=1)
    if is_expired(expires_at):
        ...
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def utc_from_timestamp(timestamp: float) -> datetime:
    """Create a timezone-aware UTC datetime from a Unix timestamp.

    Args:
        timestamp: Unix timestamp (seconds since epoch).

    Returns:
        Timezone-aware UTC datetime.
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Naive datetimes are assumed to be UTC already, which is what the
    SQL drivers hand back for ``TIMESTAMP`` columns without zone.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def is_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """Check whether an expiry instant has been reached.

    Args:
        expires_at: Expiry instant.
        now: Reference instant, defaults to the current time.

    Returns:
        True if ``now >= expires_at``.
    """
    reference = now or utc_now()
    return reference >= ensure_utc(expires_at)
