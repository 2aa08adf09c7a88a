# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fixed-window rate limiting.

Counting is done by the ``limits`` fixed-window strategy over its
in-memory storage, the same backend slowapi uses. This module adds the
named policies the auth flows check against, the decision and header
shaping, and the bookkeeping for the periodic sweep.

A window opens on the first request for a key and lasts ``window_ms``,
which must be a whole number of seconds. Every request in the window is
counted, admitted or not; requests past ``max_requests`` are rejected
until the window elapses. Each policy has its own keyspace.

Example:
    >>> limiter = RateLimiter(default_policies(settings.rate_limit))
    >>> decision = limiter.check_policy("login", "ip:10.0.0.1")
    >>> decision.admitted
    True
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from authcore.core.config.settings import RateLimitSettings
from authcore.domains.auth.errors import AuthError
from authcore.utils.datetime import utc_from_timestamp

logger = logging.getLogger(__name__)

POLICY_LOGIN = "login"
POLICY_PASSWORD_RESET = "password_reset"
POLICY_EMAIL_VERIFICATION = "email_verification"
POLICY_API = "api"

LIMIT_NAMESPACE = "authcore"


def limit_item(window_ms: int, max_requests: int) -> RateLimitItem:
    """Build the ``limits`` item for a window and a maximum.

    Raises:
        ValueError: If either value is not positive, or the window is not
            a whole number of seconds.
    """
    if window_ms <= 0 or max_requests <= 0:
        raise ValueError("window_ms and max_requests must be positive")
    if window_ms % 1000:
        raise ValueError("window_ms must be a whole number of seconds")
    return RateLimitItemPerSecond(max_requests, window_ms // 1000, namespace=LIMIT_NAMESPACE)


@dataclass(frozen=True)
class RateLimitPolicy:
    """A named rate limit.

    Attributes:
        name: Policy name, also the key prefix.
        window_ms: Window length in milliseconds.
        max_requests: Requests admitted per window.
        skip_successful_requests: Successful requests are not counted.
        skip_failed_requests: Failed requests are not counted.
    """

    name: str
    window_ms: int
    max_requests: int
    skip_successful_requests: bool = False
    skip_failed_requests: bool = False

    def __post_init__(self) -> None:
        limit_item(self.window_ms, self.max_requests)

    def key_for(self, key: str) -> str:
        return f"{self.name}:{key}"

    @property
    def item(self) -> RateLimitItem:
        return limit_item(self.window_ms, self.max_requests)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check.

    Attributes:
        admitted: Whether the request may proceed.
        key: Counter key.
        count: Requests counted in the current window.
        limit: Requests admitted per window.
        remaining: Requests left in the window.
        reset_at: When the window elapses.
        retry_after_seconds: Seconds to wait, 0 when admitted.
    """

    admitted: bool
    key: str
    count: int
    limit: int
    remaining: int
    reset_at: datetime
    retry_after_seconds: int = 0

    def headers(self) -> dict[str, str]:
        """Rate limit response headers."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at.timestamp())),
        }
        if not self.admitted:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


def default_policies(settings: RateLimitSettings) -> dict[str, RateLimitPolicy]:
    """Build the named policies from settings.

    Args:
        settings: Rate limit settings.

    Returns:
        Policies keyed by name.
    """
    policies = [
        RateLimitPolicy(
            POLICY_LOGIN,
            settings.login_window_ms,
            settings.login_max,
            skip_successful_requests=True,
        ),
        RateLimitPolicy(
            POLICY_PASSWORD_RESET,
            settings.password_reset_window_ms,
            settings.password_reset_max,
        ),
        RateLimitPolicy(
            POLICY_EMAIL_VERIFICATION,
            settings.email_verification_window_ms,
            settings.email_verification_max,
        ),
        RateLimitPolicy(POLICY_API, settings.api_window_ms, settings.api_max),
    ]
    return {policy.name: policy for policy in policies}


class RateLimiter:
    """Fixed-window rate limiter over ``limits`` memory storage.

    The storage expires elapsed windows itself. Checks are serialized so
    that a decision reports the count its own request produced. The
    limiter also remembers which storage keys it has opened so that
    ``sweep()`` can drop elapsed windows and report how many went.

    Attributes:
        _policies: Named policies.
        _storage: Counter storage.
        _strategy: Fixed-window strategy over the storage.
        _keys: Storage keys of windows opened and not yet swept.
    """

    def __init__(
        self,
        policies: dict[str, RateLimitPolicy] | None = None,
        storage: MemoryStorage | None = None,
    ) -> None:
        self._policies = dict(policies or {})
        self._storage = storage or MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def policy(self, name: str) -> RateLimitPolicy:
        """Look up a named policy.

        Raises:
            KeyError: If no policy has that name.
        """
        try:
            return self._policies[name]
        except KeyError:
            raise KeyError(f"Unknown rate limit policy: {name}") from None

    def check(self, key: str, window_ms: int, max_requests: int) -> RateLimitDecision:
        """Count a request against a key.

        Args:
            key: Counter key.
            window_ms: Window length in milliseconds.
            max_requests: Requests admitted per window.

        Returns:
            RateLimitDecision for this request.

        Raises:
            ValueError: If window_ms or max_requests is not positive, or
                window_ms is not a whole number of seconds.
        """
        item = limit_item(window_ms, max_requests)
        with self._lock:
            admitted = self._strategy.hit(item, key)
            self._keys.add(item.key_for(key))
            decision = self._decision(item, key, admitted)

        if not admitted:
            logger.debug("Rate limit exceeded for %s (%d/%d)", key, decision.count, max_requests)
        return decision

    def check_policy(self, policy_name: str, key: str) -> RateLimitDecision:
        """Count a request against a named policy."""
        policy = self.policy(policy_name)
        return self.check(policy.key_for(key), policy.window_ms, policy.max_requests)

    def record_outcome(self, policy_name: str, key: str, succeeded: bool) -> None:
        """Uncount a request the policy does not want counted.

        Args:
            policy_name: Policy the request was checked against.
            key: Client key passed to check_policy.
            succeeded: Whether the request succeeded.
        """
        policy = self.policy(policy_name)
        skip = (
            policy.skip_successful_requests if succeeded else policy.skip_failed_requests
        )
        if not skip:
            return

        storage_key = policy.item.key_for(policy.key_for(key))
        with self._lock:
            if self._storage.get(storage_key) > 0:
                self._storage.decr(storage_key)

    def status(self, policy_name: str, key: str) -> RateLimitDecision | None:
        """Current state of a key without counting a request.

        Returns:
            RateLimitDecision, or None if the key has no open window.
        """
        policy = self.policy(policy_name)
        full_key = policy.key_for(key)
        item = policy.item
        if self._storage.get(item.key_for(full_key)) == 0:
            return None
        return self._decision(item, full_key, None)

    def reset(self, policy_name: str, key: str) -> bool:
        """Drop the window of a key.

        Returns:
            True if a window was dropped.
        """
        policy = self.policy(policy_name)
        full_key = policy.key_for(key)
        item = policy.item
        storage_key = item.key_for(full_key)

        with self._lock:
            had_window = self._storage.get(storage_key) > 0
            self._strategy.clear(item, full_key)
            self._keys.discard(storage_key)
        return had_window

    def sweep(self) -> int:
        """Remove elapsed windows.

        Returns:
            Number of windows removed.
        """
        with self._lock:
            # get() drops an elapsed counter from the storage
            elapsed = [key for key in self._keys if self._storage.get(key) == 0]
            self._keys.difference_update(elapsed)

        if elapsed:
            logger.debug("Rate limiter sweep removed %d windows", len(elapsed))
        return len(elapsed)

    def clear(self) -> None:
        with self._lock:
            self._storage.reset()
            self._keys.clear()

    def _decision(
        self,
        item: RateLimitItem,
        key: str,
        admitted: bool | None,
    ) -> RateLimitDecision:
        count = self._storage.get(item.key_for(key))
        reset_time, remaining = self._strategy.get_window_stats(item, key)
        if admitted is None:
            admitted = count < item.amount

        return RateLimitDecision(
            admitted=admitted,
            key=key,
            count=count,
            limit=item.amount,
            remaining=remaining,
            reset_at=utc_from_timestamp(reset_time),
            retry_after_seconds=0 if admitted else max(1, math.ceil(reset_time - time.time())),
        )


def enforce_rate_limit(limiter: RateLimiter, policy_name: str, key: str) -> RateLimitDecision:
    """Count a request and raise if it is over the limit.

    Args:
        limiter: Shared limiter.
        policy_name: Policy to check.
        key: Client key.

    Returns:
        RateLimitDecision for the admitted request.

    Raises:
        AuthError: RATE_LIMITED kind when the limit is exceeded.
    """
    decision = limiter.check_policy(policy_name, key)
    if not decision.admitted:
        logger.warning("Rate limit exceeded: %s for %s", policy_name, key)
        raise AuthError.rate_limited(
            "Too many requests. Please try again later.",
            retry_after=decision.retry_after_seconds,
            policy=policy_name,
            headers=decision.headers(),
        )
    return decision
