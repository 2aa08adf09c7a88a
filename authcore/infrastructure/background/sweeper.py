# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Periodic maintenance of rate limit windows and expired tokens.

Uses APScheduler's AsyncIOScheduler with two interval jobs:
- rate limit sweep: drops elapsed windows from the shared limiter
- token purge: deletes expired refresh and single-use token records

Expired records are already rejected on use, so both jobs only bound
memory and table growth.

Example:
    sweeper = MaintenanceScheduler(limiter, token_store, single_use_store, settings)
    await sweeper.start()
    ...
    await sweeper.stop()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from authcore.core.config.settings import Settings
from authcore.domains.auth.rate_limit import RateLimiter
from authcore.domains.auth.stores import SingleUseTokenStore, TokenStore
from authcore.utils.datetime import utc_now

logger = logging.getLogger(__name__)

JOB_RATE_LIMIT_SWEEP = "rate_limit_sweep"
JOB_TOKEN_PURGE = "token_purge"


@dataclass
class JobStats:
    """Run statistics of a maintenance job.

    Attributes:
        name: Job identifier.
        last_run: Last run timestamp.
        run_count: Total number of runs.
        error_count: Number of failed runs.
        last_result: Number of items removed by the last run.
    """

    name: str
    last_run: datetime | None = None
    run_count: int = 0
    error_count: int = 0
    last_result: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
            "last_result": self.last_result,
        }


def sweep_rate_limits(limiter: RateLimiter) -> int:
    """Remove elapsed rate limit windows.

    Returns:
        Number of windows removed.
    """
    return limiter.sweep()


async def purge_expired_tokens(
    tokens: TokenStore,
    single_use_tokens: SingleUseTokenStore,
    now: datetime | None = None,
) -> int:
    """Delete expired refresh and single-use token records.

    Returns:
        Number of records deleted.
    """
    now = now or utc_now()
    removed = await tokens.delete_expired(now)
    removed += await single_use_tokens.delete_expired(now)
    if removed:
        logger.info("Purged %d expired token records", removed)
    return removed


class MaintenanceScheduler:
    """Runs the maintenance jobs on fixed intervals.

    Attributes:
        _scheduler: APScheduler instance, set while running.
        _stats: Statistics per job.
    """

    def __init__(
        self,
        limiter: RateLimiter,
        tokens: TokenStore,
        single_use_tokens: SingleUseTokenStore,
        settings: Settings,
    ) -> None:
        self._limiter = limiter
        self._tokens = tokens
        self._single_use_tokens = single_use_tokens
        self._settings = settings
        self._scheduler: AsyncIOScheduler | None = None
        self._stats = {
            JOB_RATE_LIMIT_SWEEP: JobStats(JOB_RATE_LIMIT_SWEEP),
            JOB_TOKEN_PURGE: JobStats(JOB_TOKEN_PURGE),
        }

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    async def start(self) -> None:
        """Start the scheduler and register both jobs."""
        if self._scheduler is not None:
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_rate_limit_sweep,
            trigger=IntervalTrigger(seconds=self._settings.rate_limit.sweep_interval_seconds),
            id=JOB_RATE_LIMIT_SWEEP,
            name="Rate limit sweep",
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.add_job(
            self.run_token_purge,
            trigger=IntervalTrigger(minutes=self._settings.scheduler.token_purge_interval_minutes),
            id=JOB_TOKEN_PURGE,
            name="Expired token purge",
            coalesce=True,
            max_instances=1,
        )
        self._scheduler.start()

        logger.info(
            "Maintenance scheduler started (sweep every %ds, purge every %dm)",
            self._settings.rate_limit.sweep_interval_seconds,
            self._settings.scheduler.token_purge_interval_minutes,
        )

    async def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Maintenance scheduler stopped")

    async def run_rate_limit_sweep(self) -> None:
        async def sweep() -> int:
            return sweep_rate_limits(self._limiter)

        await self._run(JOB_RATE_LIMIT_SWEEP, sweep)

    async def run_token_purge(self) -> None:
        await self._run(
            JOB_TOKEN_PURGE,
            lambda: purge_expired_tokens(self._tokens, self._single_use_tokens),
        )

    async def _run(self, name: str, job: Callable[[], Awaitable[int]]) -> None:
        stats = self._stats[name]
        try:
            stats.last_result = await job()
            stats.run_count += 1
        except Exception as e:
            stats.error_count += 1
            logger.error("Maintenance job %s failed: %s", name, str(e), exc_info=True)
        finally:
            stats.last_run = utc_now()

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "running": self.is_running,
            "jobs": [stats.to_dict() for stats in self._stats.values()],
        }
