"""Wake-time calculation and one-shot timers for drop execution.

Timers are APScheduler date jobs on an AsyncIOScheduler. Fired jobs run
behind a semaphore so at most max_concurrent_runs acquisitions are in
flight at once; the rest queue until a slot frees up.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from dropsnag.models import Weekday

logger = logging.getLogger(__name__)

WAKE_MARGIN = timedelta(minutes=1)

# Zone names that only show up when a lookup fell back to the default zone.
FALLBACK_ZONES = frozenset({"GMT"})


def parse_clock_time(value: str) -> time | None:
    """Parse strict zero-padded HH:MM. Returns None if malformed."""
    try:
        value = value.strip()
        if len(value) != 5:
            return None
        return datetime.strptime(value, "%H:%M").time()
    except (ValueError, AttributeError):
        return None


def resolve_timezone(name: str) -> ZoneInfo | None:
    """Return the IANA zone for name, or None if unknown or the fallback zone."""
    name = name.strip()
    if not name or name in FALLBACK_ZONES:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


@dataclass(frozen=True)
class WakePlan:
    """When a request's reservations drop and when to wake for them.

    eligible_at: earliest reservation date-time the drop releases
    attempt_at:  the drop moment itself
    arm_at:      attempt_at minus the safety margin (drops sometimes land early)
    """

    eligible_at: datetime
    attempt_at: datetime
    arm_at: datetime


def plan_wake(
    post_time: time,
    post_days_offset: int,
    tz: tzinfo,
    weekday: Weekday,
    now: datetime,
    margin: timedelta = WAKE_MARGIN,
) -> WakePlan:
    """
    Compute the next drop that releases a table on the target weekday.

    Example: post_time=09:00, now=Mon 08:00, offset=20, weekday=WEDNESDAY
    → candidate drop Mon 09:00, eligibility Sun (+20d); both walk 3 days
      to eligibility Wed, drop Thu 09:00, arm Thu 08:59.
    """
    local_now = now.astimezone(tz)
    attempt = datetime.combine(local_now.date(), post_time, tzinfo=tz)
    if post_time < local_now.time():
        attempt += timedelta(days=1)

    eligible = attempt + timedelta(days=post_days_offset)
    while eligible.weekday() != weekday:
        eligible += timedelta(days=1)
        attempt += timedelta(days=1)

    return WakePlan(eligible_at=eligible, attempt_at=attempt, arm_at=attempt - margin)


@dataclass
class ScheduledJob:
    """Handle for an armed timer."""

    job_id: str
    run_at: datetime
    _scheduler: DropScheduler

    def cancel(self) -> bool:
        """Disarm the timer. Returns False if it already fired or was removed."""
        return self._scheduler.cancel(self.job_id)


class DropScheduler:
    """schedule(at, task) over APScheduler with a bounded worker pool."""

    def __init__(
        self,
        max_concurrent_runs: int = 4,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._slots = asyncio.Semaphore(max_concurrent_runs)

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("APScheduler started")

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    @staticmethod
    def _now() -> datetime:
        """Current UTC time. Extracted for testability."""
        return datetime.now(timezone.utc)

    def schedule(
        self,
        at: datetime,
        task: Callable[[], Awaitable[object]],
        job_id: str | None = None,
    ) -> ScheduledJob:
        """Run task once at `at` (immediately if `at` already passed)."""
        job_id = job_id or uuid.uuid4().hex
        run_at = max(at, self._now())
        self._scheduler.add_job(
            self._run,
            trigger="date",
            run_date=run_at,
            id=job_id,
            args=[job_id, task],
            misfire_grace_time=None,
            replace_existing=True,
        )
        logger.info("Timer %s armed for %s", job_id, at.isoformat())
        return ScheduledJob(job_id=job_id, run_at=run_at, _scheduler=self)

    def cancel(self, job_id: str) -> bool:
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        logger.info("Timer %s cancelled", job_id)
        return True

    async def _run(self, job_id: str, task: Callable[[], Awaitable[object]]) -> None:
        async with self._slots:
            logger.info("Timer %s fired", job_id)
            try:
                await task()
            except Exception:
                logger.exception("Timer %s task failed", job_id)
