"""Acquisition engine: hedged discovery, priority matching, bounded retry.

One execute() call owns a single PendingRequest from the moment its timer
fires until the outcome notification goes out:

    Attempting → Matching → Committing → Succeeded | Exhausted

Each attempt races hedge_requests identical /4/find calls and keeps the
first answer. Matching walks ranked times in priority order; a failed detail
fetch or commit falls through to the next ranked time in the same attempt.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime, timedelta

from dropsnag.api import ResyApiClient
from dropsnag.errors import VenueServiceError
from dropsnag.models import BookingOutcome, PendingRequest, Slot
from dropsnag.notifications import Notifier, failure_message, success_message
from dropsnag.selector import SlotSelector

logger = logging.getLogger(__name__)

BUDGET_SECONDS = 180.0
HEDGE_REQUESTS = 2


class AcquisitionEngine:
    """Runs one request's booking attempts to completion and notifies once."""

    def __init__(
        self,
        client: ResyApiClient,
        notifier: Notifier,
        selector: SlotSelector | None = None,
        *,
        budget_seconds: float = BUDGET_SECONDS,
        hedge_requests: int = HEDGE_REQUESTS,
        retry_interval_seconds: float = 0.0,
    ) -> None:
        self.client = client
        self.notifier = notifier
        self.selector = selector or SlotSelector()
        self.budget_seconds = budget_seconds
        self.hedge_requests = hedge_requests
        self.retry_interval_seconds = retry_interval_seconds
        # Losing discovery calls keep running; hold references until they finish.
        self._abandoned: set[asyncio.Task] = set()

    @staticmethod
    def _now(tz) -> datetime:
        """Get current time in given timezone. Extracted for testability."""
        return datetime.now(tz)

    async def execute(self, request: PendingRequest) -> BookingOutcome:
        """Attempt to book until success or the budget runs out, then notify."""
        target_date = self._now(request.tz).date() + timedelta(days=request.post_days_offset)
        logger.info(
            "Acquiring %s (venue %d) for %s, party of %d",
            request.restaurant_name,
            request.venue_id,
            target_date.isoformat(),
            request.party_size,
        )

        outcome = BookingOutcome(success=False, error="Acquisition aborted")
        try:
            outcome = await self._retry_loop(request, target_date)
        finally:
            # Exactly one notification, even if the loop was interrupted.
            self._notify(request, target_date, outcome)
        return outcome

    async def _retry_loop(self, request: PendingRequest, target_date: date) -> BookingOutcome:
        start = time.monotonic()
        attempt = 0

        while True:
            elapsed = time.monotonic() - start
            if elapsed >= self.budget_seconds:
                logger.warning(
                    "Retry window exhausted after %d attempts (%.1fs)", attempt, elapsed
                )
                return BookingOutcome(
                    success=False,
                    attempts=attempt,
                    elapsed_seconds=elapsed,
                    error="Retry window exhausted",
                )

            attempt += 1
            try:
                slot = await asyncio.wait_for(
                    self._attempt(request, target_date, attempt),
                    timeout=self.budget_seconds - elapsed,
                )
            except asyncio.TimeoutError:
                logger.warning("Attempt %d: cut off at the end of the retry window", attempt)
                slot = None
            except Exception as e:
                logger.error("Attempt %d: unexpected error: %s", attempt, e)
                slot = None

            if slot is not None:
                elapsed = time.monotonic() - start
                logger.info(
                    "BOOKED %s at %s in %.3fs after %d attempts",
                    request.restaurant_name,
                    slot.date_time.strftime("%H:%M"),
                    elapsed,
                    attempt,
                )
                return BookingOutcome(
                    success=True, slot=slot, attempts=attempt, elapsed_seconds=elapsed
                )

            if self.retry_interval_seconds > 0:
                await asyncio.sleep(self.retry_interval_seconds)

    async def _attempt(
        self, request: PendingRequest, target_date: date, attempt: int
    ) -> Slot | None:
        """One discovery → match → commit cycle."""
        slots = await self.discover_slots(request, target_date)
        if not slots:
            logger.debug("Attempt %d: no slots yet", attempt)
            return None

        logger.info("Attempt %d: found %d slots", attempt, len(slots))
        return await self.match_and_commit(request, slots)

    async def discover_slots(self, request: PendingRequest, target_date: date) -> list[Slot]:
        """Race hedge_requests identical /4/find calls; first completed answer wins.

        A call that raises is ignored while others are still running. Empty,
        absent or all-failed answers yield [].
        """
        tasks = {
            asyncio.create_task(
                self.client.find_slots(request.venue_id, target_date, request.party_size)
            )
            for _ in range(self.hedge_requests)
        }
        pending = tasks
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    exc = task.exception()
                    if exc is None:
                        return task.result() or []
                    logger.warning("Slot discovery failed: %s", exc)
            return []
        finally:
            for task in pending:
                self._abandon(task)

    def _abandon(self, task: asyncio.Task) -> None:
        self._abandoned.add(task)
        task.add_done_callback(self._discard)

    def _discard(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Abandoned discovery call failed: %s", task.exception())

    async def match_and_commit(
        self, request: PendingRequest, slots: list[Slot]
    ) -> Slot | None:
        """Try ranked times in priority order; return the first slot that books."""
        for priority, wanted, slot in self.selector.candidates(slots, request.ranked_times):
            logger.info(
                "Priority %d (%s %s) matched slot %s %s",
                priority,
                wanted.time.strftime("%H:%M"),
                wanted.table_type or "any",
                slot.date_time.strftime("%H:%M"),
                slot.table_type,
            )

            try:
                detail = await self.client.get_booking_detail(slot)
            except VenueServiceError as e:
                logger.warning("Priority %d: booking detail failed: %s", priority, e)
                continue
            if detail is None:
                logger.warning("Priority %d: no booking detail, trying next", priority)
                continue

            try:
                booked = await self.client.book(detail)
            except VenueServiceError as e:
                logger.warning("Priority %d: booking failed: %s", priority, e)
                continue
            if booked:
                return slot
            logger.warning("Priority %d: booking rejected, trying next", priority)

        return None

    def _notify(self, request: PendingRequest, target_date: date, outcome: BookingOutcome) -> None:
        if outcome.success and outcome.slot is not None:
            message = success_message(request, target_date, outcome.slot)
        else:
            message = failure_message(request, target_date)
        try:
            self.notifier.send(message, request.notification_target)
        except Exception:
            logger.exception("Notifier raised for %s", request.restaurant_name)
