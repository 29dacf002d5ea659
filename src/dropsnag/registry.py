"""Pending-request registry: validation, wake planning and timer arming.

The registry is the only owner of pending requests. A request enters on a
validated submit() and leaves exactly once, when its timer fires and it is
handed to the acquisition engine. The pending set is keyed by
(venue_id, weekday) so a venue can only have one request per weekday.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from types import MappingProxyType

from dropsnag.api import ResyApiClient
from dropsnag.engine import AcquisitionEngine
from dropsnag.errors import (
    DuplicateRequestError,
    InvalidDaysOffsetError,
    InvalidPartySizeError,
    InvalidTimeFormatError,
    InvalidTimezoneError,
    InvalidWeekdayError,
    RestaurantNotFoundError,
    VenueServiceError,
)
from dropsnag.models import PendingRequest, RequestedTime, Weekday
from dropsnag.notifications import Notifier, acknowledgment_message
from dropsnag.scheduler import (
    WAKE_MARGIN,
    DropScheduler,
    ScheduledJob,
    WakePlan,
    parse_clock_time,
    plan_wake,
    resolve_timezone,
)
from dropsnag.web.schemas import (
    PendingReservationOut,
    PendingReservationsResponse,
    PendingTimeOut,
    SubmitReservationRequest,
)

logger = logging.getLogger(__name__)


class SchedulingRegistry:
    """Owns pending requests from submission until their timer fires."""

    def __init__(
        self,
        client: ResyApiClient,
        engine: AcquisitionEngine,
        scheduler: DropScheduler,
        notifier: Notifier,
        *,
        wake_margin: timedelta = WAKE_MARGIN,
    ) -> None:
        self.client = client
        self.engine = engine
        self.scheduler = scheduler
        self.notifier = notifier
        self.wake_margin = wake_margin
        self._pending: dict[tuple[int, Weekday], PendingRequest] = {}
        self._timers: dict[tuple[int, Weekday], ScheduledJob] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _now(tz) -> datetime:
        """Get current time in given timezone. Extracted for testability."""
        return datetime.now(tz)

    @property
    def pending(self) -> MappingProxyType:
        """Read-only view of the pending set."""
        return MappingProxyType(self._pending)

    async def submit(self, raw: SubmitReservationRequest) -> PendingRequest:
        """Validate, store and arm a submission. Raises SubmissionError on rejection."""
        logger.info("Got a new reservation request: %s", raw.name)

        try:
            restaurant = await self.client.find_restaurant(raw.name, raw.num_seats)
        except VenueServiceError as e:
            logger.warning("Restaurant lookup failed for %r: %s", raw.name, e)
            restaurant = None
        if restaurant is None:
            raise RestaurantNotFoundError(f"Unable to find restaurant named {raw.name}")

        post_time = parse_clock_time(raw.reservation_post_time)
        if post_time is None:
            raise InvalidTimeFormatError(f"Unable to parse time {raw.reservation_post_time}")

        if raw.reservation_post_days_offset < 0:
            raise InvalidDaysOffsetError("Day offset must be 0 or greater")

        tz = resolve_timezone(raw.time_zone_string)
        if tz is None:
            raise InvalidTimezoneError(f"Invalid time zone: {raw.time_zone_string}")

        weekday = Weekday.parse(raw.weekday_string)
        if weekday is None:
            raise InvalidWeekdayError(f"Invalid weekday: {raw.weekday_string}")

        if raw.num_seats <= 0:
            raise InvalidPartySizeError("Number of seats must be > 0")

        ranked_times: list[RequestedTime] = []
        for requested in raw.requested_times:
            parsed = parse_clock_time(requested.time)
            if parsed is None:
                raise InvalidTimeFormatError(f"Invalid time: {requested.time}")
            ranked_times.append(RequestedTime(time=parsed, table_type=requested.table_type))

        request = PendingRequest(
            restaurant_name=restaurant.name,
            venue_id=restaurant.venue_id,
            post_time=post_time,
            post_days_offset=raw.reservation_post_days_offset,
            timezone=tz.key,
            party_size=raw.num_seats,
            weekday=weekday,
            ranked_times=tuple(ranked_times),
            submitted_by=raw.submitted_by,
            notification_target=raw.notification_number,
        )

        async with self._lock:
            if request.key in self._pending:
                raise DuplicateRequestError(
                    "There's already a pending reservation for this restaurant on this "
                    "weekday. Consult whoever submitted it."
                )
            self._pending[request.key] = request

        try:
            plan = self.plan(request)
            self._timers[request.key] = self.scheduler.schedule(
                plan.arm_at,
                lambda: self.on_timer_fire(request),
                job_id=f"drop_{request.venue_id}_{request.weekday.name.lower()}",
            )
        except Exception:
            # An unarmed request must not block resubmission.
            async with self._lock:
                if self._pending.get(request.key) is request:
                    del self._pending[request.key]
            raise
        logger.info(
            "Scheduled %s for %s (eligible %s)",
            request.restaurant_name,
            plan.arm_at.isoformat(),
            plan.eligible_at.date().isoformat(),
        )
        try:
            self.notifier.send(
                acknowledgment_message(request, plan.eligible_at, plan.arm_at),
                request.notification_target,
            )
        except Exception:
            logger.exception("Notifier raised for %s", request.restaurant_name)
        return request

    def plan(self, request: PendingRequest) -> WakePlan:
        """Wake plan for a request as of now."""
        return plan_wake(
            request.post_time,
            request.post_days_offset,
            request.tz,
            request.weekday,
            self._now(request.tz),
            margin=self.wake_margin,
        )

    async def on_timer_fire(self, request: PendingRequest) -> None:
        """Remove the request, then hand it to the engine. Removal is idempotent."""
        async with self._lock:
            if self._pending.get(request.key) is request:
                del self._pending[request.key]
                self._timers.pop(request.key, None)
        logger.info("Timer fired for %s on %s", request.restaurant_name, request.weekday.name)
        await self.engine.execute(request)

    def list_pending(self) -> PendingReservationsResponse:
        """Pending requests keyed by restaurant name, with 1-based priorities."""
        logger.info("Fetching pending reservations...")
        return PendingReservationsResponse(
            reservations={
                req.restaurant_name: PendingReservationOut(
                    num_seats=req.party_size,
                    weekday=req.weekday.name,
                    submitted_by=req.submitted_by,
                    times=[
                        PendingTimeOut(
                            time=rt.time.strftime("%H:%M"),
                            priority=idx,
                            table_type=rt.table_type,
                        )
                        for idx, rt in enumerate(req.ranked_times, 1)
                    ],
                )
                for req in list(self._pending.values())
            }
        )
