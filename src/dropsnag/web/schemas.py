"""Pydantic request/response schemas for the web API.

Wire names are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


class SubmitReservationTime(_CamelModel):
    time: str  # "HH:MM"
    table_type: str | None = None


class SubmitReservationRequest(_CamelModel):
    name: str
    reservation_post_time: str  # "HH:MM"
    reservation_post_days_offset: int
    time_zone_string: str
    num_seats: int
    weekday_string: str
    requested_times: list[SubmitReservationTime]
    notification_number: str | None = None
    submitted_by: str


class SubmitReservationResponse(_CamelModel):
    success: bool
    error: str | None = None


# ---------------------------------------------------------------------------
# Pending
# ---------------------------------------------------------------------------


class PendingTimeOut(_CamelModel):
    time: str
    priority: int
    table_type: str | None = None


class PendingReservationOut(_CamelModel):
    num_seats: int
    weekday: str
    submitted_by: str
    times: list[PendingTimeOut]


class PendingReservationsResponse(_CamelModel):
    reservations: dict[str, PendingReservationOut]
