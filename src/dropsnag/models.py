"""Pydantic models for API interactions and domain objects."""

from __future__ import annotations

from datetime import datetime, time
from enum import IntEnum
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field


class Weekday(IntEnum):
    """Day of week, numbered like datetime.weekday()."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def parse(cls, value: str) -> Weekday | None:
        """Case-insensitive lookup by English name. Returns None if unknown."""
        return cls.__members__.get(value.strip().upper())


# --- Domain Models ---


class RequestedTime(BaseModel):
    """Single time+table preference. Priority is its position in the ranked list."""

    model_config = ConfigDict(frozen=True)

    time: time
    table_type: str | None = None


class PendingRequest(BaseModel):
    """A validated submission waiting for its drop. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    restaurant_name: str
    venue_id: int
    post_time: time
    post_days_offset: int = Field(ge=0)
    timezone: str
    party_size: int = Field(gt=0)
    weekday: Weekday
    ranked_times: tuple[RequestedTime, ...]
    submitted_by: str
    notification_target: str | None = None

    @property
    def key(self) -> tuple[int, Weekday]:
        """Pending-set key: one request per venue per weekday."""
        return (self.venue_id, self.weekday)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class Restaurant(BaseModel):
    venue_id: int
    name: str


class Slot(BaseModel):
    """A bookable slot returned by discovery. Never persisted."""

    date_time: datetime
    table_type: str = ""
    token: str
    party_size: int


class BookingDetail(BaseModel):
    """Short-lived commit token for one slot, fetched right before booking."""

    book_token: str
    payment_method_id: int


class BookingOutcome(BaseModel):
    success: bool
    slot: Slot | None = None
    attempts: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None


# --- API Response Models ---


class SlotConfig(BaseModel):
    id: int | str = ""
    type: str = ""
    token: str = ""


class SlotDate(BaseModel):
    start: str  # "2026-03-26 19:00:00"
    end: str = ""


class RawSlot(BaseModel):
    config: SlotConfig
    date: SlotDate

    @property
    def start_dt(self) -> datetime:
        return datetime.fromisoformat(self.date.start)


class FindVenue(BaseModel):
    slots: list[RawSlot] = []


class FindResults(BaseModel):
    venues: list[FindVenue] = []


class FindResponse(BaseModel):
    results: FindResults


class BookToken(BaseModel):
    value: str
    date_expires: str = ""


class PaymentMethod(BaseModel):
    id: int
    is_default: bool = False
    display: str = ""


class DetailsUser(BaseModel):
    payment_methods: list[PaymentMethod] = []


class DetailsResponse(BaseModel):
    book_token: BookToken
    user: DetailsUser = DetailsUser()


class BookResponse(BaseModel):
    model_config = ConfigDict(extra="allow")
    resy_token: str = ""


class SearchHitId(BaseModel):
    model_config = ConfigDict(extra="allow")
    resy: int | None = None


class SearchHit(BaseModel):
    model_config = ConfigDict(extra="allow")
    name: str = ""
    objectID: str | None = None
    id: SearchHitId | None = None

    @property
    def venue_id(self) -> int | None:
        if self.id is not None and self.id.resy is not None:
            return self.id.resy
        if self.objectID and self.objectID.isdigit():
            return int(self.objectID)
        return None


class SearchResults(BaseModel):
    hits: list[SearchHit] = []


class VenueSearchResponse(BaseModel):
    search: SearchResults
