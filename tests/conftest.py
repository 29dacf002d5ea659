"""Shared test fixtures."""

from datetime import datetime, time

import pytest

from dropsnag.models import PendingRequest, RequestedTime, Slot, Weekday
from dropsnag.notifications import Notifier


class RecordingNotifier(Notifier):
    """Collects (message, recipient) pairs instead of delivering them."""

    def __init__(self):
        self.sent = []

    def send(self, message, recipient=None):
        self.sent.append((message, recipient))


class FakeScheduler:
    """Records schedule() calls without arming anything."""

    def __init__(self):
        self.calls = []

    def schedule(self, at, task, job_id=None):
        self.calls.append((at, task, job_id))
        return job_id


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def pending_request():
    return PendingRequest(
        restaurant_name="4 Charles Prime Rib",
        venue_id=834,
        post_time=time(9, 0),
        post_days_offset=20,
        timezone="America/New_York",
        party_size=2,
        weekday=Weekday.WEDNESDAY,
        ranked_times=(
            RequestedTime(time=time(19, 0), table_type="Dining Room"),
            RequestedTime(time=time(19, 30)),
        ),
        submitted_by="Sam",
        notification_target="+15555550100",
    )


def make_slot(hour, minute=0, table_type="Dining Room", token=None, day="2026-11-11"):
    start = datetime.fromisoformat(f"{day} {hour:02d}:{minute:02d}:00")
    return Slot(
        date_time=start,
        table_type=table_type,
        token=token or f"config_{hour:02d}{minute:02d}_{table_type.lower().replace(' ', '_')}",
        party_size=2,
    )


@pytest.fixture
def slot_factory():
    return make_slot


@pytest.fixture
def submission_body():
    """A realistic submitReservation JSON body."""
    return {
        "name": "4 Charles",
        "reservationPostTime": "09:00",
        "reservationPostDaysOffset": 20,
        "timeZoneString": "America/New_York",
        "numSeats": 2,
        "weekdayString": "wednesday",
        "requestedTimes": [
            {"time": "19:00", "tableType": "Dining Room"},
            {"time": "19:30"},
            {"time": "21:15", "tableType": "Bar"},
        ],
        "notificationNumber": "+15555550100",
        "submittedBy": "Sam",
    }


@pytest.fixture
def sample_find_response():
    """A realistic /4/find API response."""
    return {
        "results": {
            "venues": [
                {
                    "slots": [
                        {
                            "config": {
                                "id": "slot-1",
                                "type": "Dining Room",
                                "token": "config_token_1",
                            },
                            "date": {
                                "start": "2026-11-11 18:30:00",
                                "end": "2026-11-11 20:30:00",
                            },
                        },
                        {
                            "config": {
                                "id": "slot-2",
                                "type": "Dining Room",
                                "token": "config_token_2",
                            },
                            "date": {
                                "start": "2026-11-11 19:00:00",
                                "end": "2026-11-11 21:00:00",
                            },
                        },
                        {
                            "config": {
                                "id": "slot-3",
                                "type": "Bar",
                                "token": "config_token_3",
                            },
                            "date": {
                                "start": "2026-11-11 19:00:00",
                                "end": "2026-11-11 21:00:00",
                            },
                        },
                    ]
                }
            ]
        }
    }


@pytest.fixture
def sample_search_response():
    """A realistic /3/venuesearch/search API response."""
    return {
        "search": {
            "hits": [
                {
                    "name": "4 Charles Prime Rib",
                    "objectID": "834",
                    "id": {"resy": 834},
                    "locality": "New York",
                },
                {
                    "name": "Charles Pan-Fried Chicken",
                    "objectID": "9012",
                    "id": {"resy": 9012},
                },
            ]
        }
    }


@pytest.fixture
def sample_details_response():
    """A realistic /3/details API response."""
    return {
        "book_token": {
            "value": "book_token_abc123",
            "date_expires": "2026-10-22 09:00:30",
        },
        "user": {
            "payment_methods": [
                {"id": 67890, "is_default": True, "display": "Visa ending in 1234"}
            ]
        },
    }


@pytest.fixture
def sample_book_response():
    """A realistic /3/book API response."""
    return {
        "resy_token": "resy_conf_xyz789",
    }
