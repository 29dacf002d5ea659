"""Tests for the async Resy API client."""

import json
from datetime import date, datetime
from urllib.parse import parse_qs

import httpx
import pytest
import respx

from dropsnag.api import ResyApiClient
from dropsnag.errors import VenueServiceError
from dropsnag.models import BookingDetail, Slot

BASE = "https://api.resy.com"


def _slot() -> Slot:
    return Slot(
        date_time=datetime(2026, 11, 11, 19, 0),
        table_type="Dining Room",
        token="config_token_2",
        party_size=2,
    )


@pytest.mark.asyncio
class TestResyApiClient:
    async def test_headers_carry_key_and_token(self, sample_find_response):
        with respx.mock:
            route = respx.get(f"{BASE}/4/find").mock(
                return_value=httpx.Response(200, json=sample_find_response)
            )

            async with ResyApiClient(api_key="key123", auth_token="tok456") as client:
                await client.find_slots(834, date(2026, 11, 11), 2)

            sent = route.calls.last.request
            assert sent.headers["Authorization"] == 'ResyAPI api_key="key123"'
            assert sent.headers["X-Resy-Auth-Token"] == "tok456"
            assert sent.headers["Origin"] == "https://widgets.resy.com"

    async def test_find_restaurant_first_hit(self, sample_search_response):
        with respx.mock:
            route = respx.post(f"{BASE}/3/venuesearch/search").mock(
                return_value=httpx.Response(200, json=sample_search_response)
            )

            async with ResyApiClient(api_key="k") as client:
                restaurant = await client.find_restaurant("4 Charles", 2)

            assert restaurant is not None
            assert restaurant.venue_id == 834
            assert restaurant.name == "4 Charles Prime Rib"
            body = json.loads(route.calls.last.request.content)
            assert body["query"] == "4 Charles"
            assert body["slot_filter"]["party_size"] == 2

    async def test_find_restaurant_object_id_fallback(self):
        with respx.mock:
            respx.post(f"{BASE}/3/venuesearch/search").mock(
                return_value=httpx.Response(
                    200, json={"search": {"hits": [{"name": "Misi", "objectID": "3015"}]}}
                )
            )

            async with ResyApiClient(api_key="k") as client:
                restaurant = await client.find_restaurant("misi", 4)

            assert restaurant.venue_id == 3015

    async def test_find_restaurant_no_hits(self):
        with respx.mock:
            respx.post(f"{BASE}/3/venuesearch/search").mock(
                return_value=httpx.Response(200, json={"search": {"hits": []}})
            )

            async with ResyApiClient(api_key="k") as client:
                assert await client.find_restaurant("Nowhere", 2) is None

    async def test_find_restaurant_error_status(self):
        with respx.mock:
            respx.post(f"{BASE}/3/venuesearch/search").mock(
                return_value=httpx.Response(500, text="boom")
            )

            async with ResyApiClient(api_key="k") as client:
                assert await client.find_restaurant("4 Charles", 2) is None

    async def test_find_slots(self, sample_find_response):
        with respx.mock:
            route = respx.get(f"{BASE}/4/find").mock(
                return_value=httpx.Response(200, json=sample_find_response)
            )

            async with ResyApiClient(api_key="k") as client:
                slots = await client.find_slots(834, date(2026, 11, 11), 2)

            assert len(slots) == 3
            assert slots[1].date_time == datetime(2026, 11, 11, 19, 0)
            assert slots[2].table_type == "Bar"
            assert slots[2].token == "config_token_3"
            assert all(s.party_size == 2 for s in slots)
            params = route.calls.last.request.url.params
            assert params["venue_id"] == "834"
            assert params["day"] == "2026-11-11"
            assert params["party_size"] == "2"

    async def test_find_slots_empty(self):
        with respx.mock:
            respx.get(f"{BASE}/4/find").mock(
                return_value=httpx.Response(200, json={"results": {"venues": []}})
            )

            async with ResyApiClient(api_key="k") as client:
                assert await client.find_slots(834, date(2026, 11, 11), 2) == []

    async def test_find_slots_error_status_is_none(self):
        with respx.mock:
            respx.get(f"{BASE}/4/find").mock(return_value=httpx.Response(429))

            async with ResyApiClient(api_key="k") as client:
                assert await client.find_slots(834, date(2026, 11, 11), 2) is None

    async def test_find_slots_malformed_raises(self):
        with respx.mock:
            respx.get(f"{BASE}/4/find").mock(
                return_value=httpx.Response(200, content=b"<html>not json</html>")
            )

            async with ResyApiClient(api_key="k") as client:
                with pytest.raises(VenueServiceError):
                    await client.find_slots(834, date(2026, 11, 11), 2)

    async def test_timeout_raises_venue_service_error(self):
        with respx.mock:
            respx.get(f"{BASE}/4/find").mock(side_effect=httpx.ReadTimeout("slow"))

            async with ResyApiClient(api_key="k") as client:
                with pytest.raises(VenueServiceError):
                    await client.find_slots(834, date(2026, 11, 11), 2)

    async def test_get_booking_detail(self, sample_details_response):
        with respx.mock:
            route = respx.get(f"{BASE}/3/details").mock(
                return_value=httpx.Response(200, json=sample_details_response)
            )

            async with ResyApiClient(api_key="k") as client:
                detail = await client.get_booking_detail(_slot())

            assert detail == BookingDetail(
                book_token="book_token_abc123", payment_method_id=67890
            )
            params = route.calls.last.request.url.params
            assert params["config_id"] == "config_token_2"
            assert params["day"] == "2026-11-11"
            assert params["commit"] == "1"

    async def test_get_booking_detail_without_payment_method(self):
        with respx.mock:
            respx.get(f"{BASE}/3/details").mock(
                return_value=httpx.Response(
                    200, json={"book_token": {"value": "t"}, "user": {"payment_methods": []}}
                )
            )

            async with ResyApiClient(api_key="k") as client:
                assert await client.get_booking_detail(_slot()) is None

    async def test_get_booking_detail_error_status(self):
        with respx.mock:
            respx.get(f"{BASE}/3/details").mock(return_value=httpx.Response(412))

            async with ResyApiClient(api_key="k") as client:
                assert await client.get_booking_detail(_slot()) is None

    async def test_book_success(self, sample_book_response):
        with respx.mock:
            route = respx.post(f"{BASE}/3/book").mock(
                return_value=httpx.Response(201, json=sample_book_response)
            )

            async with ResyApiClient(api_key="k") as client:
                ok = await client.book(
                    BookingDetail(book_token="book_token_abc123", payment_method_id=67890)
                )

            assert ok is True
            form = parse_qs(route.calls.last.request.content.decode())
            assert form["book_token"] == ["book_token_abc123"]
            assert form["struct_payment_method"] == ['{"id": 67890}']

    async def test_book_rejected(self):
        with respx.mock:
            respx.post(f"{BASE}/3/book").mock(
                return_value=httpx.Response(412, json={"message": "Slot no longer available"})
            )

            async with ResyApiClient(api_key="k") as client:
                ok = await client.book(BookingDetail(book_token="t", payment_method_id=1))

            assert ok is False

    async def test_book_empty_token_is_failure(self):
        with respx.mock:
            respx.post(f"{BASE}/3/book").mock(
                return_value=httpx.Response(200, json={"resy_token": ""})
            )

            async with ResyApiClient(api_key="k") as client:
                ok = await client.book(BookingDetail(book_token="t", payment_method_id=1))

            assert ok is False
