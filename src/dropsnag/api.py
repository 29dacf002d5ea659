"""Async Resy API client using httpx with HTTP/2 and connection pooling.

Covers the four calls an acquisition needs:
- venue search (resolve a restaurant name to a venue_id)
- /4/find (list slots for a date + party size)
- /3/details (short-lived book_token + payment method for a slot)
- /3/book (commit)

Non-2xx responses are logged and reported as None/False. Transport errors,
timeouts and malformed payloads raise VenueServiceError so callers can retry.
"""

from __future__ import annotations

import json
import logging
from datetime import date

import httpx
import orjson
from pydantic import ValidationError

from dropsnag.errors import VenueServiceError
from dropsnag.models import (
    BookingDetail,
    BookResponse,
    DetailsResponse,
    FindResponse,
    Restaurant,
    Slot,
    VenueSearchResponse,
)

logger = logging.getLogger(__name__)

_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)
_WIDGET_ORIGIN = "https://widgets.resy.com"

# Venue search is geo-scoped; default to lower Manhattan.
_SEARCH_GEO = {"latitude": 40.712941, "longitude": -74.006393, "radius": 35420}


def _parse(content: bytes, model):
    """orjson + Pydantic validation. Raises VenueServiceError on malformed payloads."""
    try:
        return model.model_validate(orjson.loads(content))
    except (orjson.JSONDecodeError, ValidationError) as e:
        raise VenueServiceError(f"Malformed {model.__name__}: {e}") from e


class ResyApiClient:
    """
    Async HTTP client for the Resy API.

    Use as an async context manager to get connection pooling and keep-alive:

        async with ResyApiClient(api_key="...", auth_token="...") as client:
            slots = await client.find_slots(venue_id=123, day=date(2026, 3, 26), party_size=2)
    """

    BASE_URL = "https://api.resy.com"

    def __init__(
        self,
        api_key: str,
        auth_token: str = "",
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self._api_key = api_key
        self._auth_token = auth_token
        self._timeout = timeout or httpx.Timeout(10.0, connect=5.0)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> ResyApiClient:
        self._client = httpx.AsyncClient(
            http2=True,
            base_url=self.BASE_URL,
            headers=self._base_headers(),
            timeout=self._timeout,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _base_headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f'ResyAPI api_key="{self._api_key}"',
            "User-Agent": _UA,
            "Accept": "application/json, text/plain, */*",
            "Origin": _WIDGET_ORIGIN,
            "Referer": _WIDGET_ORIGIN,
            "X-Origin": _WIDGET_ORIGIN,
        }
        if self._auth_token:
            headers["X-Resy-Auth-Token"] = self._auth_token
            headers["X-Resy-Universal-Auth"] = self._auth_token
        return headers

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        assert self._client is not None, "use ResyApiClient as an async context manager"
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise VenueServiceError(f"{method} {url} failed: {e!r}") from e

    async def find_restaurant(self, name: str, party_size: int) -> Restaurant | None:
        """POST /3/venuesearch/search: first hit wins. None if nothing matched."""
        logger.debug("Finding restaurant: %s", name)
        resp = await self._send(
            "POST",
            "/3/venuesearch/search",
            json={
                "availability": True,
                "geo": _SEARCH_GEO,
                "order_by": "availability",
                "page": 1,
                "per_page": 20,
                "query": name,
                "slot_filter": {
                    "day": date.today().isoformat(),
                    "party_size": party_size,
                },
                "types": ["venue"],
            },
        )
        if not resp.is_success:
            logger.warning(
                "Resy search returned %d for query '%s'", resp.status_code, name
            )
            return None

        parsed = _parse(resp.content, VenueSearchResponse)
        for hit in parsed.search.hits:
            venue_id = hit.venue_id
            if venue_id is not None:
                return Restaurant(venue_id=venue_id, name=hit.name or name)
        return None

    async def find_slots(
        self, venue_id: int, day: date, party_size: int
    ) -> list[Slot] | None:
        """GET /4/find: available slots for a venue+date+party, None on error status."""
        logger.debug("Finding slots for venue %d on %s", venue_id, day)
        resp = await self._send(
            "GET",
            "/4/find",
            params={
                "venue_id": venue_id,
                "day": day.isoformat(),
                "party_size": party_size,
                "lat": "0",
                "long": "0",
            },
        )
        if not resp.is_success:
            logger.warning(
                "Invalid /4/find response (%d): %s", resp.status_code, resp.text[:200]
            )
            return None

        parsed = _parse(resp.content, FindResponse)
        slots: list[Slot] = []
        for venue in parsed.results.venues:
            for raw in venue.slots:
                try:
                    start = raw.start_dt
                except (ValueError, TypeError):
                    logger.debug("Skipping slot with bad start %r", raw.date.start)
                    continue
                slots.append(
                    Slot(
                        date_time=start,
                        table_type=raw.config.type,
                        token=raw.config.token,
                        party_size=party_size,
                    )
                )
        return slots

    async def get_booking_detail(self, slot: Slot) -> BookingDetail | None:
        """GET /3/details: short-lived book_token plus the account's payment method."""
        logger.debug("Fetching booking detail for %s", slot.date_time)
        resp = await self._send(
            "GET",
            "/3/details",
            params={
                "commit": 1,
                "config_id": slot.token,
                "day": slot.date_time.date().isoformat(),
                "party_size": slot.party_size,
            },
        )
        if not resp.is_success:
            logger.warning(
                "Invalid /3/details response (%d): %s", resp.status_code, resp.text[:200]
            )
            return None

        parsed = _parse(resp.content, DetailsResponse)
        if not parsed.user.payment_methods:
            logger.warning("No payment methods on account, cannot book")
            return None
        pm = next(
            (p for p in parsed.user.payment_methods if p.is_default),
            parsed.user.payment_methods[0],
        )
        return BookingDetail(book_token=parsed.book_token.value, payment_method_id=pm.id)

    async def book(self, detail: BookingDetail) -> bool:
        """POST /3/book: True when Resy confirms with a resy_token."""
        logger.debug("Booking with payment method %d", detail.payment_method_id)
        resp = await self._send(
            "POST",
            "/3/book",
            data={
                "book_token": detail.book_token,
                "struct_payment_method": json.dumps({"id": detail.payment_method_id}),
                "source_id": "resy.com-venue-details",
            },
        )
        if not resp.is_success:
            logger.warning(
                "Error while booking (%d): %s", resp.status_code, resp.text[:200]
            )
            return False

        parsed = _parse(resp.content, BookResponse)
        return bool(parsed.resy_token)
