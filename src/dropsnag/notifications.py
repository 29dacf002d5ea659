"""Outbound notifications: message templates plus console and webhook channels.

Every channel is fire-and-forget. A delivery failure is logged and never
propagates to the registry or the acquisition engine.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import sys
from datetime import date, datetime

import httpx
from rich.console import Console
from rich.panel import Panel

from dropsnag.models import PendingRequest, Slot

logger = logging.getLogger(__name__)

console = Console()

DATE_FORMAT = "%m/%d/%y"
TIME_FORMAT = "%H:%M"


# --- Message templates ---


def acknowledgment_message(
    request: PendingRequest, eligible_at: datetime, arm_at: datetime
) -> str:
    return (
        f"Hey, {request.submitted_by}. We've got your request for a reservation at "
        f"{request.restaurant_name}. The earliest date for a reservation is "
        f"{eligible_at.strftime(DATE_FORMAT)}. We'll attempt to get the reservation on "
        f"{arm_at.strftime(DATE_FORMAT)} at {arm_at.strftime(TIME_FORMAT)} {request.timezone}."
    )


def success_message(request: PendingRequest, target_date: date, slot: Slot) -> str:
    return (
        f"Hey, {request.submitted_by}, we did it! We found a reservation for "
        f"{request.restaurant_name}. Your reservation is on {target_date.strftime(DATE_FORMAT)} "
        f"at {slot.date_time.strftime(TIME_FORMAT)} with a table type of "
        f"{slot.table_type or 'any'} for {slot.party_size} people."
    )


def failure_message(request: PendingRequest, target_date: date) -> str:
    return (
        f"Sorry, {request.submitted_by}! We were unable to secure a reservation for "
        f"{request.restaurant_name} on {target_date.strftime(DATE_FORMAT)} within the "
        f"attempt window. You can submit the request again."
    )


# --- Channels ---


class Notifier:
    """Delivers a message to a recipient. Subclasses must never raise from send()."""

    def send(self, message: str, recipient: str | None = None) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Flush pending deliveries. No-op by default."""


class ConsoleNotifier(Notifier):
    """Rich console output plus a macOS notification when available."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def send(self, message: str, recipient: str | None = None) -> None:
        title = f"dropsnag → {recipient}" if recipient else "dropsnag"
        try:
            console.print(Panel(message, title=title, border_style="cyan"))
        except Exception:
            logger.exception("Console notification failed")
        if sys.platform != "darwin":
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _macos_notify(title, message)
            return
        # osascript can take seconds; keep it off the event loop.
        task = loop.create_task(asyncio.to_thread(_macos_notify, title, message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def aclose(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


class WebhookNotifier(Notifier):
    """POSTs {"to": recipient, "message": ...} to a webhook on a background task."""

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self.url = url
        self._timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    def send(self, message: str, recipient: str | None = None) -> None:
        payload = {"to": recipient, "message": message}
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deliver_sync(payload)
            return
        task = loop.create_task(self._deliver(payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, payload: dict) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self.url, json=payload)
                resp.raise_for_status()
            logger.info("Notification delivered to %s", payload["to"] or "default recipient")
        except Exception as e:
            logger.warning("Notification delivery failed: %s", e)

    def _deliver_sync(self, payload: dict) -> None:
        try:
            resp = httpx.post(self.url, json=payload, timeout=self._timeout)
            resp.raise_for_status()
        except Exception as e:
            logger.warning("Notification delivery failed: %s", e)

    async def aclose(self) -> None:
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


def build_notifier(webhook_url: str | None) -> Notifier:
    if webhook_url:
        return WebhookNotifier(webhook_url)
    return ConsoleNotifier()


_OSASCRIPT = (
    "on run argv",
    "display notification (item 1 of argv) with title (item 2 of argv)",
    "end run",
)


def _macos_notify(title: str, message: str) -> None:
    """Send a macOS notification via osascript.

    Message and title travel as script arguments, never as script source,
    since they carry submitter-provided text.
    """
    args = ["osascript"]
    for line in _OSASCRIPT:
        args += ["-e", line]
    args += [message, title]
    try:
        subprocess.run(args, capture_output=True, timeout=5)
    except Exception:
        logger.debug("macOS notification failed", exc_info=True)
