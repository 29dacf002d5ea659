"""Reservation intake routes: submit a drop request, list pending ones.

Validation failures come back as HTTP 200 with success=false and the
rejection message; nothing is stored in that case.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from dropsnag.errors import SubmissionError
from dropsnag.registry import SchedulingRegistry
from dropsnag.web.schemas import (
    PendingReservationsResponse,
    SubmitReservationRequest,
    SubmitReservationResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _registry(request: Request) -> SchedulingRegistry:
    return request.app.state.registry


@router.get(
    "/pendingReservations",
    response_model=PendingReservationsResponse,
    response_model_exclude_none=True,
)
async def pending_reservations(request: Request):
    return _registry(request).list_pending()


@router.post(
    "/submitReservation",
    response_model=SubmitReservationResponse,
    response_model_exclude_none=True,
)
async def submit_reservation(body: SubmitReservationRequest, request: Request):
    try:
        await _registry(request).submit(body)
    except SubmissionError as e:
        logger.info("Rejected submission for %s: %s", body.name, e)
        return SubmitReservationResponse(success=False, error=str(e))
    return SubmitReservationResponse(success=True)
