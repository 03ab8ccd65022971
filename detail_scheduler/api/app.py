"""
HTTP surface for availability, booking and the internal sweep triggers.

Upstream failures map to 503 with a fixed user-facing message, slot
conflicts to 409 and unbookable starts to 422. Every response carries
the request's correlation id in ``X-Request-ID``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from detail_scheduler.bootstrap import AppContainer
from detail_scheduler.errors import (
    AVAILABILITY_UNAVAILABLE_MESSAGE,
    BOOKING_UNAVAILABLE_MESSAGE,
    SLOT_TAKEN_MESSAGE,
    ConflictError,
    InvalidBookingRequest,
    UpstreamUnavailable,
)
from detail_scheduler.logging_context import (
    REMINDER_PREFIX,
    REQUEST_PREFIX,
    get_request_logger,
    new_request_id,
    set_request_id,
)
from detail_scheduler.schemas.booking_schema import (
    AvailabilityResponse,
    BookingRequest,
    BookingResponse,
    ErrorResponse,
    SweepResponse,
)

logger = get_request_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(container: AppContainer) -> FastAPI:
    """Build the FastAPI application around an already wired container."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Shutting down; closing upstream clients")
        container.close()

    app = FastAPI(title="Detail Scheduler", lifespan=lifespan)
    app.state.container = container

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER)
        if request_id:
            set_request_id(request_id)
        else:
            request_id = new_request_id(REQUEST_PREFIX)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.get("/availability", response_model=AvailabilityResponse)
    def availability(service: Optional[str] = Query(default=None)):
        if not service or not service.strip():
            return JSONResponse(
                status_code=400,
                content=AvailabilityResponse(
                    success=False, service="", message="A service name is required."
                ).model_dump(),
            )

        name = container.durations.canonical_name(service)
        duration = container.slot_generator.duration_for(name)
        try:
            slots = container.slot_generator.generate(name)
        except UpstreamUnavailable as exc:
            logger.error("Availability for %r failed: %s", name, exc)
            return JSONResponse(
                status_code=503,
                content=AvailabilityResponse(
                    success=False,
                    service=name,
                    duration_minutes=duration,
                    slots=[],
                    message=AVAILABILITY_UNAVAILABLE_MESSAGE,
                ).model_dump(),
            )

        return AvailabilityResponse(
            success=True,
            service=name,
            duration_minutes=duration,
            slots=[slot.isoformat() for slot in slots],
            message=f"{len(slots)} available start times",
        )

    @app.post("/booking", response_model=BookingResponse)
    def booking(body: BookingRequest):
        service = container.durations.canonical_name(body.service)
        try:
            appointment = container.booking.commit(service, body.start, body.customer)
        except ConflictError as exc:
            return _booking_failure(409, SLOT_TAKEN_MESSAGE, exc)
        except InvalidBookingRequest as exc:
            return _booking_failure(422, str(exc), exc)
        except UpstreamUnavailable as exc:
            logger.error("Booking for %s at %s failed: %s", service, body.start.isoformat(), exc)
            return _booking_failure(503, BOOKING_UNAVAILABLE_MESSAGE, exc)

        return BookingResponse(
            success=True,
            message=f"Your {appointment.service} is booked.",
            appointment_id=appointment.id,
            confirmed_start=appointment.start,
        )

    @app.post("/internal/weather-sweep", response_model=SweepResponse)
    def weather_sweep():
        try:
            return SweepResponse(**container.alert_scheduler.run_weather_sweep())
        except UpstreamUnavailable as exc:
            return JSONResponse(
                status_code=503,
                content=ErrorResponse(
                    message="Weather sweep could not read the calendar.", error=str(exc)
                ).model_dump(),
            )

    @app.post("/internal/reminders/run")
    def run_reminders():
        new_request_id(REMINDER_PREFIX)
        return {"sent": container.notifications.run_due()}

    return app


def _booking_failure(status_code: int, message: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error=type(exc).__name__).model_dump(),
    )
