# booking_engine/api/v1/bookings.py
"""
Booking API Endpoints
Validation, creation (single and recurring), listings and status changes
"""
from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from booking_engine.api.dependencies import get_booking_lifecycle, get_booking_validator
from booking_engine.config.database import get_db
from booking_engine.models.booking import BookingStatus, BookingType
from booking_engine.schemas.booking import (
    BookingOut, BookingPage, BookingRequest, BookingStatusUpdate, BookingValidation, RecurringBookingResult,
    RescheduleRequest, SeriesCancelRequest
)
from booking_engine.services.booking.booking_lifecycle import BookingLifecycle, booking_to_out
from booking_engine.services.booking.booking_query_service import BookingQueryService
from booking_engine.services.booking.booking_validator import BookingValidator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/validate", response_model=BookingValidation)
def validate_booking(
        request: BookingRequest,
        validator: BookingValidator = Depends(get_booking_validator)
):
    """Side-effect free check: conflicts, price and errors"""
    return validator.validate(request)


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking(
        request: BookingRequest,
        lifecycle: BookingLifecycle = Depends(get_booking_lifecycle)
):
    return booking_to_out(lifecycle.create_booking(request))


@router.post("/recurring", response_model=RecurringBookingResult, status_code=status.HTTP_201_CREATED)
def create_recurring_booking(
        request: BookingRequest,
        lifecycle: BookingLifecycle = Depends(get_booking_lifecycle)
):
    """Creates every bookable occurrence and lists the ones that were skipped"""
    parent, created, failed = lifecycle.create_recurring(request)
    return RecurringBookingResult(
        parent=booking_to_out(parent),
        created=[booking_to_out(b) for b in created],
        failed=failed,
    )


@router.get("", response_model=BookingPage)
def list_bookings(
        provider_id: Optional[str] = Query(None),
        client_id: Optional[str] = Query(None),
        statuses: Optional[List[BookingStatus]] = Query(None, alias="status", description="Repeat to match several"),
        booking_types: Optional[List[BookingType]] = Query(None, alias="booking_type"),
        date_from: Optional[date] = Query(None, description="Scheduled on or after this provider-local date"),
        date_to: Optional[date] = Query(None, description="Scheduled on or before this provider-local date"),
        include_series_parents: bool = Query(False),
        skip: int = Query(0, ge=0),
        limit: int = Query(50, ge=1, le=200),
        db: Session = Depends(get_db)
):
    return BookingQueryService.list_bookings(
        db,
        provider_id=provider_id,
        client_id=client_id,
        statuses=[s.value for s in statuses] if statuses else None,
        booking_types=[t.value for t in booking_types] if booking_types else None,
        date_from=date_from,
        date_to=date_to,
        include_series_parents=include_series_parents,
        skip=skip,
        limit=limit,
    )


@router.get("/{booking_id}", response_model=BookingOut)
def get_booking(booking_id: str, lifecycle: BookingLifecycle = Depends(get_booking_lifecycle)):
    return booking_to_out(lifecycle.get_booking(booking_id))


@router.patch("/{booking_id}/status", response_model=BookingOut)
def update_status(
        booking_id: str,
        data: BookingStatusUpdate,
        lifecycle: BookingLifecycle = Depends(get_booking_lifecycle)
):
    booking = lifecycle.transition(booking_id, data.status, reason=data.reason, actor=data.actor)
    return booking_to_out(booking)


@router.patch("/{booking_id}/reschedule", response_model=BookingOut)
def reschedule_booking(
        booking_id: str,
        data: RescheduleRequest,
        lifecycle: BookingLifecycle = Depends(get_booking_lifecycle)
):
    """Returns the new booking; the old one is kept as rescheduled"""
    return booking_to_out(lifecycle.reschedule(booking_id, data.new_date_time, actor=data.actor))


@router.post("/{booking_id}/series/cancel", response_model=BookingOut)
def cancel_series(
        booking_id: str,
        data: SeriesCancelRequest,
        lifecycle: BookingLifecycle = Depends(get_booking_lifecycle)
):
    parent = lifecycle.cancel_series(booking_id, future_only=data.future_only, reason=data.reason, actor=data.actor)
    return booking_to_out(parent)


@router.get("/{booking_id}/series", response_model=List[BookingOut])
def get_series(booking_id: str, db: Session = Depends(get_db)):
    """Every occurrence of the series, given the parent or any occurrence"""
    return [booking_to_out(b) for b in BookingQueryService.get_series(db, booking_id)]
