# booking_engine/api/v1/reservations.py
"""
Reservation API Endpoints
Temporary holds on a slot while the client checks out
"""
from typing import Optional
import logging

from fastapi import APIRouter, Body, Depends, status

from booking_engine.api.dependencies import get_reservation_manager
from booking_engine.schemas.reservation import (
    ReservationConfirmation, ReservationConfirmRequest, ReservationOut, ReservationStats, TimeSlotRequest
)
from booking_engine.services.reservation.reservation_service import ReservationManager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
def reserve_slot(
        request: TimeSlotRequest,
        manager: ReservationManager = Depends(get_reservation_manager)
):
    """Hold a slot; 409 with alternatives when it is taken"""
    return manager.reserve(request)


@router.post("/cleanup")
def cleanup_expired(manager: ReservationManager = Depends(get_reservation_manager)):
    """Release every hold whose expiry has passed"""
    expired = manager.sweep_expired()
    return {"success": True, "expired": expired}


@router.get("/stats", response_model=ReservationStats)
def reservation_stats(
        provider_id: Optional[str] = None,
        manager: ReservationManager = Depends(get_reservation_manager)
):
    return manager.stats(provider_id)


@router.get("/{reservation_id}", response_model=ReservationOut)
def get_reservation(reservation_id: str, manager: ReservationManager = Depends(get_reservation_manager)):
    return manager.get(reservation_id)


@router.post("/{reservation_id}/confirm", response_model=ReservationConfirmation)
def confirm_reservation(
        reservation_id: str,
        data: Optional[ReservationConfirmRequest] = Body(None),
        manager: ReservationManager = Depends(get_reservation_manager)
):
    """Turn the hold into a booking; 410 once the hold has expired"""
    data = data or ReservationConfirmRequest()
    booking_id = manager.confirm(reservation_id, payment_method=data.payment_method, notes=data.notes)
    return ReservationConfirmation(reservation_id=reservation_id, booking_id=booking_id)


@router.delete("/{reservation_id}")
def cancel_reservation(reservation_id: str, manager: ReservationManager = Depends(get_reservation_manager)):
    reservation = manager.cancel(reservation_id)
    return {"success": True, "reservation_id": reservation.id, "status": reservation.status}
