# booking_engine/api/v1/availability.py
"""
Availability API Endpoints
Projected slots and conflict checks for one provider
"""
from datetime import date
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Query

from booking_engine.api.dependencies import get_conflict_detector, get_slot_generator
from booking_engine.schemas.availability import ConflictCheckResult, TimeSlotAvailability
from booking_engine.schemas.reservation import TimeSlotRequest
from booking_engine.services.availability.conflict_detector import ConflictDetector
from booking_engine.services.availability.slot_generator import SlotGenerator

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=List[TimeSlotAvailability])
def get_availability(
        provider_id: str,
        date_from: date,
        date_to: date,
        service_id: Optional[str] = None,
        duration: Optional[int] = Query(None, description="Minutes; defaults to the service duration"),
        generator: SlotGenerator = Depends(get_slot_generator)
):
    """Slots per date between date_from and date_to (inclusive)"""
    return generator.get_availability(provider_id, date_from, date_to, service_id, duration)


@router.post("/check-conflicts", response_model=ConflictCheckResult)
def check_conflicts(
        request: TimeSlotRequest,
        detector: ConflictDetector = Depends(get_conflict_detector)
):
    """Dry-run conflict detection, with suggested alternatives"""
    conflicts = detector.check_request(request)
    return ConflictCheckResult(has_conflicts=bool(conflicts), conflicts=conflicts)
