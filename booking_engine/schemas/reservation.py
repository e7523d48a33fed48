"""
Pydantic schemas for time slot requests and reservation holds
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from booking_engine.schemas.common import WallClock


class TimeSlotRequest(BaseModel):
    """A client asking for one provider interval"""
    provider_id: str
    service_id: str
    requested_start_time: WallClock
    duration: Optional[int] = Field(None, description="Minutes; defaults to the service duration")
    client_id: str


class ReservationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    time_slot_id: str
    client_id: str
    provider_id: str
    service_id: str
    start_time: datetime
    end_time: datetime
    status: str
    reserved_at: datetime
    expires_at: datetime
    booking_id: Optional[str] = None


class ReservationConfirmRequest(BaseModel):
    payment_method: Optional[str] = Field(None, description="Charged only when the total is above zero")
    notes: Optional[str] = None


class ReservationConfirmation(BaseModel):
    success: bool = True
    reservation_id: str
    booking_id: str
    message: str = "Reservation confirmed successfully"


class ReservationStats(BaseModel):
    provider_id: Optional[str] = None
    total_reservations: int = 0
    active_reservations: int = 0      # pending and not yet expired
    expired_reservations: int = 0     # ran out, swept or not
    confirmed_reservations: int = 0
    cancelled_reservations: int = 0   # released by the client before expiry
