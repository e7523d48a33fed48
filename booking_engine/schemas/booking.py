"""
Pydantic schemas for booking requests, validation results and series
"""
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from booking_engine.models.booking import BookingStatus, BookingType
from booking_engine.schemas.availability import BookingConflict
from booking_engine.schemas.common import WallClock


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class RecurrenceConfig(BaseModel):
    type: RecurrenceType
    interval: int = Field(1, description="Every N days/weeks/months")
    days_of_week: Optional[List[int]] = Field(None, description="0 = Sunday ... 6 = Saturday")
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None


class PackageConfig(BaseModel):
    package_id: str
    total_sessions: int
    sessions_used: int
    expiry_date: Optional[datetime] = None
    transferrable: bool = False


class BookingRequest(BaseModel):
    client_id: str
    provider_id: str
    service_ids: List[str] = Field(default_factory=list)
    add_on_ids: List[str] = Field(default_factory=list)
    requested_date_time: WallClock
    duration: Optional[int] = Field(None, description="Total minutes; defaults to services + add-ons")
    notes: Optional[str] = None
    recurrence_config: Optional[RecurrenceConfig] = None
    package_id: Optional[str] = None
    payment_method: Optional[str] = None


class ServiceLine(BaseModel):
    service_id: str
    service_name: str
    price: Decimal
    duration: int


class AddOnLine(BaseModel):
    add_on_id: str
    add_on_name: str
    price: Decimal


class PriceBreakdown(BaseModel):
    services: List[ServiceLine] = Field(default_factory=list)
    add_ons: List[AddOnLine] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    taxes: Decimal = Decimal("0.00")
    fees: Decimal = Decimal("0.00")
    discounts: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    occurrences: int = 1
    per_occurrence_total: Decimal = Decimal("0.00")


class BookingValidation(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    conflicts: List[BookingConflict] = Field(default_factory=list)
    estimated_total: Decimal = Decimal("0.00")
    breakdown: PriceBreakdown = Field(default_factory=PriceBreakdown)


class BookingOut(BaseModel):
    id: str
    client_id: str
    provider_id: str
    service_ids: List[str]
    add_on_ids: List[str]
    booking_type: BookingType
    status: BookingStatus
    scheduled_date_time: datetime
    duration: int
    notes: Optional[str] = None
    recurrence_config: Optional[RecurrenceConfig] = None
    package_config: Optional[PackageConfig] = None
    parent_booking_id: Optional[str] = None
    child_booking_ids: List[str] = Field(default_factory=list)
    is_series_parent: bool = False
    rescheduled_from_id: Optional[str] = None
    rescheduled_to_id: Optional[str] = None
    payment_status: str
    total_amount: Decimal
    paid_amount: Decimal
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    no_show_at: Optional[datetime] = None
    rescheduled_at: Optional[datetime] = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[str] = None
    actor: str = Field("client", description="client, provider or system")


class RescheduleRequest(BaseModel):
    new_date_time: WallClock
    actor: str = "client"


class FailedOccurrence(BaseModel):
    scheduled_date_time: datetime
    conflicts: List[BookingConflict]


class RecurringBookingResult(BaseModel):
    parent: BookingOut
    created: List[BookingOut]
    failed: List[FailedOccurrence] = Field(default_factory=list)


class SeriesCancelRequest(BaseModel):
    reason: Optional[str] = None
    future_only: bool = True
    actor: str = "client"


class BookingPage(BaseModel):
    """One page of a filtered booking listing"""
    bookings: List[BookingOut]
    total: int
    skip: int = 0
    limit: int = 50
    has_more: bool = False
