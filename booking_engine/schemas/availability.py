"""
Pydantic schemas for availability rules, projected time slots and conflicts
"""
from datetime import date, datetime, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from booking_engine.schemas.common import WallClock


# ============================================================================
# Provider calendar inputs
# ============================================================================

class BreakIntervalIn(BaseModel):
    start_time: time
    end_time: time
    name: str = Field(default="Break", max_length=100)
    is_recurring: bool = True


class AvailabilityRuleIn(BaseModel):
    """One weekly working window. day_of_week uses 0 = Sunday."""
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: time
    end_time: time
    is_active: bool = True
    effective_from: date
    effective_to: Optional[date] = None
    timezone: str = Field(default="UTC", max_length=50)
    break_intervals: List[BreakIntervalIn] = Field(default_factory=list)


class BreakIntervalOut(BreakIntervalIn):
    model_config = ConfigDict(from_attributes=True)

    id: str


class AvailabilityRuleOut(AvailabilityRuleIn):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider_id: str
    break_intervals: List[BreakIntervalOut] = Field(default_factory=list)


class AvailabilityRuleSet(BaseModel):
    """Full replacement of a provider's weekly rules"""
    rules: List[AvailabilityRuleIn]


class CustomHours(BaseModel):
    start_time: time
    end_time: time


class AvailabilityOverrideIn(BaseModel):
    date: date
    is_available: bool
    custom_hours: Optional[CustomHours] = None
    reason: Optional[str] = None


class AvailabilityOverrideOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider_id: str
    date: date
    is_available: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None


class CalendarEventType(str, Enum):
    HOLIDAY = "holiday"
    VACATION = "vacation"
    SPECIAL_HOURS = "special_hours"
    MAINTENANCE = "maintenance"


class CalendarEventIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    type: CalendarEventType = CalendarEventType.HOLIDAY
    start_date: WallClock
    end_date: Optional[WallClock] = None
    all_day: bool = False
    description: Optional[str] = None
    affects_availability: bool = True

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CalendarEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider_id: str
    title: str
    type: str
    start_date: datetime
    end_date: datetime
    all_day: bool
    description: Optional[str] = None
    affects_availability: bool


# ============================================================================
# Projections
# ============================================================================

class TimeSlot(BaseModel):
    """Derived candidate interval; recomputed on every query"""
    id: str
    provider_id: str
    service_id: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration: int
    is_available: bool
    is_blocked: bool = False
    block_reason: Optional[str] = None
    booking_id: Optional[str] = None
    price: Optional[float] = None


class BusinessHours(BaseModel):
    start_time: Optional[str] = None  # HH:MM
    end_time: Optional[str] = None
    is_open: bool


class BreakWindow(BaseModel):
    start_time: str
    end_time: str
    reason: str


class TimeSlotAvailability(BaseModel):
    date: date
    provider_id: str
    slots: List[TimeSlot]
    business_hours: BusinessHours
    breaks: List[BreakWindow] = Field(default_factory=list)


class ConflictType(str, Enum):
    OVERLAP = "overlap"
    BUFFER_VIOLATION = "buffer_violation"
    OUTSIDE_HOURS = "outside_hours"
    UNAVAILABLE = "unavailable"
    ALREADY_BOOKED = "already_booked"
    BREAK_TIME = "break_time"
    BUSINESS_HOURS = "business_hours"


class BookingConflict(BaseModel):
    type: ConflictType
    message: str
    conflicting_booking_id: Optional[str] = None
    suggested_alternatives: List[TimeSlot] = Field(default_factory=list)


class ConflictCheckResult(BaseModel):
    has_conflicts: bool
    conflicts: List[BookingConflict] = Field(default_factory=list)
