# booking_engine/models/__init__.py
from .base import Base
from .provider import Provider
from .service import Service, ServiceAddOn
from .availability import AvailabilityRule, BreakInterval, AvailabilityOverride, CalendarEvent
from .package import BookingPackage, PackageLedgerEntry
from .booking import Booking, BookingStatus, BookingType, PaymentStatus, ACTIVE_BOOKING_STATUSES
from .reservation import TimeSlotReservation, ReservationStatus

__all__ = [
    "Base",
    "Provider",
    "Service",
    "ServiceAddOn",
    "AvailabilityRule",
    "BreakInterval",
    "AvailabilityOverride",
    "CalendarEvent",
    "BookingPackage",
    "PackageLedgerEntry",
    "Booking",
    "BookingStatus",
    "BookingType",
    "PaymentStatus",
    "ACTIVE_BOOKING_STATUSES",
    "TimeSlotReservation",
    "ReservationStatus",
]
