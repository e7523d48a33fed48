# booking_engine/schemas/__init__.py
from .availability import (
    BreakIntervalIn,
    AvailabilityRuleIn,
    AvailabilityRuleOut,
    AvailabilityRuleSet,
    CustomHours,
    AvailabilityOverrideIn,
    AvailabilityOverrideOut,
    CalendarEventType,
    CalendarEventIn,
    CalendarEventOut,
    TimeSlot,
    BusinessHours,
    BreakWindow,
    TimeSlotAvailability,
    ConflictType,
    BookingConflict,
    ConflictCheckResult
)

from .reservation import (
    TimeSlotRequest,
    ReservationOut,
    ReservationConfirmRequest,
    ReservationConfirmation,
    ReservationStats
)

from .booking import (
    RecurrenceType,
    RecurrenceConfig,
    PackageConfig,
    BookingRequest,
    PriceBreakdown,
    BookingValidation,
    BookingOut,
    BookingStatusUpdate,
    RescheduleRequest,
    FailedOccurrence,
    RecurringBookingResult,
    SeriesCancelRequest,
    BookingPage
)

from .provider import (
    ProviderCreate,
    ProviderOut,
    ServiceCreate,
    ServiceOut,
    PackageCreate,
    PackageOut
)
