"""
Conflict detection for a requested provider interval.

Categories are evaluated in a fixed order and at most one conflict is
reported per category. Every conflict carries the same list of suggested
alternatives, each of which is itself conflict-free.
"""
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import ValidationError
from booking_engine.models.service import Service
from booking_engine.schemas.availability import BookingConflict, ConflictType, TimeSlot
from booking_engine.schemas.reservation import TimeSlotRequest
from booking_engine.services.availability.availability_service import AvailabilityService
from booking_engine.services.availability.calendar_view import ProviderCalendar
from booking_engine.services.availability.slot_generator import slot_id
from booking_engine.utils.time_helpers import Clock, utc_now

logger = logging.getLogger(__name__)

# Tried in this order; the first three that are clear are suggested
ALTERNATIVE_OFFSETS = (
    timedelta(hours=-1),
    timedelta(hours=1),
    timedelta(days=1),
)


class ConflictDetector:
    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.settings = get_settings()
        self.availability = AvailabilityService(db, clock)

    def check_request(
            self,
            request: TimeSlotRequest,
            exclude_reservation_id: Optional[str] = None,
            exclude_booking_id: Optional[str] = None
    ) -> List[BookingConflict]:
        """Check a single-service slot request; duration defaults to the service's"""
        service = self.availability.get_service(request.provider_id, request.service_id)
        duration = request.duration if request.duration is not None else service.duration
        return self.check(
            request.provider_id,
            request.requested_start_time,
            duration,
            service=service,
            exclude_reservation_id=exclude_reservation_id,
            exclude_booking_id=exclude_booking_id,
        )

    def check(
            self,
            provider_id: str,
            start: datetime,
            duration: int,
            service: Optional[Service] = None,
            exclude_reservation_id: Optional[str] = None,
            exclude_booking_id: Optional[str] = None
    ) -> List[BookingConflict]:
        if duration is None or duration <= 0:
            raise ValidationError("Duration must be positive", details={"duration": duration})

        day = start.date()
        calendar = self.availability.load_calendar(
            provider_id,
            day - timedelta(days=1),
            day + timedelta(days=1),
            exclude_reservation_id=exclude_reservation_id,
            exclude_booking_id=exclude_booking_id,
        )
        return self.detect(calendar, start, duration, service)

    def detect(
            self,
            calendar: ProviderCalendar,
            start: datetime,
            duration: int,
            service: Optional[Service] = None
    ) -> List[BookingConflict]:
        """Evaluate one interval against an already loaded calendar snapshot"""
        conflicts = self._evaluate(calendar, start, start + timedelta(minutes=duration))
        if conflicts:
            alternatives = self.alternatives(calendar, start, duration, service)
            for conflict in conflicts:
                conflict.suggested_alternatives = alternatives
            logger.info(
                f"Conflicts for provider {calendar.provider_id} at {start.isoformat()}: "
                f"{[c.type.value for c in conflicts]}"
            )
        return conflicts

    def is_free(self, calendar: ProviderCalendar, start: datetime, duration: int) -> bool:
        return not self._evaluate(calendar, start, start + timedelta(minutes=duration))

    def alternatives(
            self,
            calendar: ProviderCalendar,
            start: datetime,
            duration: int,
            service: Optional[Service] = None
    ) -> List[TimeSlot]:
        length = timedelta(minutes=duration)
        suggestions = []
        for offset in ALTERNATIVE_OFFSETS:
            candidate = start + offset
            if self._evaluate(calendar, candidate, candidate + length):
                continue
            suggestions.append(TimeSlot(
                id=slot_id(calendar.provider_id, candidate),
                provider_id=calendar.provider_id,
                service_id=service.id if service is not None else None,
                start_time=candidate,
                end_time=candidate + length,
                duration=duration,
                is_available=True,
                price=float(service.price) if service is not None else None,
            ))
        return suggestions

    def _evaluate(self, calendar: ProviderCalendar, start: datetime, end: datetime) -> List[BookingConflict]:
        if start < calendar.local_now:
            return [BookingConflict(type=ConflictType.UNAVAILABLE, message="Requested time is in the past")]

        horizon = calendar.local_now.date() + timedelta(days=self.settings.MAX_ADVANCE_BOOKING_DAYS)
        if start.date() > horizon:
            return [BookingConflict(
                type=ConflictType.UNAVAILABLE,
                message=f"Bookings open at most {self.settings.MAX_ADVANCE_BOOKING_DAYS} days ahead",
            )]

        schedule = calendar.day(start.date())
        if not schedule.is_open:
            return [BookingConflict(
                type=ConflictType.OUTSIDE_HOURS,
                message=f"Provider is not working on {start.date().isoformat()} ({schedule.closed_reason})",
            )]

        conflicts = []

        if not schedule.contains(start, end):
            conflicts.append(BookingConflict(
                type=ConflictType.BUSINESS_HOURS,
                message="Requested time is outside business hours",
            ))

        blocker = schedule.blocker(start, end)
        if blocker is not None:
            conflicts.append(BookingConflict(
                type=ConflictType.BREAK_TIME,
                message=f"Requested time overlaps {blocker.reason or 'a break'}",
            ))

        busy = calendar.first_busy(start, end)
        if busy is not None:
            what = "an existing booking" if busy.booking_id else "a reservation hold"
            if busy.covers(start, end):
                conflicts.append(BookingConflict(
                    type=ConflictType.ALREADY_BOOKED,
                    message=f"Time slot is already taken by {what}",
                    conflicting_booking_id=busy.booking_id,
                ))
            else:
                conflicts.append(BookingConflict(
                    type=ConflictType.OVERLAP,
                    message=f"Requested time overlaps {what}",
                    conflicting_booking_id=busy.booking_id,
                ))
        elif calendar.buffer:
            neighbour = calendar.first_busy(start, end, padding=calendar.buffer)
            if neighbour is not None:
                minutes = int(calendar.buffer.total_seconds() // 60)
                conflicts.append(BookingConflict(
                    type=ConflictType.BUFFER_VIOLATION,
                    message=f"Appointments need {minutes} minutes between them",
                    conflicting_booking_id=neighbour.booking_id,
                ))

        return conflicts
