"""
Slot generation

Projects a provider's rules, overrides, events, bookings and live holds
into discrete candidate slots. Nothing here is persisted; every iteration
reloads the calendar.
"""
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import ValidationError
from booking_engine.models.service import Service
from booking_engine.schemas.availability import (
    BreakWindow, BusinessHours, TimeSlot, TimeSlotAvailability
)
from booking_engine.services.availability.availability_service import AvailabilityService
from booking_engine.services.availability.calendar_view import DaySchedule, Interval, ProviderCalendar
from booking_engine.utils.time_helpers import Clock, date_range, format_hhmm, utc_now

logger = logging.getLogger(__name__)


def slot_id(provider_id: str, start: datetime) -> str:
    return f"slot_{provider_id}_{start.strftime('%Y%m%d%H%M')}"


def _format_edge(value: datetime, day: date) -> str:
    # Blackouts clipped to the day end at the next midnight
    if value.date() > day:
        return "24:00"
    return format_hhmm(value.time())


def project_day(
        calendar: ProviderCalendar,
        day: date,
        duration: int,
        service: Optional[Service] = None
) -> Iterator[TimeSlot]:
    """Yield every candidate slot inside the resolved windows of one date"""
    schedule = calendar.day(day)
    if not schedule.is_open:
        return

    length = timedelta(minutes=duration)
    price = float(service.price) if service is not None and service.price is not None else None

    for window in schedule.windows:
        start = window.start
        while start + length <= window.end:
            end = start + length
            yield _build_slot(calendar, schedule, start, end, duration, service, price)
            start += calendar.granularity


def _build_slot(
        calendar: ProviderCalendar,
        schedule: DaySchedule,
        start: datetime,
        end: datetime,
        duration: int,
        service: Optional[Service],
        price: Optional[float]
) -> TimeSlot:
    slot = TimeSlot(
        id=slot_id(calendar.provider_id, start),
        provider_id=calendar.provider_id,
        service_id=service.id if service is not None else None,
        start_time=start,
        end_time=end,
        duration=duration,
        is_available=True,
        price=price,
    )

    blocker = schedule.blocker(start, end)
    if blocker is not None:
        slot.is_available = False
        slot.is_blocked = True
        slot.block_reason = blocker.reason or "Blocked"
        return slot

    if start < calendar.local_now:
        slot.is_available = False
        slot.block_reason = "past"
        return slot

    busy = calendar.first_busy(start, end, padding=calendar.buffer)
    if busy is not None:
        slot.is_available = False
        slot.block_reason = busy.reason
        slot.booking_id = busy.booking_id

    return slot


class SlotSequence:
    """
    Lazy, finite and restartable stream of slots for a date range.

    Each iteration loads a fresh calendar snapshot, so two passes over the
    same sequence may differ if the calendar changed in between.
    """

    def __init__(
            self,
            load: Callable[[], ProviderCalendar],
            date_from: date,
            date_to: date,
            duration: int,
            service: Optional[Service] = None
    ):
        self._load = load
        self.date_from = date_from
        self.date_to = date_to
        self.duration = duration
        self.service = service

    def __iter__(self) -> Iterator[TimeSlot]:
        calendar = self._load()
        for day in date_range(self.date_from, self.date_to):
            yield from project_day(calendar, day, self.duration, self.service)

    def available(self) -> Iterator[TimeSlot]:
        return (slot for slot in self if slot.is_available)


class SlotGenerator:
    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.settings = get_settings()
        self.availability = AvailabilityService(db, clock)

    def _check_range(self, date_from: date, date_to: date) -> None:
        if date_to < date_from:
            raise ValidationError("date_to must not be before date_from")
        span = (date_to - date_from).days + 1
        if span > self.settings.MAX_AVAILABILITY_RANGE_DAYS:
            raise ValidationError(
                f"Date range too long: {span} days (max {self.settings.MAX_AVAILABILITY_RANGE_DAYS})",
                details={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()}
            )

    def _resolve(
            self,
            provider_id: str,
            service_id: Optional[str],
            duration: Optional[int]
    ) -> Tuple[Optional[Service], int]:
        provider = self.availability.get_provider(provider_id)
        service = self.availability.get_service(provider_id, service_id) if service_id else None

        if duration is None:
            duration = service.duration if service is not None else self.availability.granularity_minutes(provider)
        if duration <= 0:
            raise ValidationError("Duration must be positive", details={"duration": duration})
        return service, duration

    def slots(
            self,
            provider_id: str,
            date_from: date,
            date_to: date,
            service_id: Optional[str] = None,
            duration: Optional[int] = None
    ) -> SlotSequence:
        self._check_range(date_from, date_to)
        service, duration = self._resolve(provider_id, service_id, duration)
        return SlotSequence(
            lambda: self.availability.load_calendar(provider_id, date_from, date_to),
            date_from,
            date_to,
            duration,
            service,
        )

    def get_availability(
            self,
            provider_id: str,
            date_from: date,
            date_to: date,
            service_id: Optional[str] = None,
            duration: Optional[int] = None
    ) -> List[TimeSlotAvailability]:
        """Slots grouped per date together with the resolved hours and breaks"""
        self._check_range(date_from, date_to)
        service, duration = self._resolve(provider_id, service_id, duration)
        calendar = self.availability.load_calendar(provider_id, date_from, date_to)

        days = []
        for day in date_range(date_from, date_to):
            schedule = calendar.day(day)
            days.append(TimeSlotAvailability(
                date=day,
                provider_id=provider_id,
                slots=list(project_day(calendar, day, duration, service)),
                business_hours=self._business_hours(schedule),
                breaks=[
                    BreakWindow(
                        start_time=_format_edge(interval.start, day),
                        end_time=_format_edge(interval.end, day),
                        reason=interval.reason or "Break",
                    )
                    for interval in self._sorted(schedule.breaks + schedule.blackouts)
                ],
            ))

        logger.debug(f"Projected availability for provider {provider_id} {date_from} -> {date_to}")
        return days

    @staticmethod
    def _business_hours(schedule: DaySchedule) -> BusinessHours:
        if not schedule.is_open:
            return BusinessHours(is_open=False)
        return BusinessHours(
            start_time=format_hhmm(min(w.start for w in schedule.windows).time()),
            end_time=format_hhmm(max(w.end for w in schedule.windows).time()),
            is_open=True,
        )

    @staticmethod
    def _sorted(intervals: List[Interval]) -> List[Interval]:
        return sorted(intervals, key=lambda i: i.start)
