# booking_engine/services/availability/calendar_view.py
"""
Read-only projection of one provider's calendar.

A ProviderCalendar is loaded once per query from the authoritative rows
(rules, overrides, events, bookings, live holds) and never written back.
Slot generation and conflict detection both read from it.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional

from booking_engine.models.availability import AvailabilityOverride, AvailabilityRule, CalendarEvent
from booking_engine.models.provider import Provider
from booking_engine.utils.time_helpers import day_of_week, overlaps


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime
    reason: str = ""
    booking_id: Optional[str] = None
    reservation_id: Optional[str] = None

    def intersects(self, start: datetime, end: datetime) -> bool:
        return overlaps(self.start, self.end, start, end)

    def covers(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end


@dataclass
class DaySchedule:
    day: date
    is_open: bool
    windows: List[Interval] = field(default_factory=list)
    breaks: List[Interval] = field(default_factory=list)
    blackouts: List[Interval] = field(default_factory=list)
    closed_reason: Optional[str] = None

    def contains(self, start: datetime, end: datetime) -> bool:
        """True when the interval sits entirely inside one working window"""
        return any(window.covers(start, end) for window in self.windows)

    def blocker(self, start: datetime, end: datetime) -> Optional[Interval]:
        for interval in self.breaks + self.blackouts:
            if interval.intersects(start, end):
                return interval
        return None


class ProviderCalendar:
    def __init__(
            self,
            provider: Provider,
            rules: List[AvailabilityRule],
            overrides: List[AvailabilityOverride],
            events: List[CalendarEvent],
            busy: List[Interval],
            buffer_minutes: int,
            granularity_minutes: int,
            local_now: datetime,
    ):
        self.provider = provider
        self.rules = rules
        self.overrides: Dict[date, AvailabilityOverride] = {o.date: o for o in overrides}
        self.events = [e for e in events if e.affects_availability]
        self.busy = sorted(busy, key=lambda i: i.start)
        self.buffer = timedelta(minutes=buffer_minutes)
        self.granularity = timedelta(minutes=granularity_minutes)
        self.local_now = local_now

    @property
    def provider_id(self) -> str:
        return self.provider.id

    def day(self, day: date) -> DaySchedule:
        """Resolve working windows for one date; an override replaces the weekly rule"""
        blackouts = self._blackouts(day)
        override = self.overrides.get(day)

        if override is not None:
            if not override.is_available:
                return DaySchedule(day, False, blackouts=blackouts, closed_reason=override.reason or "Unavailable")
            if override.has_custom_hours:
                window = Interval(
                    datetime.combine(day, override.start_time),
                    datetime.combine(day, override.end_time),
                    override.reason or "Special hours",
                )
                return DaySchedule(day, True, windows=[window], blackouts=blackouts)

        index = day_of_week(day)
        rules = sorted(
            (r for r in self.rules if r.day_of_week == index and r.applies_on(day)),
            key=lambda r: r.start_time,
        )
        windows = [Interval(datetime.combine(day, r.start_time), datetime.combine(day, r.end_time)) for r in rules]
        breaks = [
            Interval(datetime.combine(day, b.start_time), datetime.combine(day, b.end_time), b.name)
            for r in rules
            for b in r.break_intervals
        ]

        if not windows:
            return DaySchedule(day, False, blackouts=blackouts, closed_reason="Closed")
        return DaySchedule(day, True, windows=windows, breaks=breaks, blackouts=blackouts)

    def _blackouts(self, day: date) -> List[Interval]:
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        blackouts = []
        for event in self.events:
            if event.all_day:
                if event.start_date.date() <= day <= event.end_date.date():
                    blackouts.append(Interval(day_start, day_end, event.title))
            elif overlaps(event.start_date, event.end_date, day_start, day_end):
                blackouts.append(
                    Interval(max(event.start_date, day_start), min(event.end_date, day_end), event.title)
                )
        return blackouts

    def first_busy(self, start: datetime, end: datetime, padding: timedelta = timedelta(0)) -> Optional[Interval]:
        """First booking or live hold intersecting [start - padding, end + padding)"""
        for interval in self.busy:
            if interval.intersects(start - padding, end + padding):
                return interval
        return None
