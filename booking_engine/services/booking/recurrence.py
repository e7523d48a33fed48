# booking_engine/services/booking/recurrence.py
"""Expands a recurrence pattern into concrete occurrence start times"""
import calendar
from datetime import date, datetime, timedelta
from typing import Iterator, List

from booking_engine.core.exceptions import ValidationError
from booking_engine.schemas.booking import RecurrenceConfig, RecurrenceType
from booking_engine.utils.time_helpers import day_of_week


def add_months(value: date, months: int) -> date:
    """Same day of month, clamped to the last day of shorter months"""
    index = value.month - 1 + months
    year = value.year + index // 12
    month = index % 12 + 1
    return date(year, month, min(value.day, calendar.monthrange(year, month)[1]))


class RecurrenceExpander:
    def __init__(self, max_occurrences: int = 52):
        self.max_occurrences = max_occurrences

    def expand(self, start: datetime, config: RecurrenceConfig) -> List[datetime]:
        """
        Deterministic list of occurrence start times, beginning at `start`.

        Stops at the first of end_date (inclusive), max_occurrences or the
        configured hard cap.
        """
        self._validate(start, config)

        limit = self.max_occurrences
        if config.max_occurrences is not None:
            limit = min(limit, config.max_occurrences)

        occurrences = []
        for day in self._dates(start.date(), config):
            if config.end_date is not None and day > config.end_date:
                break
            occurrences.append(datetime.combine(day, start.time()))
            if len(occurrences) >= limit:
                break
        return occurrences

    @staticmethod
    def _validate(start: datetime, config: RecurrenceConfig) -> None:
        if config.interval < 1:
            raise ValidationError("Recurrence interval must be at least 1")
        if config.max_occurrences is not None and config.max_occurrences < 1:
            raise ValidationError("max_occurrences must be at least 1")
        if config.end_date is not None and config.end_date < start.date():
            raise ValidationError("Recurrence end_date is before the first occurrence")
        for weekday in config.days_of_week or []:
            if not 0 <= weekday <= 6:
                raise ValidationError(f"Invalid day of week {weekday} (0 = Sunday ... 6 = Saturday)")

    def _dates(self, first: date, config: RecurrenceConfig) -> Iterator[date]:
        if config.type == RecurrenceType.DAILY:
            return self._every_n_days(first, config.interval, None)
        if config.type == RecurrenceType.CUSTOM:
            return self._every_n_days(first, config.interval, config.days_of_week or None)
        if config.type == RecurrenceType.MONTHLY:
            return self._monthly(first, config.interval)

        weeks = config.interval if config.type == RecurrenceType.WEEKLY else 2 * config.interval
        return self._weekly(first, weeks, config.days_of_week or [day_of_week(first)])

    def _every_n_days(self, first: date, interval: int, weekdays) -> Iterator[date]:
        # Scanning is bounded so a filter that never matches still terminates
        for step in range(self.max_occurrences * 7):
            day = first + timedelta(days=step * interval)
            if weekdays is None or day_of_week(day) in weekdays:
                yield day

    def _weekly(self, first: date, weeks: int, weekdays: List[int]) -> Iterator[date]:
        week_start = first - timedelta(days=day_of_week(first))
        for window in range(self.max_occurrences):
            window_start = week_start + timedelta(weeks=window * weeks)
            for weekday in sorted(set(weekdays)):
                day = window_start + timedelta(days=weekday)
                if day >= first:
                    yield day

    def _monthly(self, first: date, interval: int) -> Iterator[date]:
        for step in range(self.max_occurrences):
            yield add_months(first, step * interval)
