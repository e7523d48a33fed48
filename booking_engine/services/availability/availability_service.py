from typing import List, Optional
from datetime import date, datetime, time, timedelta
from sqlalchemy.orm import Session, selectinload
from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import NotFoundError, ValidationError
from booking_engine.models.availability import (
    AvailabilityRule, AvailabilityOverride, BreakInterval, CalendarEvent
)
from booking_engine.models.booking import Booking, ACTIVE_BOOKING_STATUSES
from booking_engine.models.provider import Provider
from booking_engine.models.reservation import TimeSlotReservation, ReservationStatus
from booking_engine.models.service import Service
from booking_engine.schemas.availability import AvailabilityRuleIn, AvailabilityOverrideIn, CalendarEventIn
from booking_engine.services.availability.calendar_view import Interval, ProviderCalendar
from booking_engine.utils.time_helpers import Clock, utc_now, utc_to_local
import logging

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Authoritative store for provider rules, overrides and calendar events"""

    def __init__(self, db: Session, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def get_provider(self, provider_id: str) -> Provider:
        provider = self.db.query(Provider).filter_by(id=provider_id).first()
        if not provider or not provider.is_active:
            raise NotFoundError(f"Provider {provider_id} not found", details={"provider_id": provider_id})
        return provider

    def get_service(self, provider_id: str, service_id: str) -> Service:
        service = self.db.query(Service).filter_by(id=service_id, provider_id=provider_id).first()
        if not service or not service.is_active:
            raise NotFoundError(
                f"Service {service_id} not found for provider {provider_id}",
                details={"service_id": service_id}
            )
        return service

    def buffer_minutes(self, provider: Provider) -> int:
        if provider.buffer_minutes is not None:
            return provider.buffer_minutes
        return self.settings.DEFAULT_BUFFER_MINUTES

    def granularity_minutes(self, provider: Provider) -> int:
        return provider.slot_granularity_minutes or self.settings.SLOT_GRANULARITY_MINUTES

    # ------------------------------------------------------------------
    # Weekly rules
    # ------------------------------------------------------------------

    def set_rules(self, provider_id: str, rules: List[AvailabilityRuleIn]) -> List[AvailabilityRule]:
        """Replace the provider's whole rule set in one transaction"""
        self.get_provider(provider_id)
        for rule in rules:
            self._validate_rule(rule)

        try:
            existing = self.db.query(AvailabilityRule).filter_by(provider_id=provider_id).all()
            for rule in existing:
                self.db.delete(rule)
            self.db.flush()

            for rule_in in rules:
                rule = AvailabilityRule(
                    provider_id=provider_id,
                    day_of_week=rule_in.day_of_week,
                    start_time=rule_in.start_time,
                    end_time=rule_in.end_time,
                    is_active=rule_in.is_active,
                    effective_from=rule_in.effective_from,
                    effective_to=rule_in.effective_to,
                    timezone=rule_in.timezone,
                )
                rule.break_intervals = [
                    BreakInterval(
                        start_time=b.start_time,
                        end_time=b.end_time,
                        name=b.name,
                        is_recurring=b.is_recurring,
                    )
                    for b in rule_in.break_intervals
                ]
                self.db.add(rule)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Replaced availability rules for provider {provider_id}: {len(rules)} rules")
        return self.get_rules(provider_id)

    def get_rules(self, provider_id: str) -> List[AvailabilityRule]:
        return (
            self.db.query(AvailabilityRule)
            .options(selectinload(AvailabilityRule.break_intervals))
            .filter(AvailabilityRule.provider_id == provider_id)
            .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
            .all()
        )

    def delete_rule(self, provider_id: str, rule_id: str) -> None:
        rule = self.db.query(AvailabilityRule).filter_by(provider_id=provider_id, id=rule_id).first()
        if not rule:
            raise NotFoundError(f"Availability rule {rule_id} not found", details={"rule_id": rule_id})
        self.db.delete(rule)
        self.db.commit()

    @staticmethod
    def _validate_rule(rule: AvailabilityRuleIn) -> None:
        if rule.start_time >= rule.end_time:
            raise ValidationError(
                "Rule start_time must be before end_time",
                details={"day_of_week": rule.day_of_week},
            )
        if rule.effective_to is not None and rule.effective_to < rule.effective_from:
            raise ValidationError("Rule effective_to must not be before effective_from")

        previous_end: Optional[time] = None
        for brk in sorted(rule.break_intervals, key=lambda b: b.start_time):
            if brk.start_time >= brk.end_time:
                raise ValidationError(f"Break '{brk.name}' must start before it ends")
            if brk.start_time < rule.start_time or brk.end_time > rule.end_time:
                raise ValidationError(f"Break '{brk.name}' must sit inside working hours")
            if previous_end is not None and brk.start_time < previous_end:
                raise ValidationError(f"Break '{brk.name}' overlaps another break")
            previous_end = brk.end_time

    # ------------------------------------------------------------------
    # Date overrides
    # ------------------------------------------------------------------

    def set_override(self, provider_id: str, data: AvailabilityOverrideIn) -> AvailabilityOverride:
        """Upsert the override for one date (last write wins)"""
        self.get_provider(provider_id)
        if data.custom_hours and data.custom_hours.start_time >= data.custom_hours.end_time:
            raise ValidationError("Custom hours must start before they end")

        override = self.db.query(AvailabilityOverride).filter_by(
            provider_id=provider_id,
            date=data.date
        ).first()
        if override is None:
            override = AvailabilityOverride(provider_id=provider_id, date=data.date)
            self.db.add(override)

        override.is_available = data.is_available
        override.start_time = data.custom_hours.start_time if data.custom_hours else None
        override.end_time = data.custom_hours.end_time if data.custom_hours else None
        override.reason = data.reason

        self.db.commit()
        self.db.refresh(override)
        return override

    def delete_override(self, provider_id: str, day: date) -> None:
        override = self.db.query(AvailabilityOverride).filter_by(provider_id=provider_id, date=day).first()
        if not override:
            raise NotFoundError(f"No override on {day.isoformat()}")
        self.db.delete(override)
        self.db.commit()

    def list_overrides(self, provider_id: str, date_from: date, date_to: date) -> List[AvailabilityOverride]:
        return self.db.query(AvailabilityOverride).filter(
            AvailabilityOverride.provider_id == provider_id,
            AvailabilityOverride.date.between(date_from, date_to)
        ).order_by(AvailabilityOverride.date).all()

    # ------------------------------------------------------------------
    # Calendar events
    # ------------------------------------------------------------------

    def add_event(self, provider_id: str, data: CalendarEventIn) -> CalendarEvent:
        self.get_provider(provider_id)
        end_date = data.end_date
        if end_date is None:
            if not data.all_day:
                raise ValidationError("end_date is required for events that are not all-day")
            end_date = data.start_date

        event = CalendarEvent(
            provider_id=provider_id,
            title=data.title,
            type=data.type.value,
            start_date=data.start_date,
            end_date=end_date,
            all_day=data.all_day,
            description=data.description,
            affects_availability=data.affects_availability,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def delete_event(self, provider_id: str, event_id: str) -> None:
        event = self.db.query(CalendarEvent).filter_by(provider_id=provider_id, id=event_id).first()
        if not event:
            raise NotFoundError(f"Calendar event {event_id} not found")
        self.db.delete(event)
        self.db.commit()

    def list_events(self, provider_id: str, date_from: date, date_to: date) -> List[CalendarEvent]:
        range_start = datetime.combine(date_from, time.min)
        range_end = datetime.combine(date_to + timedelta(days=1), time.min)
        return self.db.query(CalendarEvent).filter(
            CalendarEvent.provider_id == provider_id,
            CalendarEvent.start_date < range_end,
            CalendarEvent.end_date >= range_start - timedelta(days=1)
        ).order_by(CalendarEvent.start_date).all()

    # ------------------------------------------------------------------
    # Calendar snapshot
    # ------------------------------------------------------------------

    def load_calendar(
            self,
            provider_id: str,
            date_from: date,
            date_to: date,
            exclude_reservation_id: Optional[str] = None,
            exclude_booking_id: Optional[str] = None
    ) -> ProviderCalendar:
        """Snapshot everything that shapes availability between two dates"""
        provider = self.get_provider(provider_id)
        now = self.clock()

        # Appointments never exceed a day, so one day of slack catches overnight spill
        window_start = datetime.combine(date_from - timedelta(days=1), time.min)
        window_end = datetime.combine(date_to + timedelta(days=1), time.min)

        booking_query = self.db.query(Booking).filter(
            Booking.provider_id == provider_id,
            Booking.is_series_parent.is_(False),
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.scheduled_date_time >= window_start,
            Booking.scheduled_date_time < window_end
        )
        if exclude_booking_id:
            booking_query = booking_query.filter(Booking.id != exclude_booking_id)

        hold_query = self.db.query(TimeSlotReservation).filter(
            TimeSlotReservation.provider_id == provider_id,
            TimeSlotReservation.status == ReservationStatus.PENDING.value,
            TimeSlotReservation.expires_at > now,
            TimeSlotReservation.start_time < window_end,
            TimeSlotReservation.end_time > window_start
        )
        if exclude_reservation_id:
            hold_query = hold_query.filter(TimeSlotReservation.id != exclude_reservation_id)

        busy = [
            Interval(b.scheduled_date_time, b.end_date_time, "booked", booking_id=b.id)
            for b in booking_query.all()
        ]
        busy.extend(
            Interval(r.start_time, r.end_time, "reserved", reservation_id=r.id)
            for r in hold_query.all()
        )

        return ProviderCalendar(
            provider=provider,
            rules=self.db.query(AvailabilityRule).options(
                selectinload(AvailabilityRule.break_intervals)
            ).filter_by(provider_id=provider_id).all(),
            overrides=self.list_overrides(provider_id, date_from - timedelta(days=1), date_to + timedelta(days=1)),
            events=self.list_events(provider_id, date_from, date_to),
            busy=busy,
            buffer_minutes=self.buffer_minutes(provider),
            granularity_minutes=self.granularity_minutes(provider),
            local_now=utc_to_local(now, provider.timezone),
        )
