# booking_engine/services/booking/booking_lifecycle.py
"""
Booking state machine.

Every status change goes through `_apply`, which checks the predecessor
state and stamps the matching timestamp. Writes that claim calendar time
(create, recurring create, reschedule) run under the provider lock.
"""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import (
    ConflictError, InvalidTransitionError, NotFoundError, ValidationError
)
from booking_engine.core.provider_lock import provider_lock
from booking_engine.models.base import new_id
from booking_engine.models.booking import Booking, BookingStatus, BookingType, PaymentStatus
from booking_engine.models.reservation import TimeSlotReservation, ReservationStatus
from booking_engine.schemas.booking import (
    BookingOut, BookingRequest, FailedOccurrence, RecurrenceConfig
)
from booking_engine.services.booking.booking_validator import BookingPlan, BookingValidator
from booking_engine.services.notification.reminder_service import ReminderScheduler
from booking_engine.services.package.package_ledger import PackageLedger
from booking_engine.services.payment.payment_gateway import HttpPaymentGateway, PaymentGateway
from booking_engine.utils.time_helpers import Clock, local_to_utc, utc_now, utc_to_local

logger = logging.getLogger(__name__)

# target status -> legal predecessors, timestamp column
TRANSITIONS: Dict[BookingStatus, Tuple[Tuple[BookingStatus, ...], str]] = {
    BookingStatus.CONFIRMED: ((BookingStatus.PENDING,), "confirmed_at"),
    BookingStatus.IN_PROGRESS: ((BookingStatus.CONFIRMED,), "started_at"),
    BookingStatus.COMPLETED: ((BookingStatus.IN_PROGRESS,), "completed_at"),
    BookingStatus.CANCELLED: ((BookingStatus.PENDING, BookingStatus.CONFIRMED), "cancelled_at"),
    BookingStatus.RESCHEDULED: ((BookingStatus.CONFIRMED,), "rescheduled_at"),
    BookingStatus.NO_SHOW: (
        (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS),
        "no_show_at",
    ),
}


def booking_to_out(booking: Booking) -> BookingOut:
    return BookingOut(
        id=booking.id,
        client_id=booking.client_id,
        provider_id=booking.provider_id,
        service_ids=list(booking.service_ids or []),
        add_on_ids=list(booking.add_on_ids or []),
        booking_type=BookingType(booking.booking_type),
        status=BookingStatus(booking.status),
        scheduled_date_time=booking.scheduled_date_time,
        duration=booking.duration,
        notes=booking.notes,
        recurrence_config=RecurrenceConfig(**booking.recurrence_config) if booking.recurrence_config else None,
        package_config=PackageLedger.to_config(booking.package) if booking.package is not None else None,
        parent_booking_id=booking.parent_booking_id,
        child_booking_ids=booking.child_booking_ids,
        is_series_parent=bool(booking.is_series_parent),
        rescheduled_from_id=booking.rescheduled_from_id,
        rescheduled_to_id=booking.rescheduled_to_id,
        payment_status=booking.payment_status,
        total_amount=booking.total_amount,
        paid_amount=booking.paid_amount,
        cancellation_reason=booking.cancellation_reason,
        cancelled_by=booking.cancelled_by,
        confirmed_at=booking.confirmed_at,
        started_at=booking.started_at,
        completed_at=booking.completed_at,
        cancelled_at=booking.cancelled_at,
        no_show_at=booking.no_show_at,
        rescheduled_at=booking.rescheduled_at,
    )


class BookingLifecycle:
    def __init__(
            self,
            db: Session,
            clock: Clock = utc_now,
            payment_gateway: Optional[PaymentGateway] = None,
            reminders: Optional[ReminderScheduler] = None
    ):
        self.db = db
        self.clock = clock
        self.settings = get_settings()
        self.validator = BookingValidator(db, clock)
        self.ledger = PackageLedger(db, clock)
        self.payment_gateway = payment_gateway or HttpPaymentGateway()
        self.reminders = reminders or ReminderScheduler()

    def get_booking(self, booking_id: str) -> Booking:
        booking = self.db.query(Booking).filter_by(id=booking_id).first()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found", details={"booking_id": booking_id})
        return booking

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_booking(self, request: BookingRequest) -> Booking:
        """Validate and persist a single pending booking"""
        if request.recurrence_config is not None:
            raise ValidationError("Recurring requests must be created as a series")

        with provider_lock(request.provider_id):
            plan = self.validator.plan(request)
            self.raise_for(plan)
            booking = self.commit_plan(plan, BookingStatus.PENDING)

        self.schedule_reminder(booking)
        return booking

    def raise_for(self, plan: BookingPlan) -> None:
        """Turn a failed plan into the matching domain error"""
        if plan.package_error is not None:
            raise plan.package_error
        if plan.errors:
            raise ValidationError(plan.errors[0], details={"errors": plan.errors, "warnings": plan.warnings})
        if not plan.is_recurring and plan.conflicts:
            raise ConflictError("Requested time is not available", conflicts=plan.conflicts)

    def commit_plan(
            self,
            plan: BookingPlan,
            status: BookingStatus,
            reservation: Optional[TimeSlotReservation] = None
    ) -> Booking:
        """
        Persist the first occurrence of a validated plan.

        The caller must hold the provider lock. A payment failure rolls
        back everything, including changes to `reservation`.
        """
        now = self.clock()
        booking = self._new_booking(plan, plan.occurrences[0].start, status, now)
        booking.total_amount = plan.breakdown.total

        if reservation is not None:
            booking.reservation_id = reservation.id

        self.db.add(booking)
        try:
            self.db.flush()
            if reservation is not None:
                reservation.status = ReservationStatus.CONFIRMED.value
                reservation.confirmed_at = now
                reservation.booking_id = booking.id
            self._charge(plan, [booking], plan.breakdown.total)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info(f"Created booking {booking.id} for provider {booking.provider_id} at {booking.scheduled_date_time}")
        return booking

    def create_recurring(self, request: BookingRequest) -> Tuple[Booking, List[Booking], List[FailedOccurrence]]:
        """
        Create a series parent plus one child per conflict-free occurrence.

        Conflicting occurrences are reported back instead of aborting the
        series; only a series with no bookable occurrence fails.
        """
        if request.recurrence_config is None:
            raise ValidationError("recurrence_config is required for a recurring booking")

        with provider_lock(request.provider_id):
            plan = self.validator.plan(request)
            self.raise_for(plan)

            free = plan.free_occurrences
            if not free:
                raise ConflictError("No occurrence of the series can be booked", conflicts=plan.conflicts)

            now = self.clock()
            parent = self._new_booking(plan, plan.occurrences[0].start, BookingStatus.PENDING, now)
            parent.booking_type = BookingType.RECURRING.value
            parent.is_series_parent = True
            parent.recurrence_config = request.recurrence_config.model_dump(mode="json")
            parent.total_amount = plan.breakdown.total

            children = []
            for occurrence in free:
                child = self._new_booking(plan, occurrence.start, BookingStatus.PENDING, now)
                child.booking_type = BookingType.RECURRING.value
                child.parent_booking_id = parent.id
                child.total_amount = plan.breakdown.per_occurrence_total
                children.append(child)

            try:
                self.db.add(parent)
                self.db.flush()
                self.db.add_all(children)
                self.db.flush()
                self._charge(plan, [parent] + children, plan.breakdown.total)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

            self.db.refresh(parent)

        failed = [
            FailedOccurrence(scheduled_date_time=o.start, conflicts=o.conflicts)
            for o in plan.occurrences if not o.is_free
        ]
        logger.info(
            f"Created series {parent.id}: {len(children)} occurrences booked, {len(failed)} skipped"
        )
        for child in children:
            self.schedule_reminder(child)
        return parent, children, failed

    def _new_booking(self, plan: BookingPlan, start: datetime, status: BookingStatus, now: datetime) -> Booking:
        request = plan.request
        if plan.package is not None:
            booking_type = BookingType.PACKAGE
        elif len(plan.services) > 1:
            booking_type = BookingType.MULTIPLE_SERVICES
        else:
            booking_type = BookingType.SINGLE

        return Booking(
            id=new_id(),
            client_id=request.client_id,
            provider_id=plan.provider.id,
            service_ids=[s.id for s in plan.services],
            add_on_ids=[a.id for a in plan.add_ons],
            package_id=plan.package.id if plan.package is not None else None,
            booking_type=booking_type.value,
            status=status.value,
            scheduled_date_time=start,
            duration=plan.duration,
            notes=request.notes,
            is_series_parent=False,
            payment_status=PaymentStatus.PENDING.value,
            total_amount=Decimal("0"),
            paid_amount=Decimal("0"),
            confirmed_at=now if status == BookingStatus.CONFIRMED else None,
        )

    def _charge(self, plan: BookingPlan, bookings: List[Booking], amount: Decimal) -> None:
        method = plan.request.payment_method
        if not method or amount <= 0:
            return

        receipt = self.payment_gateway.charge(amount, method)
        for booking in bookings:
            booking.payment_status = PaymentStatus.PAID.value
            booking.paid_amount = booking.total_amount
            booking.payment_reference = receipt.reference

    def schedule_reminder(self, booking: Booking) -> None:
        provider = booking.provider
        try:
            self.reminders.schedule_reminder(
                booking.id,
                provider.name,
                local_to_utc(booking.scheduled_date_time, provider.timezone),
                self.settings.REMINDER_LEAD_MINUTES,
            )
        except Exception as e:
            logger.error(f"Reminder scheduling failed for booking {booking.id}: {e}")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _apply(self, booking: Booking, target: BookingStatus) -> None:
        predecessors, stamp = TRANSITIONS[target]
        current = BookingStatus(booking.status)
        if current not in predecessors:
            raise InvalidTransitionError(
                f"Cannot change booking from {current.value} to {target.value}",
                details={"booking_id": booking.id, "from": current.value, "to": target.value}
            )
        booking.status = target.value
        setattr(booking, stamp, self.clock())

    def transition(
            self,
            booking_id: str,
            target: BookingStatus,
            reason: Optional[str] = None,
            actor: str = "client"
    ) -> Booking:
        """Dispatch a status change requested through the API"""
        if target == BookingStatus.CONFIRMED:
            return self.confirm(booking_id)
        if target == BookingStatus.IN_PROGRESS:
            return self.start(booking_id)
        if target == BookingStatus.COMPLETED:
            return self.complete(booking_id)
        if target == BookingStatus.CANCELLED:
            return self.cancel(booking_id, reason=reason, actor=actor)
        if target == BookingStatus.NO_SHOW:
            return self.mark_no_show(booking_id)
        if target == BookingStatus.RESCHEDULED:
            raise ValidationError("Use the reschedule operation to move a booking")
        raise InvalidTransitionError(f"Bookings cannot move back to {target.value}")

    def _get_occurrence(self, booking_id: str) -> Booking:
        booking = self.get_booking(booking_id)
        if booking.is_series_parent:
            raise ValidationError("Series parents change through their occurrences or series cancellation")
        return booking

    def confirm(self, booking_id: str) -> Booking:
        booking = self._get_occurrence(booking_id)
        self._apply(booking, BookingStatus.CONFIRMED)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def start(self, booking_id: str) -> Booking:
        booking = self._get_occurrence(booking_id)
        self._apply(booking, BookingStatus.IN_PROGRESS)
        self.db.commit()
        self.db.refresh(booking)
        return booking

    def complete(self, booking_id: str) -> Booking:
        booking = self._get_occurrence(booking_id)
        self._apply(booking, BookingStatus.COMPLETED)
        self._settle(booking, reason="completed")
        return booking

    def mark_no_show(self, booking_id: str) -> Booking:
        booking = self._get_occurrence(booking_id)
        local_now = utc_to_local(self.clock(), booking.provider.timezone)
        if local_now < booking.scheduled_date_time:
            raise ValidationError(
                "A booking can only be marked no-show after its scheduled time",
                details={"scheduled_date_time": booking.scheduled_date_time.isoformat()}
            )
        self._apply(booking, BookingStatus.NO_SHOW)
        self._settle(booking, reason="no_show")
        return booking

    def _settle(self, booking: Booking, reason: str) -> None:
        try:
            if booking.package_id:
                self.ledger.consume(
                    booking.package_id,
                    1,
                    booking_id=booking.id,
                    reason=reason,
                    scheduled_at=local_to_utc(booking.scheduled_date_time, booking.provider.timezone),
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(booking)
        logger.info(f"Booking {booking.id} is now {booking.status}")

    def cancel(self, booking_id: str, reason: Optional[str] = None, actor: str = "client") -> Booking:
        booking = self.get_booking(booking_id)
        if booking.is_series_parent:
            return self.cancel_series(booking_id, future_only=True, reason=reason, actor=actor)

        self._check_reason(reason, actor)
        self._apply(booking, BookingStatus.CANCELLED)
        booking.cancellation_reason = reason
        booking.cancelled_by = actor
        self.db.commit()
        self.db.refresh(booking)

        logger.info(f"Booking {booking.id} cancelled by {actor}")
        return booking

    def cancel_series(
            self,
            parent_id: str,
            future_only: bool = True,
            reason: Optional[str] = None,
            actor: str = "client"
    ) -> Booking:
        """Cancel the cancellable occurrences of a series and the series itself"""
        parent = self.get_booking(parent_id)
        if not parent.is_series_parent:
            raise ValidationError(f"Booking {parent_id} is not a recurring series")
        self._check_reason(reason, actor)

        local_now = utc_to_local(self.clock(), parent.provider.timezone)
        cancellable = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
        cancelled = 0
        for child in parent.children:
            if child.status not in cancellable:
                continue
            if future_only and child.scheduled_date_time <= local_now:
                continue
            self._apply(child, BookingStatus.CANCELLED)
            child.cancellation_reason = reason
            child.cancelled_by = actor
            cancelled += 1

        if parent.status in cancellable:
            self._apply(parent, BookingStatus.CANCELLED)
            parent.cancellation_reason = reason
            parent.cancelled_by = actor

        self.db.commit()
        self.db.refresh(parent)
        logger.info(f"Series {parent.id}: cancelled {cancelled} occurrences (future_only={future_only})")
        return parent

    @staticmethod
    def _check_reason(reason: Optional[str], actor: str) -> None:
        if actor == "provider" and not (reason and reason.strip()):
            raise ValidationError("A reason is required when the provider cancels")

    def reschedule(self, booking_id: str, new_start: datetime, actor: str = "client") -> Booking:
        """Move a confirmed booking; the old row keeps its history as rescheduled"""
        booking = self._get_occurrence(booking_id)

        with provider_lock(booking.provider_id):
            self.db.refresh(booking)
            if booking.status != BookingStatus.CONFIRMED.value:
                raise InvalidTransitionError(
                    f"Only confirmed bookings can be rescheduled (booking is {booking.status})",
                    details={"booking_id": booking.id}
                )

            request = BookingRequest(
                client_id=booking.client_id,
                provider_id=booking.provider_id,
                service_ids=list(booking.service_ids or []),
                add_on_ids=list(booking.add_on_ids or []),
                requested_date_time=new_start,
                duration=booking.duration,
                notes=booking.notes,
                package_id=booking.package_id,
            )
            plan = self.validator.plan(request, exclude_booking_id=booking.id)
            self.raise_for(plan)

            now = self.clock()
            moved = self._new_booking(plan, new_start, BookingStatus.CONFIRMED, now)
            moved.booking_type = booking.booking_type
            moved.parent_booking_id = booking.parent_booking_id
            moved.rescheduled_from_id = booking.id
            moved.total_amount = booking.total_amount
            moved.paid_amount = booking.paid_amount
            moved.payment_status = booking.payment_status
            moved.payment_reference = booking.payment_reference

            self._apply(booking, BookingStatus.RESCHEDULED)
            booking.rescheduled_to_id = moved.id

            self.db.add(moved)
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(moved)

        logger.info(f"Booking {booking.id} rescheduled to {moved.id} at {new_start} by {actor}")
        self.schedule_reminder(moved)
        return moved
