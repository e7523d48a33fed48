# booking_engine/services/reservation/reservation_service.py
"""
Reservation holds.

A hold claims a provider interval for RESERVATION_HOLD_MINUTES while the
client finishes checkout. Holds are visible to every conflict check as soon
as they are committed. Expiry is checked on every read and confirm; the
periodic sweep only tidies up rows nobody looked at.
"""
from datetime import timedelta
from typing import Optional
import logging

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from booking_engine.config.settings import get_settings
from booking_engine.core.exceptions import (
    ConflictError, ExpiredReservationError, NotFoundError, ValidationError
)
from booking_engine.core.provider_lock import provider_lock
from booking_engine.models.booking import BookingStatus
from booking_engine.models.reservation import TimeSlotReservation, ReservationStatus
from booking_engine.schemas.booking import BookingRequest
from booking_engine.schemas.reservation import ReservationStats, TimeSlotRequest
from booking_engine.services.availability.availability_service import AvailabilityService
from booking_engine.services.availability.conflict_detector import ConflictDetector
from booking_engine.services.availability.slot_generator import slot_id
from booking_engine.services.booking.booking_lifecycle import BookingLifecycle
from booking_engine.utils.time_helpers import Clock, utc_now

logger = logging.getLogger(__name__)


class ReservationManager:
    def __init__(
            self,
            db: Session,
            clock: Clock = utc_now,
            lifecycle: Optional[BookingLifecycle] = None
    ):
        self.db = db
        self.clock = clock
        self.settings = get_settings()
        self.availability = AvailabilityService(db, clock)
        self.detector = ConflictDetector(db, clock)
        self._lifecycle = lifecycle

    @property
    def lifecycle(self) -> BookingLifecycle:
        if self._lifecycle is None:
            self._lifecycle = BookingLifecycle(self.db, self.clock)
        return self._lifecycle

    def reserve(self, request: TimeSlotRequest) -> TimeSlotReservation:
        """Place a pending hold, or raise ConflictError with alternatives"""
        service = self.availability.get_service(request.provider_id, request.service_id)
        duration = request.duration if request.duration is not None else service.duration
        if duration <= 0:
            raise ValidationError("Duration must be positive", details={"duration": duration})

        start = request.requested_start_time
        with provider_lock(request.provider_id):
            conflicts = self.detector.check(request.provider_id, start, duration, service=service)
            if conflicts:
                raise ConflictError("Requested time slot is not available", conflicts=conflicts)

            now = self.clock()
            reservation = TimeSlotReservation(
                time_slot_id=slot_id(request.provider_id, start),
                client_id=request.client_id,
                provider_id=request.provider_id,
                service_id=service.id,
                start_time=start,
                end_time=start + timedelta(minutes=duration),
                duration=duration,
                status=ReservationStatus.PENDING.value,
                reserved_at=now,
                expires_at=now + timedelta(minutes=self.settings.RESERVATION_HOLD_MINUTES),
            )
            self.db.add(reservation)
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(reservation)

        logger.info(
            f"Reserved {reservation.start_time} - {reservation.end_time} with provider "
            f"{reservation.provider_id} for client {reservation.client_id} until {reservation.expires_at}"
        )
        return reservation

    def get(self, reservation_id: str) -> TimeSlotReservation:
        reservation = self._get(reservation_id)
        self._expire_if_stale(reservation)
        return reservation

    def _get(self, reservation_id: str) -> TimeSlotReservation:
        reservation = self.db.query(TimeSlotReservation).filter_by(id=reservation_id).first()
        if not reservation:
            raise NotFoundError(f"Reservation {reservation_id} not found", details={"reservation_id": reservation_id})
        return reservation

    def _expire_if_stale(self, reservation: TimeSlotReservation) -> bool:
        if reservation.status != ReservationStatus.PENDING.value or not reservation.is_expired(self.clock()):
            return False
        reservation.status = ReservationStatus.CANCELLED.value
        reservation.cancelled_at = self.clock()
        self.db.commit()
        logger.info(f"Reservation {reservation.id} expired at {reservation.expires_at}")
        return True

    def confirm(
            self,
            reservation_id: str,
            payment_method: Optional[str] = None,
            notes: Optional[str] = None
    ) -> str:
        """Turn a live hold into a confirmed booking and return its id"""
        reservation = self._get(reservation_id)
        if reservation.status == ReservationStatus.CONFIRMED.value and reservation.booking_id:
            return reservation.booking_id

        with provider_lock(reservation.provider_id):
            self.db.refresh(reservation)

            # A concurrent confirm may have won the lock first
            if reservation.status == ReservationStatus.CONFIRMED.value and reservation.booking_id:
                return reservation.booking_id

            if reservation.is_expired(self.clock()):
                self._expire_if_stale(reservation)
                raise ExpiredReservationError(
                    f"Reservation {reservation.id} expired at {reservation.expires_at.isoformat()}",
                    details={"reservation_id": reservation.id, "expires_at": reservation.expires_at.isoformat()}
                )

            if reservation.status != ReservationStatus.PENDING.value:
                raise ValidationError(
                    f"Reservation {reservation.id} is {reservation.status} and cannot be confirmed",
                    details={"reservation_id": reservation.id}
                )

            request = BookingRequest(
                client_id=reservation.client_id,
                provider_id=reservation.provider_id,
                service_ids=[reservation.service_id],
                requested_date_time=reservation.start_time,
                duration=reservation.duration,
                notes=notes,
                payment_method=payment_method,
            )
            plan = self.lifecycle.validator.plan(request, exclude_reservation_id=reservation.id)
            self.lifecycle.raise_for(plan)
            booking = self.lifecycle.commit_plan(plan, BookingStatus.CONFIRMED, reservation=reservation)

        logger.info(f"Reservation {reservation.id} confirmed as booking {booking.id}")
        self.lifecycle.schedule_reminder(booking)
        return booking.id

    def cancel(self, reservation_id: str) -> TimeSlotReservation:
        reservation = self._get(reservation_id)

        with provider_lock(reservation.provider_id):
            self.db.refresh(reservation)
            if reservation.status == ReservationStatus.CANCELLED.value:
                return reservation
            if reservation.status != ReservationStatus.PENDING.value:
                raise ValidationError(
                    f"Reservation {reservation.id} is {reservation.status}; cancel the booking instead",
                    details={"reservation_id": reservation.id, "booking_id": reservation.booking_id}
                )

            reservation.status = ReservationStatus.CANCELLED.value
            reservation.cancelled_at = self.clock()
            self.db.commit()
            self.db.refresh(reservation)

        logger.info(f"Reservation {reservation.id} cancelled")
        return reservation

    def sweep_expired(self) -> int:
        """Cancel every pending hold whose expiry has passed"""
        now = self.clock()
        count = self.db.query(TimeSlotReservation).filter(
            TimeSlotReservation.status == ReservationStatus.PENDING.value,
            TimeSlotReservation.expires_at <= now
        ).update(
            {
                TimeSlotReservation.status: ReservationStatus.CANCELLED.value,
                TimeSlotReservation.cancelled_at: now,
            },
            synchronize_session=False
        )
        self.db.commit()
        return count

    def stats(self, provider_id: Optional[str] = None) -> ReservationStats:
        """Counts of holds by outcome, optionally for one provider"""
        now = self.clock()
        query = self.db.query(TimeSlotReservation)
        if provider_id:
            query = query.filter(TimeSlotReservation.provider_id == provider_id)

        pending = TimeSlotReservation.status == ReservationStatus.PENDING.value
        cancelled = TimeSlotReservation.status == ReservationStatus.CANCELLED.value
        # expiry marks a hold cancelled at or after its expires_at
        ran_out = and_(cancelled, TimeSlotReservation.cancelled_at >= TimeSlotReservation.expires_at)

        return ReservationStats(
            provider_id=provider_id,
            total_reservations=query.count(),
            active_reservations=query.filter(pending, TimeSlotReservation.expires_at > now).count(),
            expired_reservations=query.filter(
                or_(and_(pending, TimeSlotReservation.expires_at <= now), ran_out)
            ).count(),
            confirmed_reservations=query.filter(
                TimeSlotReservation.status == ReservationStatus.CONFIRMED.value
            ).count(),
            cancelled_reservations=query.filter(
                cancelled,
                or_(TimeSlotReservation.cancelled_at.is_(None),
                    TimeSlotReservation.cancelled_at < TimeSlotReservation.expires_at)
            ).count(),
        )
