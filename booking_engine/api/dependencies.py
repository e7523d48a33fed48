# ============================================================================
# FILE: booking_engine/api/dependencies.py
# Service wiring for the route handlers
# ============================================================================
from fastapi import Depends
from sqlalchemy.orm import Session

from booking_engine.config.database import get_db
from booking_engine.services.availability.availability_service import AvailabilityService
from booking_engine.services.availability.conflict_detector import ConflictDetector
from booking_engine.services.availability.slot_generator import SlotGenerator
from booking_engine.services.booking.booking_lifecycle import BookingLifecycle
from booking_engine.services.booking.booking_validator import BookingValidator
from booking_engine.services.notification.reminder_service import ReminderScheduler
from booking_engine.services.package.package_ledger import PackageLedger
from booking_engine.services.payment.payment_gateway import HttpPaymentGateway, PaymentGateway
from booking_engine.services.reservation.reservation_service import ReservationManager
from booking_engine.utils.time_helpers import Clock, utc_now


# ============================================================================
# Collaborators (overridden in tests)
# ============================================================================

def get_clock() -> Clock:
    return utc_now


def get_payment_gateway() -> PaymentGateway:
    return HttpPaymentGateway()


def get_reminder_scheduler() -> ReminderScheduler:
    return ReminderScheduler()


# ============================================================================
# Domain services
# ============================================================================

def get_availability_service(
        db: Session = Depends(get_db),
        clock: Clock = Depends(get_clock)
) -> AvailabilityService:
    return AvailabilityService(db, clock)


def get_slot_generator(
        db: Session = Depends(get_db),
        clock: Clock = Depends(get_clock)
) -> SlotGenerator:
    return SlotGenerator(db, clock)


def get_conflict_detector(
        db: Session = Depends(get_db),
        clock: Clock = Depends(get_clock)
) -> ConflictDetector:
    return ConflictDetector(db, clock)


def get_booking_validator(
        db: Session = Depends(get_db),
        clock: Clock = Depends(get_clock)
) -> BookingValidator:
    return BookingValidator(db, clock)


def get_package_ledger(
        db: Session = Depends(get_db),
        clock: Clock = Depends(get_clock)
) -> PackageLedger:
    return PackageLedger(db, clock)


def get_booking_lifecycle(
        db: Session = Depends(get_db),
        clock: Clock = Depends(get_clock),
        payment_gateway: PaymentGateway = Depends(get_payment_gateway),
        reminders: ReminderScheduler = Depends(get_reminder_scheduler)
) -> BookingLifecycle:
    return BookingLifecycle(db, clock, payment_gateway=payment_gateway, reminders=reminders)


def get_reservation_manager(
        db: Session = Depends(get_db),
        clock: Clock = Depends(get_clock),
        lifecycle: BookingLifecycle = Depends(get_booking_lifecycle)
) -> ReservationManager:
    return ReservationManager(db, clock, lifecycle=lifecycle)
