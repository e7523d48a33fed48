import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from booking_engine.core.exceptions import (
    ConflictError, DownstreamError, ExpiredReservationError, NotFoundError, ValidationError
)
from booking_engine.models import Booking, BookingStatus, ReservationStatus, TimeSlotReservation
from booking_engine.schemas.availability import ConflictType
from booking_engine.schemas.reservation import TimeSlotRequest
from booking_engine.services.booking.booking_lifecycle import BookingLifecycle
from booking_engine.services.reservation.reservation_service import ReservationManager
from tests.factories import MONDAY, DecliningPaymentGateway, FakePaymentGateway, FakeReminderScheduler, at


def slot_request(provider, service, start, client_id="client-1", **kwargs):
    return TimeSlotRequest(
        provider_id=provider.id,
        service_id=service.id,
        requested_start_time=start,
        client_id=client_id,
        **kwargs
    )


def test_reserve_places_pending_hold(reservations, clock, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))

    assert reservation.status == ReservationStatus.PENDING.value
    assert reservation.start_time == at(MONDAY, 10)
    assert reservation.end_time == at(MONDAY, 10, 30)
    assert reservation.reserved_at == clock()
    assert (reservation.expires_at - reservation.reserved_at).total_seconds() == 15 * 60


def test_hold_blocks_other_clients(reservations, provider, haircut):
    reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))

    with pytest.raises(ConflictError) as exc:
        reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10), client_id="client-2"))

    assert [c.type for c in exc.value.conflicts] == [ConflictType.ALREADY_BOOKED]
    assert exc.value.conflicts[0].conflicting_booking_id is None


def test_concurrent_reservations_for_same_slot(session_factory, clock, provider, haircut):
    barrier = threading.Barrier(2)
    outcomes = []
    provider_id, service_id = provider.id, haircut.id

    def attempt(client_id):
        session = session_factory()
        try:
            lifecycle = BookingLifecycle(
                session, clock, payment_gateway=FakePaymentGateway(), reminders=FakeReminderScheduler()
            )
            manager = ReservationManager(session, clock, lifecycle=lifecycle)
            barrier.wait()
            try:
                reservation = manager.reserve(TimeSlotRequest(
                    provider_id=provider_id,
                    service_id=service_id,
                    requested_start_time=at(MONDAY, 10),
                    client_id=client_id,
                ))
                outcomes.append(("reserved", reservation.status))
            except ConflictError as e:
                outcomes.append(("conflict", e.conflicts[0].type))
        finally:
            session.close()

    threads = [threading.Thread(target=attempt, args=(f"client-{i}",)) for i in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(outcomes) == [
        ("conflict", ConflictType.ALREADY_BOOKED),
        ("reserved", ReservationStatus.PENDING.value),
    ]

    check = session_factory()
    try:
        assert check.query(TimeSlotReservation).count() == 1
    finally:
        check.close()


def test_confirm_creates_confirmed_booking(db, reservations, reminders, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))

    booking_id = reservations.confirm(reservation.id, notes="first visit")

    booking = db.query(Booking).filter_by(id=booking_id).one()
    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.scheduled_date_time == at(MONDAY, 10)
    assert booking.duration == 30
    assert booking.reservation_id == reservation.id
    assert booking.notes == "first visit"
    assert booking.total_amount == Decimal("59.00")

    db.refresh(reservation)
    assert reservation.status == ReservationStatus.CONFIRMED.value
    assert reservation.booking_id == booking_id
    assert [r[0] for r in reminders.scheduled] == [booking_id]


def test_confirm_is_idempotent(db, reservations, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))

    first = reservations.confirm(reservation.id)
    second = reservations.confirm(reservation.id)

    assert first == second
    assert db.query(Booking).count() == 1


def test_confirm_charges_payment_method(db, reservations, payments, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))

    booking_id = reservations.confirm(reservation.id, payment_method="card")

    booking = db.query(Booking).filter_by(id=booking_id).one()
    assert payments.charges == [(Decimal("59.00"), "card")]
    assert booking.payment_status == "paid"
    assert booking.paid_amount == Decimal("59.00")
    assert booking.payment_reference == "ch_1"


def test_expired_hold_cannot_be_confirmed(db, reservations, clock, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))
    clock.advance(minutes=16)

    with pytest.raises(ExpiredReservationError):
        reservations.confirm(reservation.id)

    db.refresh(reservation)
    assert reservation.status == ReservationStatus.CANCELLED.value
    assert db.query(Booking).count() == 0

    again = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10), client_id="client-2"))
    assert again.status == ReservationStatus.PENDING.value


def test_hold_expires_exactly_at_expiry(reservations, clock, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))
    clock.advance(minutes=15)

    with pytest.raises(ExpiredReservationError):
        reservations.confirm(reservation.id)


def test_get_marks_stale_hold_cancelled(reservations, clock, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))
    clock.advance(hours=1)

    assert reservations.get(reservation.id).status == ReservationStatus.CANCELLED.value


def test_cancel_releases_slot(reservations, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))

    cancelled = reservations.cancel(reservation.id)
    assert cancelled.status == ReservationStatus.CANCELLED.value
    assert reservations.cancel(reservation.id).status == ReservationStatus.CANCELLED.value

    reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10), client_id="client-2"))


def test_confirmed_hold_cannot_be_cancelled(reservations, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))
    reservations.confirm(reservation.id)

    with pytest.raises(ValidationError):
        reservations.cancel(reservation.id)


def test_cancelled_hold_cannot_be_confirmed(reservations, provider, haircut):
    reservation = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))
    reservations.cancel(reservation.id)

    with pytest.raises(ValidationError):
        reservations.confirm(reservation.id)


def test_sweep_cancels_only_expired_holds(db, reservations, clock, provider, haircut):
    stale = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))
    clock.advance(minutes=10)
    fresh = reservations.reserve(slot_request(provider, haircut, at(MONDAY, 11)))
    clock.advance(minutes=6)

    assert reservations.sweep_expired() == 1

    db.expire_all()
    assert db.get(TimeSlotReservation, stale.id).status == ReservationStatus.CANCELLED.value
    assert db.get(TimeSlotReservation, fresh.id).status == ReservationStatus.PENDING.value


def test_unknown_reservation(reservations):
    with pytest.raises(NotFoundError):
        reservations.get("missing")


def test_hold_for_unknown_service(reservations, provider):
    with pytest.raises(NotFoundError):
        reservations.reserve(TimeSlotRequest(
            provider_id=provider.id,
            service_id="missing",
            requested_start_time=at(MONDAY, 10),
            client_id="client-1",
        ))


def test_failed_payment_leaves_hold_pending(db, clock, reminders, provider, haircut):
    gateway = DecliningPaymentGateway()
    lifecycle = BookingLifecycle(db, clock, payment_gateway=gateway, reminders=reminders)
    manager = ReservationManager(db, clock, lifecycle=lifecycle)
    reservation = manager.reserve(slot_request(provider, haircut, at(MONDAY, 10)))

    with pytest.raises(DownstreamError):
        manager.confirm(reservation.id, payment_method="card")

    db.refresh(reservation)
    assert gateway.attempts == 1
    assert reservation.status == ReservationStatus.PENDING.value
    assert reservation.booking_id is None
    assert db.query(Booking).count() == 0
    assert reminders.scheduled == []

    # still held for the client, so a retry without payment goes through
    booking_id = manager.confirm(reservation.id)
    assert db.query(Booking).filter_by(id=booking_id).one().status == BookingStatus.CONFIRMED.value


def test_failed_hold_insert_leaves_session_usable(db, reservations, monkeypatch, provider, haircut):
    def failing_commit():
        raise OperationalError("INSERT INTO time_slot_reservations", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(OperationalError):
        reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))
    monkeypatch.undo()

    reservations.reserve(slot_request(provider, haircut, at(MONDAY, 10)))

    assert db.query(TimeSlotReservation).count() == 1
