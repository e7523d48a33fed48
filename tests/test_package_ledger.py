from datetime import timedelta
from decimal import Decimal

import pytest

from booking_engine.core.exceptions import (
    NotFoundError, PackageExhaustedError, PackageExpiredError, ValidationError
)
from booking_engine.models import PackageLedgerEntry
from booking_engine.schemas.provider import PackageCreate
from booking_engine.services.package.package_ledger import PackageLedger
from tests.factories import MONDAY, add_package, add_service, at, booking_request


@pytest.fixture
def ledger(db, clock):
    return PackageLedger(db, clock)


def test_create_package(ledger, clock, provider):
    package = ledger.create_package(PackageCreate(
        client_id="client-1",
        provider_id=provider.id,
        name="Five cuts",
        total_sessions=5,
        validity_days=90,
        price=Decimal("220.00"),
        discount_percentage=Decimal("10"),
    ))

    out = PackageLedger.to_out(package)
    assert out.sessions_used == 0
    assert out.sessions_remaining == 5
    assert out.purchase_date == clock()
    assert out.expiry_date == clock() + timedelta(days=90)


def test_create_package_for_unknown_provider(ledger):
    with pytest.raises(NotFoundError):
        ledger.create_package(PackageCreate(client_id="c", provider_id="missing", name="x", total_sessions=1))


def test_consume_is_idempotent_per_booking(db, clock, ledger, lifecycle, provider, haircut):
    package = add_package(db, provider, "client-1", clock, total_sessions=3)
    booking = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10), package_id=package.id))

    ledger.consume(package.id, booking_id=booking.id)
    ledger.consume(package.id, booking_id=booking.id)
    db.commit()

    db.refresh(package)
    assert package.sessions_used == 1
    assert db.query(PackageLedgerEntry).count() == 1


def test_consume_refuses_to_overdraw(db, clock, ledger, lifecycle, provider, haircut):
    package = add_package(db, provider, "client-1", clock, total_sessions=1)
    first = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10), package_id=package.id))
    ledger.consume(package.id, booking_id=first.id)
    db.commit()

    with pytest.raises(PackageExhaustedError):
        ledger.consume(package.id, booking_id="another-booking")


def test_expired_package(db, clock, ledger, provider):
    package = add_package(db, provider, "client-1", clock, validity_days=10)
    clock.advance(days=11)

    with pytest.raises(PackageExpiredError):
        ledger.ensure_available(package, "client-1")
    with pytest.raises(PackageExpiredError):
        ledger.consume(package.id, booking_id="b-1")


def test_package_of_another_client(db, clock, ledger, provider):
    package = add_package(db, provider, "client-1", clock)

    with pytest.raises(ValidationError):
        ledger.ensure_available(package, "client-2")

    package.is_transferrable = True
    db.commit()
    ledger.ensure_available(package, "client-2")


def test_package_restricted_to_services(db, clock, ledger, provider, haircut):
    color = add_service(db, provider, name="Color")
    package = add_package(db, provider, "client-1", clock, service_ids=[haircut.id])

    ledger.ensure_available(package, "client-1", service_ids=[haircut.id])
    with pytest.raises(ValidationError):
        ledger.ensure_available(package, "client-1", service_ids=[color.id])


def test_headroom_counts_requested_sessions(db, clock, ledger, provider):
    package = add_package(db, provider, "client-1", clock, total_sessions=4, sessions_used=1)

    ledger.ensure_available(package, "client-1", sessions=3)
    with pytest.raises(PackageExhaustedError) as exc:
        ledger.ensure_available(package, "client-1", sessions=4)

    assert exc.value.details["requested"] == 4


def test_inactive_package(db, clock, ledger, provider):
    package = add_package(db, provider, "client-1", clock)
    package.is_active = False
    db.commit()

    with pytest.raises(ValidationError):
        ledger.ensure_available(package, "client-1")


def test_appointment_after_expiry_is_refused(db, clock, ledger, provider):
    package = add_package(db, provider, "client-1", clock, validity_days=10)

    ledger.ensure_available(package, "client-1", appointments=[clock() + timedelta(days=10)])
    with pytest.raises(PackageExpiredError) as exc:
        ledger.ensure_available(
            package, "client-1", appointments=[clock() + timedelta(days=3), clock() + timedelta(days=11)]
        )

    assert exc.value.details["late_appointments"] == [(clock() + timedelta(days=11)).isoformat()]


def test_consume_judges_expiry_at_appointment_time(db, clock, ledger, lifecycle, provider, haircut):
    package = add_package(db, provider, "client-1", clock, validity_days=12)
    booking = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 9), package_id=package.id))
    clock.advance(days=30)

    ledger.consume(package.id, booking_id=booking.id, scheduled_at=at(MONDAY, 9))
    db.commit()

    db.refresh(package)
    assert package.sessions_used == 1
    with pytest.raises(PackageExpiredError):
        ledger.consume(package.id, booking_id="late-booking", scheduled_at=at(MONDAY, 11))
