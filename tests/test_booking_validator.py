from decimal import Decimal

import pytest

from booking_engine.models import Booking
from booking_engine.schemas.availability import ConflictType
from booking_engine.schemas.booking import RecurrenceConfig, RecurrenceType
from booking_engine.services.booking.booking_validator import BookingValidator
from booking_engine.services.booking.pricing import price_booking
from tests.factories import MONDAY, add_package, add_service, at, booking_request


@pytest.fixture
def validator(db, clock):
    return BookingValidator(db, clock)


def test_valid_single_request(validator, provider, haircut):
    result = validator.validate(booking_request(provider, haircut, at(MONDAY, 10)))

    assert result.is_valid
    assert result.errors == []
    assert result.conflicts == []
    assert result.breakdown.subtotal == Decimal("50.00")
    assert result.breakdown.taxes == Decimal("4.00")
    assert result.breakdown.fees == Decimal("5.00")
    assert result.estimated_total == Decimal("59.00")


def test_validate_has_no_side_effects(db, validator, provider, haircut):
    validator.validate(booking_request(provider, haircut, at(MONDAY, 10)))

    assert db.query(Booking).count() == 0


def test_conflicting_request_is_invalid(validator, provider, haircut):
    result = validator.validate(booking_request(provider, haircut, at(MONDAY, 12)))

    assert not result.is_valid
    assert [c.type for c in result.conflicts] == [ConflictType.BREAK_TIME]


def test_duration_defaults_to_services_and_add_ons(db, validator, provider):
    color = add_service(db, provider, name="Color", price="80.00", duration=60, add_ons=[
        {"name": "Gloss", "price": "15.00", "duration": 15},
    ])
    plan = validator.plan(booking_request(provider, color, at(MONDAY, 9), add_on_ids=[color.add_ons[0].id]))

    assert plan.duration == 75
    assert plan.breakdown.subtotal == Decimal("95.00")
    assert [line.add_on_name for line in plan.breakdown.add_ons] == ["Gloss"]


def test_multiple_services(db, validator, provider, haircut):
    beard = add_service(db, provider, name="Beard trim", price="20.00", duration=15)
    request = booking_request(provider, haircut, at(MONDAY, 9))
    request.service_ids.append(beard.id)

    plan = validator.plan(request)

    assert plan.is_valid
    assert plan.duration == 45
    assert plan.breakdown.subtotal == Decimal("70.00")


def test_unknown_service_and_foreign_add_on(db, validator, provider, haircut):
    other = add_service(db, provider, name="Color", add_ons=[{"name": "Gloss", "price": "15.00"}])
    request = booking_request(provider, haircut, at(MONDAY, 10), add_on_ids=[other.add_ons[0].id])
    request.service_ids.append("missing")

    result = validator.validate(request)

    assert not result.is_valid
    assert "Service missing not found" in result.errors
    assert any("does not belong" in e for e in result.errors)


def test_missing_required_add_on_is_a_warning(db, validator, provider):
    perm = add_service(db, provider, name="Perm", add_ons=[
        {"name": "Treatment", "price": "10.00", "is_required": True},
    ])

    result = validator.validate(booking_request(provider, perm, at(MONDAY, 10)))

    assert result.is_valid
    assert result.warnings == ["Perm usually requires the add-on Treatment"]


def test_empty_service_list_is_an_error(validator, provider, haircut):
    request = booking_request(provider, haircut, at(MONDAY, 10))
    request.service_ids.clear()

    result = validator.validate(request)

    assert not result.is_valid
    assert "At least one service is required" in result.errors


def test_package_discount_is_applied(db, clock, validator, provider, haircut):
    package = add_package(db, provider, "client-1", clock, discount="10")

    result = validator.validate(booking_request(provider, haircut, at(MONDAY, 10), package_id=package.id))

    assert result.is_valid
    assert result.breakdown.discounts == Decimal("5.00")
    assert result.breakdown.taxes == Decimal("3.60")
    assert result.estimated_total == Decimal("53.60")


def test_exhausted_package_is_reported(db, clock, validator, provider, haircut):
    package = add_package(db, provider, "client-1", clock, total_sessions=5, sessions_used=5)

    result = validator.validate(booking_request(provider, haircut, at(MONDAY, 10), package_id=package.id))

    assert not result.is_valid
    assert "has 0 sessions left" in result.errors[0]


def test_recurring_request_lists_skipped_occurrences(db, validator, lifecycle, provider, haircut):
    lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY.replace(day=8), 10), client_id="client-2"))
    request = booking_request(
        provider, haircut, at(MONDAY, 10),
        recurrence_config=RecurrenceConfig(type=RecurrenceType.WEEKLY, max_occurrences=4),
    )

    plan = validator.plan(request)

    assert plan.is_valid
    assert [o.start for o in plan.free_occurrences] == [
        at(MONDAY.replace(day=d), 10) for d in (1, 15, 22)
    ]
    assert len(plan.warnings) == 1
    assert plan.breakdown.occurrences == 3
    assert plan.breakdown.total == Decimal("177.00")


# ----------------------------------------------------------------------
# Pricing
# ----------------------------------------------------------------------

def test_price_identity_holds(db, provider, haircut):
    breakdown = price_booking(
        [haircut], [], tax_rate=Decimal("0.0825"), booking_fee=Decimal("2.50"), discount_percentage=Decimal("15")
    )

    assert breakdown.total == breakdown.subtotal - breakdown.discounts + breakdown.taxes + breakdown.fees
    assert breakdown.discounts == Decimal("7.50")
    assert breakdown.taxes == Decimal("3.51")


def test_price_scales_with_occurrences(db, provider, haircut):
    single = price_booking([haircut], [], tax_rate=Decimal("0.08"), booking_fee=Decimal("5.00"))
    series = price_booking([haircut], [], tax_rate=Decimal("0.08"), booking_fee=Decimal("5.00"), occurrences=4)

    assert series.total == single.total * 4
    assert series.per_occurrence_total == single.total
    assert series.total == series.subtotal - series.discounts + series.taxes + series.fees
