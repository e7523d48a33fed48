from datetime import timedelta

import pytest

from booking_engine.core.exceptions import NotFoundError, ValidationError
from booking_engine.models import BookingStatus, BookingType
from booking_engine.schemas.booking import RecurrenceConfig, RecurrenceType
from booking_engine.schemas.reservation import TimeSlotRequest
from booking_engine.services.booking.booking_query_service import BookingQueryService
from booking_engine.services.package.package_ledger import PackageLedger
from tests.factories import MONDAY, add_package, at, booking_request


@pytest.fixture
def schedule(lifecycle, provider, haircut):
    """Two single bookings on MONDAY and a three-week series at 09:00"""
    morning = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10)))
    afternoon = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 14), client_id="client-2"))
    parent, children, _ = lifecycle.create_recurring(booking_request(
        provider, haircut, at(MONDAY, 9),
        recurrence_config=RecurrenceConfig(type=RecurrenceType.WEEKLY, days_of_week=[1], max_occurrences=3),
    ))
    return morning, afternoon, parent, children


def test_lists_occurrences_in_time_order(db, schedule):
    morning, afternoon, parent, children = schedule

    page = BookingQueryService.list_bookings(db)

    assert [b.id for b in page.bookings] == [
        children[0].id, morning.id, afternoon.id, children[1].id, children[2].id
    ]
    assert page.total == 5
    assert page.has_more is False
    assert parent.id not in [b.id for b in page.bookings]


def test_series_parents_on_request(db, schedule):
    parent = schedule[2]

    page = BookingQueryService.list_bookings(db, include_series_parents=True)

    assert page.total == 6
    assert parent.id in [b.id for b in page.bookings]


def test_filters_narrow_listing(db, lifecycle, provider, schedule):
    morning, afternoon, _, children = schedule
    lifecycle.confirm(morning.id)

    on_monday = BookingQueryService.list_bookings(db, provider_id=provider.id, date_from=MONDAY, date_to=MONDAY)
    assert on_monday.total == 3

    confirmed = BookingQueryService.list_bookings(db, statuses=[BookingStatus.CONFIRMED.value])
    assert [b.id for b in confirmed.bookings] == [morning.id]

    second_client = BookingQueryService.list_bookings(db, client_id="client-2")
    assert [b.id for b in second_client.bookings] == [afternoon.id]

    series = BookingQueryService.list_bookings(db, booking_types=[BookingType.RECURRING.value])
    assert [b.id for b in series.bookings] == [c.id for c in children]

    later = BookingQueryService.list_bookings(db, date_from=MONDAY + timedelta(days=1))
    assert later.total == 2


def test_listing_pages(db, schedule):
    page = BookingQueryService.list_bookings(db, skip=1, limit=2)

    assert len(page.bookings) == 2
    assert page.total == 5
    assert page.has_more is True


def test_inverted_date_range_is_rejected(db):
    with pytest.raises(ValidationError):
        BookingQueryService.list_bookings(db, date_from=MONDAY, date_to=MONDAY - timedelta(days=1))


def test_series_found_from_parent_or_child(db, schedule):
    morning, _, parent, children = schedule
    expected = [c.id for c in children]

    assert [b.id for b in BookingQueryService.get_series(db, parent.id)] == expected
    assert [b.id for b in BookingQueryService.get_series(db, children[1].id)] == expected

    with pytest.raises(ValidationError):
        BookingQueryService.get_series(db, morning.id)
    with pytest.raises(NotFoundError):
        BookingQueryService.get_series(db, "missing")


def test_reservation_stats(reservations, clock, provider, haircut):
    def reserve(hour):
        return reservations.reserve(TimeSlotRequest(
            provider_id=provider.id,
            service_id=haircut.id,
            requested_start_time=at(MONDAY, hour),
            client_id="client-1",
        ))

    confirmed = reserve(10)
    released = reserve(11)
    reserve(14)
    reservations.confirm(confirmed.id)
    reservations.cancel(released.id)
    clock.advance(minutes=20)
    reserve(15)

    stats = reservations.stats(provider.id)
    assert (stats.total_reservations, stats.active_reservations, stats.expired_reservations,
            stats.confirmed_reservations, stats.cancelled_reservations) == (4, 1, 1, 1, 1)

    # sweeping relabels the stale hold as cancelled but it still counts as expired
    assert reservations.sweep_expired() == 1
    swept = reservations.stats()
    assert (swept.expired_reservations, swept.cancelled_reservations) == (1, 1)

    assert reservations.stats("other-provider").total_reservations == 0


def test_packages_by_provider(db, clock, provider):
    ledger = PackageLedger(db, clock)
    fresh = add_package(db, provider, "client-1", clock)
    used_up = add_package(db, provider, "client-1", clock, total_sessions=2, sessions_used=2)
    short = add_package(db, provider, "client-2", clock, validity_days=1)

    assert {p.id for p in ledger.list_packages(provider.id)} == {fresh.id, used_up.id, short.id}
    assert {p.id for p in ledger.list_packages(provider.id, client_id="client-1")} == {fresh.id, used_up.id}
    assert {p.id for p in ledger.list_packages(provider.id, usable_only=True)} == {fresh.id, short.id}

    clock.advance(days=2)
    assert [p.id for p in ledger.list_packages(provider.id, usable_only=True)] == [fresh.id]

    with pytest.raises(NotFoundError):
        ledger.list_packages("missing")
