from datetime import timedelta

import pytest

from booking_engine.core.exceptions import ValidationError
from booking_engine.schemas.availability import ConflictType
from booking_engine.schemas.reservation import TimeSlotRequest
from booking_engine.services.availability.conflict_detector import ConflictDetector
from tests.factories import MONDAY, at, booking_request


@pytest.fixture
def detector(db, clock):
    return ConflictDetector(db, clock)


def kinds(conflicts):
    return [c.type for c in conflicts]


def test_free_interval_has_no_conflicts(detector, provider, haircut):
    assert detector.check(provider.id, at(MONDAY, 10), 30, service=haircut) == []


def test_lunch_request_reports_break_with_alternatives(detector, provider, haircut):
    request = TimeSlotRequest(
        provider_id=provider.id,
        service_id=haircut.id,
        requested_start_time=at(MONDAY, 12, 30),
        client_id="client-1",
    )

    conflicts = detector.check_request(request)

    assert kinds(conflicts) == [ConflictType.BREAK_TIME]
    alternatives = conflicts[0].suggested_alternatives
    assert [a.start_time for a in alternatives] == [at(MONDAY, 11, 30), at(MONDAY, 13, 30)]
    for alternative in alternatives:
        assert alternative.end_time <= at(MONDAY, 12) or alternative.start_time >= at(MONDAY, 13)
        assert detector.check(provider.id, alternative.start_time, 30) == []


def test_quarter_past_noon_lands_in_lunch(detector, provider, haircut):
    conflicts = detector.check(provider.id, at(MONDAY, 12, 15), 30, service=haircut)

    assert kinds(conflicts) == [ConflictType.BREAK_TIME]
    alternatives = conflicts[0].suggested_alternatives
    assert alternatives
    for alternative in alternatives:
        assert alternative.end_time <= at(MONDAY, 12) or alternative.start_time >= at(MONDAY, 13)


def test_closed_day_is_outside_hours(detector, provider):
    sunday = MONDAY - timedelta(days=1)
    assert kinds(detector.check(provider.id, at(sunday, 10), 30)) == [ConflictType.OUTSIDE_HOURS]


def test_request_running_past_closing(detector, provider):
    assert kinds(detector.check(provider.id, at(MONDAY, 16, 45), 30)) == [ConflictType.BUSINESS_HOURS]


def test_past_request_is_unavailable(detector, provider):
    assert kinds(detector.check(provider.id, at(MONDAY - timedelta(days=14), 10), 30)) == [ConflictType.UNAVAILABLE]


def test_request_beyond_booking_horizon_is_unavailable(detector, provider):
    far_monday = MONDAY + timedelta(weeks=26)
    assert kinds(detector.check(provider.id, at(far_monday, 10), 30)) == [ConflictType.UNAVAILABLE]


def test_exact_booking_match_is_already_booked(detector, lifecycle, provider, haircut):
    booking = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10)))

    conflicts = detector.check(provider.id, at(MONDAY, 10), 30)

    assert kinds(conflicts) == [ConflictType.ALREADY_BOOKED]
    assert conflicts[0].conflicting_booking_id == booking.id


def test_partial_overlap(detector, lifecycle, provider, haircut):
    lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10)))

    assert kinds(detector.check(provider.id, at(MONDAY, 10, 15), 30)) == [ConflictType.OVERLAP]


def test_touching_intervals_do_not_conflict(detector, lifecycle, provider, haircut):
    lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10)))

    assert detector.check(provider.id, at(MONDAY, 10, 30), 30) == []
    assert detector.check(provider.id, at(MONDAY, 9, 30), 30) == []


def test_buffer_violation(db, clock, lifecycle, provider, haircut):
    provider.buffer_minutes = 15
    db.commit()
    booking = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10)))

    conflicts = ConflictDetector(db, clock).check(provider.id, at(MONDAY, 10, 30), 30)

    assert kinds(conflicts) == [ConflictType.BUFFER_VIOLATION]
    assert conflicts[0].conflicting_booking_id == booking.id
    assert [a.start_time for a in conflicts[0].suggested_alternatives] == [at(MONDAY, 11, 30)]


def test_several_categories_reported_in_order(detector, lifecycle, provider, haircut):
    lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 11), duration=60))

    conflicts = detector.check(provider.id, at(MONDAY, 11, 45), 30)

    assert kinds(conflicts) == [ConflictType.BREAK_TIME, ConflictType.OVERLAP]
    assert conflicts[0].suggested_alternatives == conflicts[1].suggested_alternatives


def test_excluded_booking_is_ignored(detector, lifecycle, provider, haircut):
    booking = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10)))

    assert detector.check(provider.id, at(MONDAY, 10), 30, exclude_booking_id=booking.id) == []


def test_cancelled_booking_frees_time(detector, lifecycle, provider, haircut):
    booking = lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10)))
    lifecycle.cancel(booking.id, reason="changed plans")

    assert detector.check(provider.id, at(MONDAY, 10), 30) == []


@pytest.mark.parametrize("duration", [0, -30])
def test_non_positive_duration_is_rejected(detector, provider, duration):
    with pytest.raises(ValidationError):
        detector.check(provider.id, at(MONDAY, 10), duration)
