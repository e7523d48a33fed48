from datetime import date, time, timedelta

import pytest

from booking_engine.core.exceptions import NotFoundError, ValidationError
from booking_engine.schemas.availability import (
    AvailabilityOverrideIn, AvailabilityRuleIn, BreakIntervalIn, CalendarEventIn, CustomHours
)
from booking_engine.schemas.reservation import TimeSlotRequest
from booking_engine.services.availability.availability_service import AvailabilityService
from booking_engine.services.availability.slot_generator import SlotGenerator, slot_id
from tests.factories import MONDAY, at, booking_request


@pytest.fixture
def generator(db, clock):
    return SlotGenerator(db, clock)


def test_monday_slots_follow_rule_and_granularity(generator, provider, haircut):
    days = generator.get_availability(provider.id, MONDAY, MONDAY, service_id=haircut.id)

    assert len(days) == 1
    day = days[0]
    assert day.business_hours.is_open
    assert (day.business_hours.start_time, day.business_hours.end_time) == ("09:00", "17:00")
    assert [(b.start_time, b.end_time, b.reason) for b in day.breaks] == [("12:00", "13:00", "Lunch")]

    starts = [s.start_time for s in day.slots]
    assert starts[0] == at(MONDAY, 9)
    assert starts[-1] == at(MONDAY, 16, 30)
    assert len(starts) == 16
    assert all(b - a == timedelta(minutes=30) for a, b in zip(starts, starts[1:]))


def test_break_slots_are_blocked(generator, provider, haircut):
    slots = {s.start_time: s for s in generator.get_availability(provider.id, MONDAY, MONDAY, haircut.id)[0].slots}

    lunch = slots[at(MONDAY, 12)]
    assert not lunch.is_available
    assert lunch.is_blocked
    assert lunch.block_reason == "Lunch"
    assert slots[at(MONDAY, 11, 30)].is_available
    assert slots[at(MONDAY, 13)].is_available


def test_closed_day_has_no_slots(generator, provider, haircut):
    tuesday = MONDAY + timedelta(days=1)
    day = generator.get_availability(provider.id, tuesday, tuesday, haircut.id)[0]

    assert day.slots == []
    assert not day.business_hours.is_open


def test_slot_ids_are_stable(generator, provider, haircut):
    first = list(generator.slots(provider.id, MONDAY, MONDAY, haircut.id))
    second = list(generator.slots(provider.id, MONDAY, MONDAY, haircut.id))

    assert [s.id for s in first] == [s.id for s in second]
    assert first[0].id == slot_id(provider.id, at(MONDAY, 9))


def test_available_slots_never_overlap_bookings(generator, lifecycle, provider, haircut):
    lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10), duration=60))

    sequence = generator.slots(provider.id, MONDAY, MONDAY, haircut.id)
    taken = {s.start_time: s for s in sequence if not s.is_available}

    assert at(MONDAY, 10) in taken
    assert at(MONDAY, 10, 30) in taken
    assert taken[at(MONDAY, 10)].block_reason == "booked"
    assert taken[at(MONDAY, 10)].booking_id is not None
    for slot in sequence.available():
        assert slot.end_time <= at(MONDAY, 10) or slot.start_time >= at(MONDAY, 11)


def test_live_holds_block_slots_until_they_expire(generator, reservations, clock, provider, haircut):
    reservations.reserve(TimeSlotRequest(
        provider_id=provider.id, service_id=haircut.id, requested_start_time=at(MONDAY, 10), client_id="client-1"
    ))

    held = {s.start_time: s for s in generator.slots(provider.id, MONDAY, MONDAY, haircut.id)}
    assert held[at(MONDAY, 10)].is_available is False
    assert held[at(MONDAY, 10)].block_reason == "reserved"
    for slot in held.values():
        if slot.is_available:
            assert slot.end_time <= at(MONDAY, 10) or slot.start_time >= at(MONDAY, 10, 30)

    clock.advance(minutes=16)
    released = {s.start_time: s for s in generator.slots(provider.id, MONDAY, MONDAY, haircut.id)}
    assert released[at(MONDAY, 10)].is_available is True


def test_sequence_reloads_calendar_on_each_pass(generator, lifecycle, provider, haircut):
    sequence = generator.slots(provider.id, MONDAY, MONDAY, haircut.id)
    before = len(list(sequence.available()))

    lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 9)))

    assert len(list(sequence.available())) == before - 1


def test_buffer_blocks_neighbouring_slots(db, clock, lifecycle, haircut, provider):
    provider.buffer_minutes = 15
    db.commit()
    lifecycle.create_booking(booking_request(provider, haircut, at(MONDAY, 10)))

    slots = {s.start_time: s for s in SlotGenerator(db, clock).slots(provider.id, MONDAY, MONDAY, haircut.id)}

    assert not slots[at(MONDAY, 9, 30)].is_available
    assert not slots[at(MONDAY, 10, 30)].is_available
    assert slots[at(MONDAY, 11)].is_available


def test_past_slots_are_unavailable(generator, clock, provider, haircut):
    clock.now = at(MONDAY, 11)
    slots = {s.start_time: s for s in generator.slots(provider.id, MONDAY, MONDAY, haircut.id)}

    assert slots[at(MONDAY, 10, 30)].block_reason == "past"
    assert slots[at(MONDAY, 11)].is_available


def test_range_longer_than_limit_is_rejected(generator, provider, haircut):
    with pytest.raises(ValidationError):
        generator.get_availability(provider.id, MONDAY, MONDAY + timedelta(days=40), haircut.id)


def test_unknown_provider(generator):
    with pytest.raises(NotFoundError):
        generator.get_availability("missing", MONDAY, MONDAY)


# ----------------------------------------------------------------------
# Rules, overrides and events
# ----------------------------------------------------------------------

def test_override_closes_day(db, clock, generator, provider, haircut):
    AvailabilityService(db, clock).set_override(
        provider.id, AvailabilityOverrideIn(date=MONDAY, is_available=False, reason="Holiday")
    )

    day = generator.get_availability(provider.id, MONDAY, MONDAY, haircut.id)[0]
    assert day.slots == []
    assert not day.business_hours.is_open


def test_override_custom_hours_replace_weekly_rule(db, clock, generator, provider, haircut):
    tuesday = MONDAY + timedelta(days=1)
    AvailabilityService(db, clock).set_override(
        provider.id,
        AvailabilityOverrideIn(
            date=tuesday,
            is_available=True,
            custom_hours=CustomHours(start_time=time(10, 0), end_time=time(12, 0)),
        ),
    )

    day = generator.get_availability(provider.id, tuesday, tuesday, haircut.id)[0]
    assert [s.start_time for s in day.slots] == [
        at(tuesday, 10), at(tuesday, 10, 30), at(tuesday, 11), at(tuesday, 11, 30)
    ]


def test_override_is_upserted(db, clock, provider):
    service = AvailabilityService(db, clock)
    service.set_override(provider.id, AvailabilityOverrideIn(date=MONDAY, is_available=False))
    service.set_override(provider.id, AvailabilityOverrideIn(date=MONDAY, is_available=True, reason="Back"))

    overrides = service.list_overrides(provider.id, MONDAY, MONDAY)
    assert len(overrides) == 1
    assert overrides[0].is_available
    assert overrides[0].reason == "Back"


def test_all_day_event_blocks_every_slot(db, clock, generator, provider, haircut):
    AvailabilityService(db, clock).add_event(
        provider.id,
        CalendarEventIn(title="Training", start_date=at(MONDAY, 0), all_day=True),
    )

    day = generator.get_availability(provider.id, MONDAY, MONDAY, haircut.id)[0]
    assert day.slots
    assert all(s.is_blocked for s in day.slots)
    assert day.slots[0].block_reason == "Training"
    assert ("00:00", "24:00", "Training") in [(b.start_time, b.end_time, b.reason) for b in day.breaks]


def test_timed_event_needs_end_date(db, clock, provider):
    with pytest.raises(ValidationError):
        AvailabilityService(db, clock).add_event(
            provider.id, CalendarEventIn(title="Dentist", start_date=at(MONDAY, 14))
        )


def test_set_rules_replaces_schedule(db, clock, generator, provider, haircut):
    service = AvailabilityService(db, clock)
    rules = service.set_rules(provider.id, [
        AvailabilityRuleIn(
            day_of_week=2,
            start_time=time(8, 0),
            end_time=time(10, 0),
            effective_from=date(2023, 1, 1),
            break_intervals=[BreakIntervalIn(start_time=time(9, 0), end_time=time(9, 30))],
        )
    ])

    assert len(rules) == 1
    assert rules[0].break_intervals[0].name == "Break"
    assert generator.get_availability(provider.id, MONDAY, MONDAY, haircut.id)[0].slots == []

    tuesday = MONDAY + timedelta(days=1)
    slots = generator.get_availability(provider.id, tuesday, tuesday, haircut.id)[0].slots
    assert [s.start_time for s in slots if s.is_available] == [at(tuesday, 8), at(tuesday, 8, 30), at(tuesday, 9, 30)]


@pytest.mark.parametrize("rule", [
    dict(start_time=time(17, 0), end_time=time(9, 0)),
    dict(start_time=time(9, 0), end_time=time(17, 0), effective_to=date(2022, 1, 1)),
    dict(start_time=time(9, 0), end_time=time(17, 0),
         break_intervals=[BreakIntervalIn(start_time=time(8, 0), end_time=time(9, 30))]),
    dict(start_time=time(9, 0), end_time=time(17, 0),
         break_intervals=[
             BreakIntervalIn(start_time=time(12, 0), end_time=time(13, 0)),
             BreakIntervalIn(start_time=time(12, 30), end_time=time(13, 30)),
         ]),
])
def test_invalid_rules_are_rejected_and_nothing_changes(db, clock, provider, rule):
    service = AvailabilityService(db, clock)
    with pytest.raises(ValidationError):
        service.set_rules(
            provider.id,
            [AvailabilityRuleIn(day_of_week=3, effective_from=date(2023, 1, 1), **rule)],
        )

    assert [r.day_of_week for r in service.get_rules(provider.id)] == [1]


def test_rule_outside_effective_range_is_ignored(db, clock, generator, provider, haircut):
    rule = AvailabilityService(db, clock).get_rules(provider.id)[0]
    rule.effective_to = date(2023, 12, 31)
    db.commit()

    assert generator.get_availability(provider.id, MONDAY, MONDAY, haircut.id)[0].slots == []
