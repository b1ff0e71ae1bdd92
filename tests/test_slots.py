"""Tests for slot generation and wall-clock helpers."""

from datetime import date, datetime, time
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from carequeue.scheduling.clock import (
    combine,
    format_hhmm,
    is_on_slot_grid,
    js_day_of_week,
    localize,
    normalize_hhmm,
    parse_hhmm,
)
from carequeue.scheduling.slots import generate_slots, iter_window_starts
from carequeue.schemas.availability import AvailabilityWindow

MONDAY = date(2026, 10, 19)
FRIDAY = date(2026, 10, 23)


def window(day: int, start: str, end: str, available: bool = True) -> AvailabilityWindow:
    return AvailabilityWindow(
        clinician_id=uuid4(),
        day_of_week=day,
        start_time=start,
        end_time=end,
        is_available=available,
    )


def times(slots) -> list[str]:
    return [slot.time for slot in slots]


def test_day_window_excludes_booked_time():
    """Monday 09:00-17:00 with 10:00 booked."""
    slots = generate_slots(MONDAY, [window(1, "09:00", "17:00")], {"10:00"})

    result = times(slots)
    assert "10:00" not in result
    assert result[0] == "09:00"
    assert result[1] == "09:30"
    assert result[2] == "10:30"
    assert result[-1] == "16:30"
    assert len(result) == 15
    assert all(slot.date == MONDAY for slot in slots)


def test_overnight_window_continues_past_midnight():
    """Friday 22:00-02:00 runs into Saturday morning."""
    slots = generate_slots(FRIDAY, [window(5, "22:00", "02:00")], set())

    assert set(times(slots)) == {
        "22:00",
        "22:30",
        "23:00",
        "23:30",
        "00:00",
        "00:30",
        "01:00",
        "01:30",
    }


def test_window_on_other_weekday_is_ignored():
    assert generate_slots(MONDAY, [window(2, "09:00", "12:00")], set()) == []


def test_unavailable_window_is_ignored():
    assert generate_slots(MONDAY, [window(1, "09:00", "12:00", available=False)], set()) == []


def test_equal_start_and_end_yields_nothing():
    assert list(iter_window_starts("09:00", "09:00")) == []


def test_window_walk_never_exceeds_one_day():
    starts = list(iter_window_starts("00:30", "00:00"))
    assert len(starts) == 47
    assert starts[0] == "00:30"
    assert starts[-1] == "23:30"


def test_overlapping_windows_do_not_duplicate():
    slots = generate_slots(
        MONDAY,
        [window(1, "09:00", "11:00"), window(1, "10:00", "12:00")],
        set(),
    )
    assert times(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]


def test_slots_are_sorted_and_free():
    booked = {"09:30", "11:00"}
    slots = generate_slots(
        MONDAY,
        [window(1, "13:00", "14:00"), window(1, "09:00", "12:00")],
        booked,
    )
    result = times(slots)
    assert result == sorted(result)
    assert not booked & set(result)
    assert all(parse_hhmm(t) % 30 == 0 for t in result)


def test_fully_booked_day_is_empty():
    booked = {"09:00", "09:30"}
    assert generate_slots(MONDAY, [window(1, "09:00", "10:00")], booked) == []


@pytest.mark.parametrize(
    "value,expected",
    [
        ("09:00", "09:00"),
        ("09:30:00", "09:30"),
        (time(14, 0), "14:00"),
        (" 07:30 ", "07:30"),
    ],
)
def test_normalize_hhmm(value, expected):
    assert normalize_hhmm(value) == expected


@pytest.mark.parametrize("value", ["24:00", "9:00", "09:60", "noon"])
def test_parse_hhmm_rejects_malformed(value):
    with pytest.raises(ValueError):
        parse_hhmm(value)


def test_format_hhmm_wraps_past_midnight():
    assert format_hhmm(25 * 60 + 30) == "01:30"


def test_slot_grid():
    assert is_on_slot_grid("10:30")
    assert not is_on_slot_grid("10:15")


def test_day_of_week_counts_from_sunday():
    assert js_day_of_week(date(2026, 10, 18)) == 0
    assert js_day_of_week(MONDAY) == 1
    assert js_day_of_week(date(2026, 10, 24)) == 6


def test_localize_treats_naive_times_as_clinic_time():
    tz = ZoneInfo("Europe/Berlin")
    naive = datetime(2026, 10, 19, 14, 0)
    assert localize(naive, tz) == combine(MONDAY, "14:00", tz)
