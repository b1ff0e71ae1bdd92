"""Bookable slot generation.

Turns a clinician's weekly availability windows and the times already
booked on a date into the ordered list of free 30-minute slot starts.
Both the clinician self-service view and the booking flow go through
:func:`generate_slots`.
"""

from collections.abc import Collection, Iterable, Iterator
from datetime import date

from carequeue.scheduling.clock import (
    MINUTES_PER_DAY,
    SLOT_MINUTES,
    SLOTS_PER_DAY,
    format_hhmm,
    js_day_of_week,
    parse_hhmm,
)
from carequeue.schemas.availability import AvailabilityWindowBase, Slot


def iter_window_starts(start_time: str, end_time: str) -> Iterator[str]:
    """
    Yield every slot start inside one window.

    Overnight windows (end before start) keep going past midnight until the
    wrapped clock reaches the end. A window whose start equals its end is
    empty. The walk never yields more than one day's worth of slots.

    Args:
        start_time: Window start, HH:MM
        end_time: Window end, HH:MM

    Yields:
        Slot start times as HH:MM
    """
    start = parse_hhmm(start_time)
    end = parse_hhmm(end_time)

    if start == end:
        return

    # Overnight ends are measured on the following day
    stop = end if end > start else end + MINUTES_PER_DAY

    current = start
    emitted = 0
    while current < stop and emitted < SLOTS_PER_DAY:
        yield format_hhmm(current)
        current += SLOT_MINUTES
        emitted += 1


def windows_for_day(
    windows: Iterable[AvailabilityWindowBase],
    on_date: date,
) -> list[AvailabilityWindowBase]:
    """Keep the available windows that fall on the weekday of ``on_date``."""
    day = js_day_of_week(on_date)
    return [w for w in windows if w.is_available and w.day_of_week == day]


def generate_slots(
    on_date: date,
    windows: Iterable[AvailabilityWindowBase],
    booked_times: Collection[str],
) -> list[Slot]:
    """
    Compute the free slots of a clinician for one date.

    Windows are walked independently and their starts unioned, so
    overlapping windows never produce duplicates.

    Args:
        on_date: Requested date
        windows: Clinician availability windows (other weekdays are ignored)
        booked_times: HH:MM times held by non-cancelled appointments

    Returns:
        Free slots sorted by time; empty when no window covers the weekday
    """
    booked = set(booked_times)
    free: set[str] = set()

    for window in windows_for_day(windows, on_date):
        for candidate in iter_window_starts(window.start_time, window.end_time):
            if candidate not in booked:
                free.add(candidate)

    return [Slot(date=on_date, time=value) for value in sorted(free)]
