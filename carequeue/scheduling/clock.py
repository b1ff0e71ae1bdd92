"""Wall-clock helpers shared by slot generation and queue gating.

Times of day travel as ``HH:MM`` strings, the same shape appointments and
availability windows are stored in. Nothing here reads the system clock.
"""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo

SLOT_MINUTES = 30
MINUTES_PER_DAY = 24 * 60
# Number of slot starts in one day; bounds every window walk
SLOTS_PER_DAY = MINUTES_PER_DAY // SLOT_MINUTES

SLOT_LENGTH = timedelta(minutes=SLOT_MINUTES)

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> int:
    """Return minutes after midnight for an ``HH:MM`` string."""
    match = _HHMM.match(value)
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    """Format minutes after midnight as ``HH:MM``, wrapping past midnight."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_on_slot_grid(value: str) -> bool:
    return parse_hhmm(value) % SLOT_MINUTES == 0


def normalize_hhmm(value: str | time) -> str:
    """Accept ``HH:MM``, ``HH:MM:SS`` or a ``time`` and return ``HH:MM``."""
    if isinstance(value, time):
        return f"{value.hour:02d}:{value.minute:02d}"
    value = value.strip()
    if len(value) == 8 and value.endswith(":00"):
        value = value[:5]
    return format_hhmm(parse_hhmm(value))


def js_day_of_week(on_date: date) -> int:
    """Day number with 0 = Sunday ... 6 = Saturday."""
    return (on_date.weekday() + 1) % 7


def localize(moment: datetime, tz: tzinfo) -> datetime:
    """Express ``moment`` in ``tz``; naive values are taken as clinic wall-clock."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=tz)
    return moment.astimezone(tz)


def combine(on_date: date, hhmm: str, tz: tzinfo) -> datetime:
    """Clinic-local aware datetime for a date and an ``HH:MM`` time."""
    minutes = parse_hhmm(hhmm)
    return datetime.combine(on_date, time(minutes // 60, minutes % 60), tzinfo=tz)


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from the database."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
