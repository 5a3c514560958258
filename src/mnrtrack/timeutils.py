"""Conversions between wall-clock text, epoch timestamps and GTFS times."""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

SECONDS_PER_DAY = 86400

_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([AaPp]\.?[Mm]\.?)?\s*$")


def now(tz: ZoneInfo) -> datetime:
    return datetime.now(tz)


def from_epoch(seconds: Optional[int], tz: ZoneInfo) -> Optional[datetime]:
    """Epoch seconds to an aware datetime. Zero and missing values give None."""
    if not seconds:
        return None
    return datetime.fromtimestamp(seconds, timezone.utc).astimezone(tz)


def date_int(day: date) -> str:
    return day.strftime("%Y%m%d")


def parse_date_int(value: str) -> date:
    return datetime.strptime(value, "%Y%m%d").date()


def service_day_start(service_date: str, tz: ZoneInfo) -> datetime:
    """
    GTFS "midnight" of a service date.

    GTFS measures times from noon minus 12 hours so that service days
    spanning a DST change keep their timetabled offsets.
    """
    noon = datetime.combine(parse_date_int(service_date), time(12), tzinfo=tz)
    # UTC so that timedelta arithmetic is absolute rather than wall-clock
    return noon.astimezone(timezone.utc) - timedelta(hours=12)


def gtfs_to_datetime(service_date: str, seconds: int, tz: ZoneInfo) -> datetime:
    return (service_day_start(service_date, tz) + timedelta(seconds=seconds)).astimezone(tz)


def datetime_to_gtfs(moment: datetime, service_date: str, tz: ZoneInfo) -> int:
    return int((moment - service_day_start(service_date, tz)).total_seconds())


def candidate_service_dates(moment: datetime) -> List[str]:
    """Service dates a moment can belong to: its calendar day, then the day before."""
    day = moment.date()
    return [date_int(day), date_int(day - timedelta(days=1))]


def parse_clock(text: str) -> time:
    """
    Parse a wall-clock string such as "8:05 PM", "8:05pm" or "20:05".

    Raises:
        ValueError: If the text is not a clock time.
    """
    match = _CLOCK_RE.match(text)
    if not match:
        raise ValueError(f"Not a clock time: {text!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    meridiem = match.group(4)
    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError(f"Not a clock time: {text!r}")
        is_pm = meridiem.lower().startswith("p")
        hour = hour % 12 + (12 if is_pm else 0)
    return time(hour, minute, second)


def resolve_clock(text: str, reference: datetime) -> datetime:
    """
    Place a wall-clock time on the calendar day closest to ``reference``.

    A "12:10 AM" departure read at 11:50 PM belongs to the next day; an
    "11:55 PM" departure read at 12:05 AM belongs to the day before.
    """
    clock = parse_clock(text)
    tz = reference.tzinfo
    day = reference.date()
    candidates = [
        datetime.combine(day + timedelta(days=offset), clock, tzinfo=tz)
        for offset in (-1, 0, 1)
    ]
    return min(candidates, key=lambda c: abs((c - reference).total_seconds()))


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounded to the nearest minute."""
    elapsed = end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return int(round(elapsed.total_seconds() / 60.0))
