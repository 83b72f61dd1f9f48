"""Calendar helpers for day-scoped signal windows."""

import os
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

import pytz

# Time zone that defines "today" for daily summaries and briefs
APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "Europe/London")

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DayWindow:
    """Half-open [start, end) UTC interval covering one application day."""

    start: datetime
    end: datetime

    @property
    def date(self) -> str:
        return self.start.date().isoformat()

    def contains(self, moment: datetime) -> bool:
        return self.start <= as_utc(moment) < self.end


def as_utc(moment: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def start_of_day_in_timezone(moment: datetime, tz_name: str = APP_TIMEZONE) -> datetime:
    """
    Calendar date of `moment` as seen in `tz_name`, stamped at 00:00 UTC.

    Stored brief dates and event windows use this UTC-midnight convention
    rather than the zone's own local midnight.

    Args:
        moment: Point in time (naive values are treated as UTC)
        tz_name: IANA zone name, e.g. "Europe/London"

    Returns:
        Aware UTC datetime at midnight of the local calendar date
    """
    local = as_utc(moment).astimezone(pytz.timezone(tz_name))
    return datetime(local.year, local.month, local.day, tzinfo=timezone.utc)


def day_window(
    day: str | date | None = None,
    tz_name: str = APP_TIMEZONE,
    now: datetime | None = None,
) -> DayWindow:
    """
    Build the 24h window for a requested day.

    Args:
        day: "YYYY-MM-DD", a date, or None for the current day
        tz_name: IANA zone name used to pick the current calendar date
        now: Override for the current time (None = system clock)

    Returns:
        DayWindow starting at the day's UTC-midnight stamp

    Raises:
        ValueError: If day is a string that is not an ISO date
    """
    if day is None:
        start = start_of_day_in_timezone(now or datetime.now(timezone.utc), tz_name)
    else:
        if isinstance(day, str):
            day = date.fromisoformat(day.strip())
        # Explicit dates are already calendar dates
        start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)

    return DayWindow(start=start, end=start + ONE_DAY)


def days_between(a: datetime, b: datetime) -> int:
    """Whole days from a to b, floored (negative when b precedes a)."""
    delta = as_utc(b) - as_utc(a)
    return delta // ONE_DAY
