"""Calendar arithmetic helpers shared by the parser and the expansion engine."""

import calendar
import logging
from datetime import UTC, date, datetime, timedelta
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Formats accepted for UNTIL values, most specific first.
UNTIL_FORMATS = [
    "%Y%m%dT%H%M%S",  # 20250623T083000
    "%Y-%m-%dT%H:%M:%S",  # 2025-06-23T08:30:00
    "%Y%m%d",  # 20250623
    "%Y-%m-%d",  # 2025-06-23
]


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def days_in_year(year: int) -> int:
    return 366 if calendar.isleap(year) else 365


def week_one_start(year: int, week_start: int) -> date:
    """Return the first day of week 1 of ``year``.

    Week 1 is the first week (starting on ``week_start``) holding at least
    four days of the year, i.e. the week that contains January 4th.
    """
    jan4 = date(year, 1, 4)
    return jan4 - timedelta(days=(jan4.weekday() - week_start) % 7)


def weeks_in_year(year: int, week_start: int) -> int:
    """Return 52 or 53, the number of numbered weeks in ``year``."""
    dec31 = date(year, 12, 31)
    last_week = dec31 - timedelta(days=(dec31.weekday() - week_start) % 7)
    weeks = (last_week - week_one_start(year, week_start)).days // 7
    # The week holding Dec 31 counts only if at least four of its days fall in this year.
    if (dec31 - last_week).days + 1 >= 4:
        weeks += 1
    return weeks


def week_number(day: date, week_start: int) -> tuple[int, int]:
    """Return ``(week_no, weeks_in_that_year)`` for ``day``.

    Days before week 1 belong to the previous year's last week; days on or
    after the next year's week 1 belong to that week.
    """
    year = day.year
    start = week_one_start(year, week_start)
    if day < start:
        year -= 1
    elif year < datetime.max.year and day >= week_one_start(year + 1, week_start):
        year += 1
    start = week_one_start(year, week_start)
    return (day - start).days // 7 + 1, weeks_in_year(year, week_start)


def normalize_anchor(anchor: Union[date, datetime]) -> datetime:
    """Coerce an anchor into a ``datetime`` with second resolution."""
    if isinstance(anchor, datetime):
        return anchor.replace(microsecond=0)
    if isinstance(anchor, date):
        return datetime(anchor.year, anchor.month, anchor.day)
    raise TypeError(f"Anchor must be a date or datetime, got {type(anchor).__name__}")


def comparable_to(value: datetime, anchor: datetime) -> datetime:
    """Express ``value`` so it can be compared with occurrences of ``anchor``.

    Floating (naive) anchors compare against naive wall-clock values: an
    aware value is converted to UTC and its tzinfo dropped. Aware anchors
    compare against aware values; a naive value is taken as wall-clock time
    in the anchor's zone.
    """
    if anchor.tzinfo is None:
        if value.tzinfo is None:
            return value
        return value.astimezone(UTC).replace(tzinfo=None)
    if value.tzinfo is None:
        return value.replace(tzinfo=anchor.tzinfo)
    return value.astimezone(anchor.tzinfo)


def parse_until(raw: str) -> datetime:
    """Parse an UNTIL token.

    A trailing ``Z`` marks the value as UTC; anything else is floating.

    Raises:
        ValueError: If the token matches none of the accepted formats
    """
    text = raw.strip()
    is_utc = text.upper().endswith("Z")
    if is_utc:
        text = text[:-1]

    for fmt in UNTIL_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:  # noqa: PERF203
            continue
        return parsed.replace(tzinfo=UTC) if is_utc else parsed

    raise ValueError(f"Unable to parse datetime: {raw}")


def format_until(value: datetime) -> str:
    """Format an UNTIL value; aware values are written in UTC with ``Z``.

    Years are always four digits, which ``strftime("%Y")`` does not guarantee
    for years below 1000.
    """
    suffix = ""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
        suffix = "Z"
    return (
        f"{value.year:04d}{value.month:02d}{value.day:02d}"
        f"T{value.hour:02d}{value.minute:02d}{value.second:02d}{suffix}"
    )


def combine(day: date, hour: int, minute: int, second: int, tzinfo: Optional[object]) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=tzinfo)  # type: ignore[arg-type]
