"""Per-period candidate expansion for recurrence rules.

A BY-field either expands a period into several candidates (BYMONTHDAY on a
MONTHLY rule) or limits the days and times a period produces (BYMONTH on a
DAILY rule). Absent fields fall back to the anchor's components, which is
what makes a bare ``FREQ=DAILY`` repeat the anchor's time of day.
"""

import logging
from collections.abc import Iterable, Iterator
from datetime import date, datetime, timedelta
from itertools import product
from typing import Optional

from .datetime_utils import combine, days_in_month, days_in_year, week_number
from .models import Frequency, RuleSpec

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

_SUB_DAILY_UNIT_SECONDS = {
    Frequency.HOURLY: 3600,
    Frequency.MINUTELY: 60,
    Frequency.SECONDLY: 1,
}

# datetime cannot represent a leap second.
_MAX_SECOND = 59

Group = list[datetime]


def select_positions(candidates: list[datetime], positions: Iterable[int]) -> list[datetime]:
    """Apply BYSETPOS to a sorted candidate list.

    Positive positions count from 1 at the front, negative ones from -1 at
    the back. Positions past either end select nothing.
    """
    size = len(candidates)
    picked = set()
    for pos in positions:
        index = pos - 1 if pos > 0 else size + pos
        if 0 <= index < size:
            picked.add(index)
    return [candidates[i] for i in sorted(picked)]


class FieldExpander:
    """Generate the candidate date-times of one period of a rule."""

    def __init__(self, spec: RuleSpec, anchor: datetime):
        self.spec = spec
        self.anchor = anchor
        self.frequency = spec.frequency
        self.tzinfo = anchor.tzinfo

        self.by_month = set(spec.by_month)
        self.by_month_day = set(spec.by_month_day)
        self.plain_weekdays = {int(ref.weekday) for ref in spec.by_day if ref.ordinal is None}
        self.nth_weekdays = {
            (int(ref.weekday), ref.ordinal) for ref in spec.by_day if ref.ordinal is not None
        }

        if not (spec.by_week_no or spec.by_year_day or spec.by_month_day or spec.by_day):
            if self.frequency == Frequency.YEARLY:
                if not self.by_month:
                    self.by_month = {anchor.month}
                self.by_month_day = {anchor.day}
            elif self.frequency == Frequency.MONTHLY:
                self.by_month_day = {anchor.day}
            elif self.frequency == Frequency.WEEKLY:
                self.plain_weekdays = {anchor.weekday()}

        # Ordinal weekdays count within the month for MONTHLY rules and for
        # YEARLY rules narrowed by BYMONTH, otherwise within the year.
        self.nth_within_month = self.frequency == Frequency.MONTHLY or bool(self.by_month)

        rank = self.frequency.rank
        self.hours = self._time_values(spec.by_hour, anchor.hour, rank > Frequency.HOURLY.rank)
        self.minutes = self._time_values(
            spec.by_minute, anchor.minute, rank > Frequency.MINUTELY.rank
        )
        self.seconds = self._time_values(
            {s for s in spec.by_second if s <= _MAX_SECOND} if spec.by_second else None,
            anchor.second,
            rank > Frequency.SECONDLY.rank,
            explicit=bool(spec.by_second),
        )
        self.time_set = list(product(self.hours, self.minutes, self.seconds))

        self.unit_indices: list[int] = []
        if self.frequency.is_sub_daily():
            self.unit_indices = self._sub_daily_units()
            self._unit_index_set = set(self.unit_indices)
        self.never_matches = self._never_matches()

        logger.debug(
            "FieldExpander ready: freq=%s by_month=%s by_month_day=%s weekdays=%s nth=%s times=%d",
            self.frequency.value,
            sorted(self.by_month),
            sorted(self.by_month_day),
            sorted(self.plain_weekdays),
            sorted(self.nth_weekdays),
            len(self.time_set),
        )

    @staticmethod
    def _time_values(
        values: Optional[Iterable[int]],
        anchor_value: int,
        defaults_to_anchor: bool,
        explicit: Optional[bool] = None,
    ) -> list[int]:
        if explicit is None:
            explicit = bool(values)
        if explicit:
            return sorted(values or ())
        return [anchor_value] if defaults_to_anchor else []

    def _sub_daily_units(self) -> list[int]:
        """Indices (in units of the frequency) within a day that pass BYHOUR/BYMINUTE/BYSECOND."""
        spec = self.spec
        hours = sorted(spec.by_hour) if spec.by_hour else range(24)
        if self.frequency == Frequency.HOURLY:
            return list(hours)

        minutes = sorted(spec.by_minute) if spec.by_minute else range(60)
        if self.frequency == Frequency.MINUTELY:
            return [hour * 60 + minute for hour in hours for minute in minutes]

        if spec.by_second:
            seconds = [s for s in sorted(spec.by_second) if s <= _MAX_SECOND]
        else:
            seconds = list(range(60))
        return [
            (hour * 60 + minute) * 60 + second
            for hour in hours
            for minute in minutes
            for second in seconds
        ]

    def _never_matches(self) -> bool:
        """Return True when the time fields or BYSETPOS rule out every candidate."""
        if self.frequency.is_sub_daily():
            if not self.unit_indices:
                return True
            group_size = {
                Frequency.HOURLY: len(self.minutes) * len(self.seconds),
                Frequency.MINUTELY: len(self.seconds),
                Frequency.SECONDLY: 1,
            }[self.frequency]
        elif not self.time_set:
            return True
        elif self.frequency == Frequency.DAILY:
            group_size = len(self.time_set)
        else:
            return False

        if group_size == 0:
            return True
        positions = self.spec.by_set_pos
        return bool(positions) and all(abs(pos) > group_size for pos in positions)

    def period_days(self, period_start: date) -> Iterator[date]:
        """Yield the days of the period beginning at ``period_start``."""
        freq = self.frequency
        if freq == Frequency.YEARLY:
            year = period_start.year
            months = sorted(self.by_month) if self.by_month else range(1, 13)
            for month in months:
                for day in range(1, days_in_month(year, month) + 1):
                    yield date(year, month, day)
        elif freq == Frequency.MONTHLY:
            for day in range(1, days_in_month(period_start.year, period_start.month) + 1):
                yield period_start.replace(day=day)
        elif freq == Frequency.WEEKLY:
            for offset in range(7):
                try:
                    yield period_start + timedelta(days=offset)
                except OverflowError:
                    return
        else:
            yield period_start

    def day_matches(self, day: date) -> bool:
        """Apply the day-level BY-fields to ``day``."""
        spec = self.spec
        if self.by_month and day.month not in self.by_month:
            return False

        if spec.by_week_no:
            week_no, total = week_number(day, int(spec.week_start))
            if week_no not in spec.by_week_no and week_no - total - 1 not in spec.by_week_no:
                return False

        if spec.by_year_day:
            yday = day.timetuple().tm_yday
            negative = yday - days_in_year(day.year) - 1
            if yday not in spec.by_year_day and negative not in spec.by_year_day:
                return False

        if self.by_month_day:
            negative = day.day - days_in_month(day.year, day.month) - 1
            if day.day not in self.by_month_day and negative not in self.by_month_day:
                return False

        if self.plain_weekdays or self.nth_weekdays:
            return self._weekday_matches(day)
        return True

    def _weekday_matches(self, day: date) -> bool:
        weekday = day.weekday()
        if weekday in self.plain_weekdays:
            return True
        if not self.nth_weekdays:
            return False

        if self.nth_within_month:
            position, length = day.day, days_in_month(day.year, day.month)
        else:
            position, length = day.timetuple().tm_yday, days_in_year(day.year)
        from_start = (position - 1) // 7 + 1
        from_end = -((length - position) // 7 + 1)
        return (weekday, from_start) in self.nth_weekdays or (weekday, from_end) in self.nth_weekdays

    def expand(self, period_start: date) -> Iterator[Group]:
        """Yield the candidate groups of one period, in ascending order.

        Each group is the sorted candidate set of one rule period with
        BYSETPOS already applied. Daily and coarser rules produce a single
        group; sub-daily rules are scanned a day at a time and produce one
        group per hour, minute or second.
        """
        if self.frequency.is_sub_daily():
            yield from self._expand_sub_daily(period_start)
            return

        candidates = [
            combine(day, hour, minute, second, self.tzinfo)
            for day in self.period_days(period_start)
            if self.day_matches(day)
            for hour, minute, second in self.time_set
        ]
        if self.spec.by_set_pos:
            candidates = select_positions(candidates, self.spec.by_set_pos)
        if candidates:
            yield candidates

    def _expand_sub_daily(self, day: date) -> Iterator[Group]:
        if not self.day_matches(day):
            return

        unit = _SUB_DAILY_UNIT_SECONDS[self.frequency]
        anchor = self.anchor
        anchor_units = (
            anchor.toordinal() * SECONDS_PER_DAY
            + anchor.hour * 3600
            + anchor.minute * 60
            + anchor.second
        ) // unit
        day_units = day.toordinal() * SECONDS_PER_DAY // unit
        interval = self.spec.interval
        first = (anchor_units - day_units) % interval

        # Walk whichever is shorter: the interval-aligned units of the day or
        # the units the BY-fields allow.
        aligned_count = (SECONDS_PER_DAY // unit - first + interval - 1) // interval
        if aligned_count < len(self.unit_indices):
            indices = (
                index
                for index in range(first, SECONDS_PER_DAY // unit, interval)
                if index in self._unit_index_set
            )
        else:
            indices = (index for index in self.unit_indices if (index - first) % interval == 0)

        spec = self.spec
        for index in indices:
            hour, rest = divmod(index * unit, 3600)
            minute, second = divmod(rest, 60)
            if self.frequency == Frequency.HOURLY:
                times = product([hour], self.minutes, self.seconds)
            elif self.frequency == Frequency.MINUTELY:
                times = product([hour], [minute], self.seconds)
            else:
                times = iter([(hour, minute, second)])

            group = [combine(day, h, m, s, self.tzinfo) for h, m, s in times]
            if spec.by_set_pos:
                group = select_positions(group, spec.by_set_pos)
            if group:
                yield group
