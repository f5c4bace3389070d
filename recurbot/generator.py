"""Lazy occurrence generation.

``OccurrenceGenerator`` walks a rule period by period, asks the
``FieldExpander`` for each period's candidates and hands them out one at a
time. Nothing is computed until the caller pulls the next occurrence, so
unbounded rules are safe to iterate as long as the caller stops pulling.
"""

import logging
from collections import deque
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional, Union

from dateutil.relativedelta import relativedelta

from .bounds import DEFAULT_MAX_EMPTY_PERIODS, BoundsController, ExhaustionReason, cycle_ceiling
from .datetime_utils import combine, comparable_to, normalize_anchor
from .exceptions import IterationLimitExceeded
from .expander import FieldExpander
from .models import Frequency, RuleSpec
from .parser import parse_rule

logger = logging.getLogger(__name__)

AnchorType = Union[date, datetime]


class GeneratorState(str, Enum):
    POSITIONED = "positioned"
    EXHAUSTED = "exhausted"


def period_start(frequency: Frequency, day: date, week_start: int) -> date:
    """Return the first day of the period of ``frequency`` containing ``day``."""
    if frequency == Frequency.YEARLY:
        return date(day.year, 1, 1)
    if frequency == Frequency.MONTHLY:
        return day.replace(day=1)
    if frequency == Frequency.WEEKLY:
        return day - timedelta(days=(day.weekday() - week_start) % 7)
    return day


def advance_period(frequency: Frequency, start: date, periods: int) -> date:
    """Move a period start forward by ``periods`` periods.

    Sub-daily rules are scanned a day at a time, so for them a period is a day.

    Raises:
        OverflowError, ValueError: When the result would pass ``date.max``
    """
    if frequency == Frequency.YEARLY:
        return date(start.year + periods, 1, 1)
    if frequency == Frequency.MONTHLY:
        return start + relativedelta(months=periods)
    if frequency == Frequency.WEEKLY:
        return start + timedelta(weeks=periods)
    return start + timedelta(days=periods)


def periods_between(frequency: Frequency, first: date, second: date) -> int:
    """Whole periods from period start ``first`` to period start ``second``."""
    if frequency == Frequency.YEARLY:
        return second.year - first.year
    if frequency == Frequency.MONTHLY:
        return (second.year - first.year) * 12 + second.month - first.month
    if frequency == Frequency.WEEKLY:
        return (second - first).days // 7
    return (second - first).days


class OccurrenceGenerator:
    """Iterator over the occurrences of a rule from an anchor.

    COUNT always applies to the full sequence from the anchor. A window
    (``range_start``/``range_end``) only filters what is returned: matches
    before the window still consume COUNT.

    When the empty-period guard fires the sequence ends and ``exhaustion``
    is ``ExhaustionReason.ITERATION_LIMIT``; with ``raise_on_limit=True``
    ``IterationLimitExceeded`` is raised instead.
    """

    def __init__(
        self,
        spec: RuleSpec,
        anchor: AnchorType,
        *,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
        inclusive: bool = True,
        settings: Any = None,
        raise_on_limit: bool = False,
    ):
        self.spec = spec
        self.anchor = normalize_anchor(anchor)
        self.expander = FieldExpander(spec, self.anchor)
        self.raise_on_limit = raise_on_limit
        self.inclusive = inclusive

        self.range_start = self._align(range_start)
        self.range_end = self._align(range_end)
        until = self._align(spec.until)

        max_empty_periods = getattr(settings, "max_empty_periods", DEFAULT_MAX_EMPTY_PERIODS)
        ceiling = cycle_ceiling(spec.frequency, spec.interval)
        if ceiling is not None:
            max_empty_periods = min(max_empty_periods, ceiling)

        self.bounds = BoundsController(
            count=spec.count,
            until=until,
            range_end=self.range_end,
            range_end_inclusive=inclusive,
            max_empty_periods=max_empty_periods,
        )
        if self.expander.never_matches:
            self.bounds.give_up()

        self.emitted = 0
        self.state = GeneratorState.POSITIONED
        self._pending: deque[datetime] = deque()
        self._limit_reported = False
        self._step = 1 if spec.frequency.is_sub_daily() else spec.interval
        self._cursor = period_start(spec.frequency, self.anchor.date(), int(spec.week_start))

        if self.range_start is not None and spec.count is None:
            self._seek(self.range_start)

        logger.debug(
            "OccurrenceGenerator: rule=%s anchor=%s window=[%s, %s] cursor=%s",
            spec,
            self.anchor.isoformat(),
            self.range_start.isoformat() if self.range_start else "-",
            self.range_end.isoformat() if self.range_end else "-",
            self._cursor.isoformat(),
        )

    def _align(self, value: Optional[AnchorType]) -> Optional[datetime]:
        if value is None:
            return None
        return comparable_to(normalize_anchor(value), self.anchor)

    @property
    def exhaustion(self) -> Optional[ExhaustionReason]:
        """Reason the sequence ended, or None while it can still produce."""
        if self.state == GeneratorState.EXHAUSTED:
            return self.bounds.reason
        return None

    @property
    def hit_iteration_limit(self) -> bool:
        return self.exhaustion == ExhaustionReason.ITERATION_LIMIT

    def __iter__(self) -> "OccurrenceGenerator":
        return self

    def __next__(self) -> datetime:
        while not self._pending:
            if self.bounds.exhausted:
                self._finish()
                raise StopIteration
            self._scan_period()
        self.emitted += 1
        return self._pending.popleft()

    def _finish(self) -> None:
        self.state = GeneratorState.EXHAUSTED
        if (
            self.raise_on_limit
            and self.bounds.reason == ExhaustionReason.ITERATION_LIMIT
            and not self._limit_reported
        ):
            self._limit_reported = True
            raise IterationLimitExceeded(self.bounds.max_empty_periods, self.emitted)

    def _in_window(self, candidate: datetime) -> bool:
        if self.range_start is None:
            return True
        if self.inclusive:
            return candidate >= self.range_start
        return candidate > self.range_start

    def _scan_period(self) -> None:
        """Expand the period under the cursor, queue its eligible candidates, advance."""
        cursor = self._cursor
        if not self.bounds.check_period_start(combine(cursor, 0, 0, 0, self.anchor.tzinfo)):
            return

        matched_any = False
        for group in self.expander.expand(cursor):
            for candidate in group:
                if candidate < self.anchor:
                    continue
                if not self.bounds.admit(candidate):
                    return
                matched_any = True
                self.bounds.record_match()
                if self._in_window(candidate):
                    self._pending.append(candidate)
                if self.bounds.exhausted:
                    return

        self.bounds.finish_period(matched_any)
        try:
            self._cursor = advance_period(self.spec.frequency, cursor, self._step)
        except (OverflowError, ValueError):
            logger.debug("Recurrence cursor reached the end of the calendar at %s", cursor)
            self.bounds.calendar_end()

    def _seek(self, target: datetime) -> None:
        """Jump the cursor to the interval-aligned period containing ``target``."""
        freq = self.spec.frequency
        target_period = period_start(freq, target.date(), int(self.spec.week_start))
        if target_period <= self._cursor:
            return

        if freq.is_sub_daily():
            skip = (target_period - self._cursor).days
        else:
            elapsed = periods_between(freq, self._cursor, target_period)
            skip = elapsed // self.spec.interval * self.spec.interval
        if skip <= 0:
            return

        try:
            self._cursor = advance_period(freq, self._cursor, skip)
        except (OverflowError, ValueError):
            self.bounds.calendar_end()
            return
        logger.debug("Seeked %d periods forward to %s for window start %s", skip, self._cursor, target)


def _coerce_spec(spec: Union[RuleSpec, str]) -> RuleSpec:
    if isinstance(spec, str):
        return parse_rule(spec)
    return spec


def occurrences(
    spec: Union[RuleSpec, str],
    anchor: AnchorType,
    *,
    settings: Any = None,
    raise_on_limit: bool = False,
) -> OccurrenceGenerator:
    """Return the lazy occurrence sequence of ``spec`` starting at ``anchor``.

    The sequence is bounded only by the rule's own COUNT/UNTIL; without
    either it is unbounded and the caller decides when to stop.
    """
    return OccurrenceGenerator(
        _coerce_spec(spec), anchor, settings=settings, raise_on_limit=raise_on_limit
    )


def occurrences_between(
    spec: Union[RuleSpec, str],
    anchor: AnchorType,
    start: AnchorType,
    end: AnchorType,
    *,
    inclusive: bool = True,
    settings: Any = None,
    raise_on_limit: bool = False,
) -> OccurrenceGenerator:
    """Return the occurrences of ``spec`` falling inside ``[start, end]``.

    This is a view over ``occurrences``: COUNT is consumed by matches before
    ``start`` too. With ``inclusive=False`` both ends are open.
    """
    return OccurrenceGenerator(
        _coerce_spec(spec),
        anchor,
        range_start=normalize_anchor(start),
        range_end=normalize_anchor(end),
        inclusive=inclusive,
        settings=settings,
        raise_on_limit=raise_on_limit,
    )


def occurrences_after(
    spec: Union[RuleSpec, str],
    anchor: AnchorType,
    instant: AnchorType,
    *,
    inclusive: bool = False,
    settings: Any = None,
    raise_on_limit: bool = False,
) -> OccurrenceGenerator:
    """Return the occurrences of ``spec`` strictly after ``instant`` (or at it, if inclusive)."""
    return OccurrenceGenerator(
        _coerce_spec(spec),
        anchor,
        range_start=normalize_anchor(instant),
        inclusive=inclusive,
        settings=settings,
        raise_on_limit=raise_on_limit,
    )
