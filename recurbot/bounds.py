"""Termination bookkeeping for occurrence generators."""

import logging
import math
from datetime import datetime
from enum import Enum
from typing import Optional

from .models import Frequency

logger = logging.getLogger(__name__)

# Consecutive periods without a single match before a generator gives up.
# Sub-daily rules are scanned a day at a time, so for them the unit is days.
DEFAULT_MAX_EMPTY_PERIODS = 10_000

# The Gregorian calendar repeats itself, weekdays included, every 400 years.
_CALENDAR_CYCLE_PERIODS = {
    Frequency.YEARLY: 400,
    Frequency.MONTHLY: 400 * 12,
}


def cycle_ceiling(frequency: Frequency, interval: int) -> Optional[int]:
    """Return the empty-period count after which a rule can never match again.

    Periods ``k`` and ``k + cycle // gcd(interval, cycle)`` have the same
    calendar layout, so a rule that matched nothing over one full cycle
    never will. One extra period covers the first one, which is cut short
    by the anchor. Returns None for frequencies whose default ceiling is
    reached long before the calendar ends.
    """
    cycle = _CALENDAR_CYCLE_PERIODS.get(frequency)
    if cycle is None:
        return None
    return cycle // math.gcd(interval, cycle) + 1


class ExhaustionReason(str, Enum):
    """Why a generator stopped producing occurrences."""

    COUNT = "count"
    UNTIL = "until"
    RANGE_END = "range_end"
    ITERATION_LIMIT = "iteration_limit"
    CALENDAR_END = "calendar_end"


class BoundsController:
    """Track COUNT, UNTIL, window end and the empty-period guard.

    ``until`` and ``range_end`` must already be comparable with the
    candidates (see ``datetime_utils.comparable_to``).
    """

    def __init__(
        self,
        count: Optional[int] = None,
        until: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
        range_end_inclusive: bool = True,
        max_empty_periods: int = DEFAULT_MAX_EMPTY_PERIODS,
    ):
        if max_empty_periods < 1:
            raise ValueError("max_empty_periods must be >= 1")
        self.count = count
        self.until = until
        self.range_end = range_end
        self.range_end_inclusive = range_end_inclusive
        self.max_empty_periods = max_empty_periods

        self.matched = 0
        self.empty_periods = 0
        self.reason: Optional[ExhaustionReason] = None
        if count == 0:
            self.reason = ExhaustionReason.COUNT

    @property
    def exhausted(self) -> bool:
        return self.reason is not None

    def admit(self, candidate: datetime) -> bool:
        """Return True if ``candidate`` lies inside UNTIL and the window end.

        A candidate past either bound ends the sequence, since candidates
        arrive in ascending order.
        """
        if self.until is not None and candidate > self.until:
            self.reason = ExhaustionReason.UNTIL
            return False
        if self.range_end is not None and (
            candidate > self.range_end
            or (not self.range_end_inclusive and candidate == self.range_end)
        ):
            self.reason = ExhaustionReason.RANGE_END
            return False
        return True

    def record_match(self) -> None:
        """Count one occurrence of the full sequence against COUNT."""
        self.matched += 1
        if self.count is not None and self.matched >= self.count:
            self.reason = ExhaustionReason.COUNT

    def check_period_start(self, period_start: datetime) -> bool:
        """Return False (and exhaust) once a whole period lies past UNTIL or the window."""
        if self.until is not None and period_start > self.until:
            self.reason = ExhaustionReason.UNTIL
            return False
        if self.range_end is not None and period_start > self.range_end:
            self.reason = ExhaustionReason.RANGE_END
            return False
        return True

    def finish_period(self, matched_any: bool) -> None:
        """Update the empty-period guard after a period has been scanned."""
        if matched_any:
            self.empty_periods = 0
            return
        self.empty_periods += 1
        if self.empty_periods >= self.max_empty_periods and self.reason is None:
            logger.warning(
                "Recurrence scan gave up after %d consecutive empty periods (%d matched so far)",
                self.empty_periods,
                self.matched,
            )
            self.reason = ExhaustionReason.ITERATION_LIMIT

    def give_up(self) -> None:
        """End the sequence as ITERATION_LIMIT for a rule that can never match."""
        if self.reason is None:
            logger.warning("Recurrence rule can never produce an occurrence; not scanning it")
            self.reason = ExhaustionReason.ITERATION_LIMIT

    def calendar_end(self) -> None:
        if self.reason is None:
            self.reason = ExhaustionReason.CALENDAR_END
