"""Merge several recurrence rules into one ordered stream."""

import heapq
import logging
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any, Optional, Union

from .generator import (
    AnchorType,
    OccurrenceGenerator,
    occurrences,
    occurrences_after,
    occurrences_between,
)
from .models import RuleSpec
from .parser import parse_rule

logger = logging.getLogger(__name__)


class RecurrenceSet:
    """An ordered union of rules, each with its own anchor.

    Instants produced by more than one rule are emitted once. All anchors
    must be mutually comparable (all naive or all aware).
    """

    def __init__(self, settings: Any = None):
        self.settings = settings
        self._rules: list[tuple[RuleSpec, AnchorType]] = []

    def rrule(self, spec: Union[RuleSpec, str], anchor: AnchorType) -> "RecurrenceSet":
        """Add a rule; returns self so calls can be chained."""
        if isinstance(spec, str):
            spec = parse_rule(spec)
        self._rules.append((spec, anchor))
        return self

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[datetime]:
        return self._merge(lambda spec, anchor: occurrences(spec, anchor, settings=self.settings))

    def after(self, instant: AnchorType, inclusive: bool = False) -> Iterator[datetime]:
        return self._merge(
            lambda spec, anchor: occurrences_after(
                spec, anchor, instant, inclusive=inclusive, settings=self.settings
            )
        )

    def between(
        self, start: AnchorType, end: AnchorType, inclusive: bool = True
    ) -> Iterator[datetime]:
        return self._merge(
            lambda spec, anchor: occurrences_between(
                spec, anchor, start, end, inclusive=inclusive, settings=self.settings
            )
        )

    def _merge(
        self, make: Callable[[RuleSpec, AnchorType], OccurrenceGenerator]
    ) -> Iterator[datetime]:
        streams = [make(spec, anchor) for spec, anchor in self._rules]
        logger.debug("Merging %d recurrence streams", len(streams))

        previous: Optional[datetime] = None
        for instant in heapq.merge(*streams):
            if previous is not None and instant == previous:
                continue
            previous = instant
            yield instant
