"""recurbot - recurrence rule parsing and lazy occurrence expansion.

Typical use::

    from datetime import datetime
    from recurbot import occurrences, parse_rule

    spec = parse_rule("FREQ=MONTHLY;BYDAY=-1FR;COUNT=3")
    for when in occurrences(spec, datetime(2024, 1, 1, 10, 0)):
        print(when)
"""

__version__ = "0.1.0"

from .bounds import DEFAULT_MAX_EMPTY_PERIODS, BoundsController, ExhaustionReason
from .config import RecurrenceSettings, load_settings
from .exceptions import (
    ConflictingCountAndUntilError,
    DuplicateFieldError,
    FieldOutOfRangeError,
    IllegalFieldForFrequencyError,
    InvalidIntervalError,
    IterationLimitExceeded,
    MalformedValueError,
    MissingFrequencyError,
    RecurrenceError,
    RuleParseError,
    RuleValidationError,
    UnknownFrequencyError,
    UnsupportedFieldError,
)
from .expander import FieldExpander
from .generator import (
    GeneratorState,
    OccurrenceGenerator,
    occurrences,
    occurrences_after,
    occurrences_between,
)
from .models import Frequency, RuleSpec, Weekday, WeekdayRef, build_rule, serialize_rule
from .parser import RuleParser, parse_rule
from .ruleset import RecurrenceSet

__all__ = [
    "DEFAULT_MAX_EMPTY_PERIODS",
    "BoundsController",
    "ConflictingCountAndUntilError",
    "DuplicateFieldError",
    "ExhaustionReason",
    "FieldExpander",
    "FieldOutOfRangeError",
    "Frequency",
    "GeneratorState",
    "IllegalFieldForFrequencyError",
    "InvalidIntervalError",
    "IterationLimitExceeded",
    "MalformedValueError",
    "MissingFrequencyError",
    "OccurrenceGenerator",
    "RecurrenceError",
    "RecurrenceSet",
    "RecurrenceSettings",
    "RuleParseError",
    "RuleParser",
    "RuleSpec",
    "RuleValidationError",
    "UnknownFrequencyError",
    "UnsupportedFieldError",
    "Weekday",
    "WeekdayRef",
    "build_rule",
    "load_settings",
    "occurrences",
    "occurrences_after",
    "occurrences_between",
    "parse_rule",
    "serialize_rule",
]
