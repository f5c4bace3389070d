"""Recurrence rule data model and validation.

``RuleSpec`` is the validated, immutable representation of a recurrence
rule. Constructing one runs every invariant check, so a ``RuleSpec`` that
exists is always usable by the expansion engine.
"""

import logging
import re
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .datetime_utils import format_until
from .exceptions import (
    ConflictingCountAndUntilError,
    FieldOutOfRangeError,
    IllegalFieldForFrequencyError,
    InvalidIntervalError,
    MalformedValueError,
    MissingFrequencyError,
    UnknownFrequencyError,
    UnsupportedFieldError,
)

logger = logging.getLogger(__name__)


class Frequency(str, Enum):
    """Recurrence granularity, finest first."""

    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"

    @property
    def rank(self) -> int:
        """Position in the granularity order; larger is coarser."""
        return _FREQUENCY_ORDER.index(self)

    def is_sub_daily(self) -> bool:
        return self.rank < Frequency.DAILY.rank


_FREQUENCY_ORDER = list(Frequency)


class Weekday(IntEnum):
    """Day of week, numbered like ``date.weekday()``."""

    MO = 0
    TU = 1
    WE = 2
    TH = 3
    FR = 4
    SA = 5
    SU = 6

    @property
    def code(self) -> str:
        return self.name

    @classmethod
    def parse(cls, token: str, field: str = "WKST") -> "Weekday":
        try:
            return cls[token.strip().upper()]
        except KeyError:
            raise MalformedValueError(field, token) from None


_WEEKDAY_REF_RE = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$", re.IGNORECASE)


class WeekdayRef(BaseModel):
    """A BYDAY entry: a weekday with an optional signed ordinal (``2MO``, ``-1FR``)."""

    weekday: Weekday
    ordinal: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("weekday", mode="before")
    @classmethod
    def _coerce_weekday(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Weekday.parse(value, field="BYDAY")
        return value

    @field_validator("ordinal")
    @classmethod
    def _check_ordinal(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and (value == 0 or abs(value) > 53):
            raise FieldOutOfRangeError("BYDAY", value, "ordinal must be in [-53, -1] or [1, 53]")
        return value

    @classmethod
    def parse(cls, token: str) -> "WeekdayRef":
        """Parse ``[+|-][n]WD``."""
        match = _WEEKDAY_REF_RE.match(token.strip())
        if not match:
            raise MalformedValueError("BYDAY", token)
        ordinal_text, code = match.groups()
        ordinal = int(ordinal_text) if ordinal_text else None
        return cls(weekday=Weekday[code.upper()], ordinal=ordinal)

    def sort_key(self) -> tuple[int, int]:
        return (self.ordinal or 0, int(self.weekday))

    def __str__(self) -> str:
        prefix = "" if self.ordinal is None else str(self.ordinal)
        return f"{prefix}{self.weekday.code}"


# RuleSpec attribute -> RFC 5545 key, in canonical serialization order.
FIELD_KEYS: dict[str, str] = {
    "frequency": "FREQ",
    "interval": "INTERVAL",
    "count": "COUNT",
    "until": "UNTIL",
    "by_second": "BYSECOND",
    "by_minute": "BYMINUTE",
    "by_hour": "BYHOUR",
    "by_day": "BYDAY",
    "by_month_day": "BYMONTHDAY",
    "by_year_day": "BYYEARDAY",
    "by_week_no": "BYWEEKNO",
    "by_month": "BYMONTH",
    "by_set_pos": "BYSETPOS",
    "week_start": "WKST",
}

# Integer BY-fields: (low, high, signed). Signed fields accept +-[low, high] but never 0.
INTEGER_FIELD_RANGES: dict[str, tuple[int, int, bool]] = {
    "by_second": (0, 60, False),
    "by_minute": (0, 59, False),
    "by_hour": (0, 23, False),
    "by_month_day": (1, 31, True),
    "by_year_day": (1, 366, True),
    "by_week_no": (1, 53, True),
    "by_month": (1, 12, False),
    "by_set_pos": (1, 366, True),
}

MONTHLY_MAX_ORDINAL = 5


class RuleSpec(BaseModel):
    """Validated recurrence rule.

    Empty BY-sets mean the field is absent. Instances are immutable,
    hashable and compare field-wise.
    """

    frequency: Frequency = Field(default=None, validate_default=True)  # type: ignore[assignment]
    interval: int = 1
    count: Optional[int] = None
    until: Optional[datetime] = None
    week_start: Weekday = Weekday.MO

    by_second: frozenset[int] = frozenset()
    by_minute: frozenset[int] = frozenset()
    by_hour: frozenset[int] = frozenset()
    by_day: frozenset[WeekdayRef] = frozenset()
    by_month_day: frozenset[int] = frozenset()
    by_year_day: frozenset[int] = frozenset()
    by_week_no: frozenset[int] = frozenset()
    by_month: frozenset[int] = frozenset()
    by_set_pos: frozenset[int] = frozenset()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("frequency", mode="before")
    @classmethod
    def _coerce_frequency(cls, value: Any) -> Any:
        if value is None:
            raise MissingFrequencyError()
        if isinstance(value, Frequency):
            return value
        if isinstance(value, str):
            try:
                return Frequency(value.strip().upper())
            except ValueError:
                raise UnknownFrequencyError(value) from None
        raise UnknownFrequencyError(value)

    @field_validator("week_start", mode="before")
    @classmethod
    def _coerce_week_start(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Weekday.parse(value)
        return value

    @field_validator("interval", "count", *INTEGER_FIELD_RANGES, mode="before")
    @classmethod
    def _reject_bools(cls, value: Any, info: ValidationInfo) -> Any:
        # bool is an int subclass; lax validation would read True as 1.
        items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
        if any(isinstance(item, bool) for item in items):
            raise MalformedValueError(FIELD_KEYS[info.field_name], value)
        return value

    @field_validator("by_day", mode="before")
    @classmethod
    def _coerce_by_day(cls, value: Any) -> Any:
        if value is None or isinstance(value, (str, Weekday, WeekdayRef)):
            value = [] if value is None else [value]
        refs = []
        for item in value:
            if isinstance(item, str):
                refs.append(WeekdayRef.parse(item))
            elif isinstance(item, Weekday):
                refs.append(WeekdayRef(weekday=item))
            else:
                refs.append(item)
        return refs

    @field_validator("until")
    @classmethod
    def _truncate_until(cls, value: Optional[datetime]) -> Optional[datetime]:
        # UNTIL has second resolution on the wire.
        return value.replace(microsecond=0) if value is not None else None

    @model_validator(mode="after")
    def _check_invariants(self) -> "RuleSpec":
        validate_rule(self)
        return self

    @property
    def is_bounded(self) -> bool:
        return self.count is not None or self.until is not None

    def to_rrule(self) -> str:
        return serialize_rule(self)

    def __str__(self) -> str:
        return self.to_rrule()


def validate_rule(spec: RuleSpec) -> None:
    """Enforce cross-field invariants; raises a RuleValidationError subclass."""
    if spec.interval < 1:
        raise InvalidIntervalError(spec.interval)
    if spec.count is not None and spec.count < 0:
        raise FieldOutOfRangeError("COUNT", spec.count, "must be >= 0")
    if spec.count is not None and spec.until is not None:
        raise ConflictingCountAndUntilError()

    for name, (low, high, signed) in INTEGER_FIELD_RANGES.items():
        for value in getattr(spec, name):
            magnitude = abs(value) if signed else value
            if not low <= magnitude <= high or (signed and value == 0):
                raise FieldOutOfRangeError(FIELD_KEYS[name], value)

    freq = spec.frequency
    if spec.by_week_no and freq != Frequency.YEARLY:
        raise IllegalFieldForFrequencyError("BYWEEKNO", freq)
    if spec.by_year_day and freq in (Frequency.DAILY, Frequency.WEEKLY, Frequency.MONTHLY):
        raise IllegalFieldForFrequencyError("BYYEARDAY", freq)
    if spec.by_month_day and freq == Frequency.WEEKLY:
        raise IllegalFieldForFrequencyError("BYMONTHDAY", freq)

    ordinals = [ref.ordinal for ref in spec.by_day if ref.ordinal is not None]
    if ordinals:
        if freq not in (Frequency.MONTHLY, Frequency.YEARLY) or spec.by_week_no:
            raise IllegalFieldForFrequencyError("BYDAY", freq)
        if freq == Frequency.MONTHLY:
            for ordinal in ordinals:
                if abs(ordinal) > MONTHLY_MAX_ORDINAL:
                    raise FieldOutOfRangeError(
                        "BYDAY", ordinal, "monthly ordinals must be in [-5, -1] or [1, 5]"
                    )


def build_rule(**fields: Any) -> RuleSpec:
    """Build a RuleSpec programmatically.

    Accepts the RuleSpec attribute names as keywords. Enum-typed fields also
    accept their RFC tokens (``frequency="weekly"``, ``week_start="SU"``,
    ``by_day=["MO", "-1FR"]``).

    Raises:
        RuleParseError: On any malformed or invalid input
    """
    try:
        return RuleSpec(**fields)
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        loc = error.get("loc") or ("?",)
        name = str(loc[0])
        if error.get("type") == "extra_forbidden":
            raise UnsupportedFieldError(name) from exc
        raise MalformedValueError(FIELD_KEYS.get(name, name.upper()), error.get("input")) from exc


def serialize_rule(spec: RuleSpec) -> str:
    """Render a RuleSpec as canonical RRULE text (without the ``RRULE:`` prefix)."""
    parts = [f"FREQ={spec.frequency.value}"]
    if spec.interval != 1:
        parts.append(f"INTERVAL={spec.interval}")
    if spec.count is not None:
        parts.append(f"COUNT={spec.count}")
    if spec.until is not None:
        parts.append(f"UNTIL={format_until(spec.until)}")

    for name in ("by_second", "by_minute", "by_hour"):
        _append_ints(parts, name, getattr(spec, name))
    if spec.by_day:
        days = sorted(spec.by_day, key=WeekdayRef.sort_key)
        parts.append("BYDAY=" + ",".join(str(ref) for ref in days))
    for name in ("by_month_day", "by_year_day", "by_week_no", "by_month", "by_set_pos"):
        _append_ints(parts, name, getattr(spec, name))

    if spec.week_start != Weekday.MO:
        parts.append(f"WKST={spec.week_start.code}")
    return ";".join(parts)


def _append_ints(parts: list[str], name: str, values: frozenset[int]) -> None:
    if values:
        parts.append(f"{FIELD_KEYS[name]}=" + ",".join(str(v) for v in sorted(values)))
