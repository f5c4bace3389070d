"""RRULE text parser.

Turns ``FREQ=WEEKLY;BYDAY=MO,WE;COUNT=4`` style text into a validated
``RuleSpec``. Tokenizing and scalar parsing happen here; semantic checks are
delegated to ``RuleSpec`` validation.
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from .datetime_utils import parse_until
from .exceptions import (
    DuplicateFieldError,
    MalformedValueError,
    MissingFrequencyError,
    UnsupportedFieldError,
)
from .models import FIELD_KEYS, RuleSpec, Weekday, WeekdayRef, build_rule

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"^[+-]?\d+$")

# Keys defined by RFC 5545 extensions (or vendor X- names) that this engine
# recognizes but does not implement.
RECOGNIZED_UNSUPPORTED_KEYS = frozenset({"RSCALE", "SKIP", "BYEASTER"})

_PROPERTY_PREFIX = "RRULE:"


def _parse_int(key: str, raw: str) -> int:
    token = raw.strip()
    if not _INTEGER_RE.match(token):
        raise MalformedValueError(key, raw)
    return int(token)


def _parse_int_list(key: str, raw: str) -> list[int]:
    return [_parse_int(key, item) for item in raw.split(",")]


def _parse_by_day(key: str, raw: str) -> list[WeekdayRef]:
    return [WeekdayRef.parse(item) for item in raw.split(",")]


def _parse_until(key: str, raw: str) -> Any:
    try:
        return parse_until(raw)
    except ValueError:
        raise MalformedValueError(key, raw) from None


def _parse_frequency(key: str, raw: str) -> str:
    token = raw.strip()
    if not token:
        raise MalformedValueError(key, raw)
    # RuleSpec raises UnknownFrequencyError for tokens it does not know.
    return token


def _parse_week_start(key: str, raw: str) -> Weekday:
    return Weekday.parse(raw, field=key)


_KEY_TO_FIELD = {key: name for name, key in FIELD_KEYS.items()}

_VALUE_PARSERS: dict[str, Callable[[str, str], Any]] = {
    "FREQ": _parse_frequency,
    "INTERVAL": _parse_int,
    "COUNT": _parse_int,
    "UNTIL": _parse_until,
    "BYSECOND": _parse_int_list,
    "BYMINUTE": _parse_int_list,
    "BYHOUR": _parse_int_list,
    "BYDAY": _parse_by_day,
    "BYMONTHDAY": _parse_int_list,
    "BYYEARDAY": _parse_int_list,
    "BYWEEKNO": _parse_int_list,
    "BYMONTH": _parse_int_list,
    "BYSETPOS": _parse_int_list,
    "WKST": _parse_week_start,
}


class RuleParser:
    """Parser for the supported subset of the RFC 5545 RECUR grammar."""

    def tokenize(self, text: str) -> dict[str, str]:
        """Split rule text into an upper-cased ``KEY -> raw value`` mapping.

        Raises:
            DuplicateFieldError: If a key appears twice
            UnsupportedFieldError: If a key is not part of the supported grammar
            MalformedValueError: If a segment is not ``KEY=VALUE``
        """
        body = text.strip()
        if body[: len(_PROPERTY_PREFIX)].upper() == _PROPERTY_PREFIX:
            body = body[len(_PROPERTY_PREFIX) :]

        tokens: dict[str, str] = {}
        for segment in body.split(";"):
            segment = segment.strip()
            if not segment:
                continue
            if "=" not in segment:
                raise MalformedValueError(segment.upper(), segment)

            key, value = segment.split("=", 1)
            key = key.strip().upper()
            if key in tokens:
                raise DuplicateFieldError(key)
            if key not in _VALUE_PARSERS:
                recognized = key in RECOGNIZED_UNSUPPORTED_KEYS or key.startswith("X-")
                raise UnsupportedFieldError(key, recognized=recognized)
            if not value.strip():
                raise MalformedValueError(key, value)
            tokens[key] = value.strip()

        return tokens

    def parse(self, text: str) -> RuleSpec:
        """Parse rule text into a validated RuleSpec.

        Raises:
            RuleParseError: Any subclass describing the first problem found
        """
        if text is None:
            raise MissingFrequencyError()

        tokens = self.tokenize(text)
        if "FREQ" not in tokens:
            raise MissingFrequencyError()

        fields = {
            _KEY_TO_FIELD[key]: _VALUE_PARSERS[key](key, raw) for key, raw in tokens.items()
        }
        spec = build_rule(**fields)
        logger.debug("Parsed RRULE %r -> %s", text, spec)
        return spec


_default_parser = RuleParser()


def parse_rule(text: str) -> RuleSpec:
    """Parse RRULE text using the module-level parser."""
    return _default_parser.parse(text)
