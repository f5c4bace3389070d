"""Exception hierarchy for recurrence rule parsing, validation and expansion.

Parse and validation errors always surface to the caller. None of these
classes derive from ``ValueError`` so that they propagate unchanged out of
pydantic validators instead of being folded into a pydantic ``ValidationError``.
"""

from typing import Any, Optional


class RecurrenceError(Exception):
    """Base exception for all recurbot errors."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class RuleParseError(RecurrenceError):
    """Rule text (or programmatic input) could not be turned into a RuleSpec."""


class MissingFrequencyError(RuleParseError):
    """FREQ was not supplied."""

    def __init__(self) -> None:
        super().__init__("FREQ is required", field="FREQ")


class UnknownFrequencyError(RuleParseError):
    """FREQ names a frequency this engine does not know."""

    def __init__(self, token: Any):
        super().__init__(f"Unknown frequency: {token!r}", field="FREQ")
        self.token = token


class DuplicateFieldError(RuleParseError):
    """A key appeared more than once in the rule text."""

    def __init__(self, key: str):
        super().__init__(f"Duplicate field: {key}", field=key)
        self.key = key


class UnsupportedFieldError(RuleParseError):
    """A key is not supported by this engine.

    ``recognized`` is True for keys defined by RFC 5545/7529 extensions (or
    ``X-`` names) that are deliberately not implemented, False for keys that
    are not part of any recurrence grammar.
    """

    def __init__(self, key: str, recognized: bool = False):
        kind = "Unsupported" if recognized else "Unknown"
        super().__init__(f"{kind} field: {key}", field=key)
        self.key = key
        self.recognized = recognized


class MalformedValueError(RuleParseError):
    """A scalar value could not be parsed."""

    def __init__(self, field: str, raw: Any):
        super().__init__(f"Malformed value for {field}: {raw!r}", field=field)
        self.raw = raw


class RuleValidationError(RuleParseError):
    """Parsed values are well-formed but violate a rule invariant."""


class InvalidIntervalError(RuleValidationError):
    """INTERVAL is not a positive integer."""

    def __init__(self, value: int):
        super().__init__(f"INTERVAL must be >= 1, got {value}", field="INTERVAL")
        self.value = value


class ConflictingCountAndUntilError(RuleValidationError):
    """COUNT and UNTIL were both supplied."""

    def __init__(self) -> None:
        super().__init__("COUNT and UNTIL are mutually exclusive", field="COUNT")


class FieldOutOfRangeError(RuleValidationError):
    """A BY-field (or COUNT) value lies outside its documented range."""

    def __init__(self, field: str, value: Any, reason: Optional[str] = None):
        message = f"{field} value out of range: {value}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, field=field)
        self.value = value


class IllegalFieldForFrequencyError(RuleValidationError):
    """A BY-field is not allowed with the rule's frequency."""

    def __init__(self, field: str, frequency: Any):
        freq_name = getattr(frequency, "value", frequency)
        super().__init__(f"{field} is not allowed with FREQ={freq_name}", field=field)
        self.frequency = frequency


class IterationLimitExceeded(RecurrenceError):
    """The empty-period guard stopped a generator.

    Only raised when the caller asks for it (``raise_on_limit=True``); by
    default the sequence simply ends and the generator's ``exhaustion``
    attribute records the reason.
    """

    def __init__(self, limit: int, emitted: int):
        super().__init__(
            f"No occurrence found in {limit} consecutive periods after {emitted} emitted"
        )
        self.limit = limit
        self.emitted = emitted
