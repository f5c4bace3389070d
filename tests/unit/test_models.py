"""
Unit tests for recurbot.models.

Covers RuleSpec construction and validation, build_rule input coercion and
error mapping, and serialize_rule output.
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from recurbot.exceptions import (
    ConflictingCountAndUntilError,
    FieldOutOfRangeError,
    IllegalFieldForFrequencyError,
    InvalidIntervalError,
    MalformedValueError,
    MissingFrequencyError,
    RuleValidationError,
    UnknownFrequencyError,
    UnsupportedFieldError,
)
from recurbot.models import (
    Frequency,
    RuleSpec,
    Weekday,
    WeekdayRef,
    build_rule,
    serialize_rule,
)
from recurbot.parser import parse_rule

pytestmark = pytest.mark.unit


class TestFrequency:
    def test_rank_orders_finest_first(self):
        assert Frequency.SECONDLY.rank < Frequency.HOURLY.rank < Frequency.YEARLY.rank

    @pytest.mark.parametrize(
        "freq,expected",
        [
            (Frequency.SECONDLY, True),
            (Frequency.HOURLY, True),
            (Frequency.DAILY, False),
            (Frequency.YEARLY, False),
        ],
    )
    def test_is_sub_daily(self, freq, expected):
        assert freq.is_sub_daily() is expected


class TestWeekdayRef:
    @pytest.mark.parametrize(
        "token,weekday,ordinal",
        [
            ("MO", Weekday.MO, None),
            ("2mo", Weekday.MO, 2),
            ("+3WE", Weekday.WE, 3),
            ("-1FR", Weekday.FR, -1),
            ("53SU", Weekday.SU, 53),
        ],
    )
    def test_parse(self, token, weekday, ordinal):
        ref = WeekdayRef.parse(token)
        assert ref.weekday == weekday
        assert ref.ordinal == ordinal

    @pytest.mark.parametrize("token", ["", "XX", "1", "MON", "1.5MO", "MO1"])
    def test_parse_malformed(self, token):
        with pytest.raises(MalformedValueError):
            WeekdayRef.parse(token)

    @pytest.mark.parametrize("token", ["0MO", "54TU", "-60FR"])
    def test_parse_ordinal_out_of_range(self, token):
        with pytest.raises(FieldOutOfRangeError) as exc_info:
            WeekdayRef.parse(token)
        assert exc_info.value.field == "BYDAY"

    def test_str_round_trips(self):
        assert str(WeekdayRef.parse("-1FR")) == "-1FR"
        assert str(WeekdayRef(weekday=Weekday.TU)) == "TU"

    def test_hashable_and_equal(self):
        assert {WeekdayRef.parse("1MO"), WeekdayRef.parse("+1MO")} == {WeekdayRef.parse("1MO")}


class TestRuleSpecValidation:
    def test_defaults(self):
        spec = RuleSpec(frequency=Frequency.DAILY)
        assert spec.interval == 1
        assert spec.count is None
        assert spec.until is None
        assert spec.week_start == Weekday.MO
        assert spec.by_hour == frozenset()
        assert not spec.is_bounded

    def test_missing_frequency(self):
        with pytest.raises(MissingFrequencyError):
            RuleSpec()

    def test_unknown_frequency(self):
        with pytest.raises(UnknownFrequencyError) as exc_info:
            build_rule(frequency="FORTNIGHTLY")
        assert exc_info.value.token == "FORTNIGHTLY"

    @pytest.mark.parametrize("interval", [0, -3])
    def test_invalid_interval(self, interval):
        with pytest.raises(InvalidIntervalError) as exc_info:
            build_rule(frequency="DAILY", interval=interval)
        assert exc_info.value.value == interval

    def test_count_and_until_conflict(self):
        with pytest.raises(ConflictingCountAndUntilError):
            build_rule(frequency="DAILY", count=3, until=datetime(2025, 1, 1))

    def test_negative_count_rejected(self):
        with pytest.raises(FieldOutOfRangeError) as exc_info:
            build_rule(frequency="DAILY", count=-1)
        assert exc_info.value.field == "COUNT"

    def test_zero_count_allowed(self):
        assert build_rule(frequency="DAILY", count=0).count == 0

    @pytest.mark.parametrize(
        "field,value,key",
        [
            ("by_second", [61], "BYSECOND"),
            ("by_minute", [60], "BYMINUTE"),
            ("by_hour", [25], "BYHOUR"),
            ("by_hour", [-1], "BYHOUR"),
            ("by_month_day", [0], "BYMONTHDAY"),
            ("by_month_day", [-32], "BYMONTHDAY"),
            ("by_year_day", [367], "BYYEARDAY"),
            ("by_month", [13], "BYMONTH"),
            ("by_month", [0], "BYMONTH"),
            ("by_set_pos", [0], "BYSETPOS"),
        ],
    )
    def test_out_of_range_values_rejected(self, field, value, key):
        with pytest.raises(FieldOutOfRangeError) as exc_info:
            build_rule(frequency="YEARLY", **{field: value})
        assert exc_info.value.field == key
        assert exc_info.value.value == value[0]

    def test_week_no_out_of_range(self):
        with pytest.raises(FieldOutOfRangeError):
            build_rule(frequency="YEARLY", by_week_no=[54])

    def test_leap_second_accepted(self):
        assert build_rule(frequency="MINUTELY", by_second=[60]).by_second == {60}

    @pytest.mark.parametrize(
        "freq,fields,key",
        [
            ("MONTHLY", {"by_week_no": [1]}, "BYWEEKNO"),
            ("DAILY", {"by_year_day": [1]}, "BYYEARDAY"),
            ("WEEKLY", {"by_year_day": [1]}, "BYYEARDAY"),
            ("MONTHLY", {"by_year_day": [1]}, "BYYEARDAY"),
            ("WEEKLY", {"by_month_day": [1]}, "BYMONTHDAY"),
            ("WEEKLY", {"by_day": ["1MO"]}, "BYDAY"),
            ("DAILY", {"by_day": ["-1FR"]}, "BYDAY"),
            ("YEARLY", {"by_day": ["1MO"], "by_week_no": [2]}, "BYDAY"),
        ],
    )
    def test_illegal_field_for_frequency(self, freq, fields, key):
        with pytest.raises(IllegalFieldForFrequencyError) as exc_info:
            build_rule(frequency=freq, **fields)
        assert exc_info.value.field == key
        assert exc_info.value.frequency == Frequency(freq)

    def test_monthly_ordinal_limited_to_five(self):
        with pytest.raises(FieldOutOfRangeError):
            build_rule(frequency="MONTHLY", by_day=["6MO"])
        assert build_rule(frequency="YEARLY", by_day=["20MO"]).by_day

    def test_time_fields_allowed_with_any_frequency(self):
        spec = build_rule(frequency="SECONDLY", by_hour=[9], by_minute=[30])
        assert spec.by_hour == {9}

    def test_validation_errors_are_parse_errors(self):
        assert issubclass(RuleValidationError, Exception)
        assert not issubclass(RuleValidationError, ValueError)


class TestBuildRule:
    def test_string_coercion(self):
        spec = build_rule(frequency="weekly", week_start="su", by_day=["MO", "WE"])
        assert spec.frequency == Frequency.WEEKLY
        assert spec.week_start == Weekday.SU
        assert spec.by_day == {WeekdayRef(weekday=Weekday.MO), WeekdayRef(weekday=Weekday.WE)}

    def test_weekday_members_accepted_in_by_day(self):
        spec = build_rule(frequency="WEEKLY", by_day=[Weekday.FR])
        assert spec.by_day == {WeekdayRef(weekday=Weekday.FR)}

    def test_lists_become_frozensets(self):
        spec = build_rule(frequency="DAILY", by_hour=[9, 9, 17])
        assert spec.by_hour == frozenset({9, 17})

    def test_malformed_type(self):
        with pytest.raises(MalformedValueError) as exc_info:
            build_rule(frequency="DAILY", interval="often")
        assert exc_info.value.field == "INTERVAL"

    @pytest.mark.parametrize(
        "fields,key",
        [
            ({"interval": True}, "INTERVAL"),
            ({"count": False}, "COUNT"),
            ({"by_hour": [9, True]}, "BYHOUR"),
            ({"by_set_pos": (False,)}, "BYSETPOS"),
        ],
    )
    def test_bools_rejected_as_integers(self, fields, key):
        with pytest.raises(MalformedValueError) as exc_info:
            build_rule(frequency="DAILY", **fields)
        assert exc_info.value.field == key

    def test_unknown_keyword(self):
        with pytest.raises(UnsupportedFieldError) as exc_info:
            build_rule(frequency="DAILY", by_easter=[0])
        assert exc_info.value.key == "by_easter"

    def test_until_truncated_to_seconds(self):
        spec = build_rule(frequency="DAILY", until=datetime(2025, 1, 1, 12, 0, 0, 123456))
        assert spec.until == datetime(2025, 1, 1, 12, 0, 0)

    def test_immutable(self):
        spec = build_rule(frequency="DAILY")
        with pytest.raises(Exception):
            spec.interval = 2  # type: ignore[misc]

    def test_equal_specs_hash_equal(self):
        first = build_rule(frequency="MONTHLY", by_month_day=[1, -1])
        second = build_rule(frequency="monthly", by_month_day=(-1, 1))
        assert first == second
        assert hash(first) == hash(second)


class TestSerializeRule:
    def test_minimal(self):
        assert serialize_rule(build_rule(frequency="DAILY")) == "FREQ=DAILY"

    def test_canonical_order_and_sorting(self):
        spec = build_rule(
            frequency="YEARLY",
            interval=2,
            count=10,
            by_month=[3, 1],
            by_day=["SU", "-1MO", "1MO"],
            by_hour=[17, 8],
            week_start="SU",
        )
        assert spec.to_rrule() == (
            "FREQ=YEARLY;INTERVAL=2;COUNT=10;BYHOUR=8,17;BYDAY=-1MO,SU,1MO;BYMONTH=1,3;WKST=SU"
        )

    def test_until_utc_suffix(self):
        spec = build_rule(frequency="DAILY", until=datetime(2025, 6, 23, 8, 30, tzinfo=UTC))
        assert "UNTIL=20250623T083000Z" in serialize_rule(spec)

    def test_until_other_offset_written_in_utc(self):
        tz = timezone(timedelta(hours=2))
        spec = build_rule(frequency="DAILY", until=datetime(2025, 6, 23, 10, 30, tzinfo=tz))
        assert "UNTIL=20250623T083000Z" in serialize_rule(spec)

    def test_until_floating(self):
        spec = build_rule(frequency="DAILY", until=datetime(2025, 6, 23, 8, 30))
        assert "UNTIL=20250623T083000" in serialize_rule(spec)
        assert not serialize_rule(spec).endswith("Z")

    @pytest.mark.parametrize(
        "fields",
        [
            {"frequency": "DAILY"},
            {"frequency": "WEEKLY", "interval": 2, "by_day": ["MO", "WE", "FR"], "week_start": "SU"},
            {"frequency": "MONTHLY", "by_day": ["-1FR", "2TU"], "count": 5},
            {"frequency": "MONTHLY", "by_month_day": [-1, 15], "by_set_pos": [1, -1]},
            {"frequency": "YEARLY", "by_week_no": [-1, 20], "by_day": ["MO"]},
            {"frequency": "YEARLY", "by_year_day": [1, -1, 100], "by_hour": [0, 12]},
            {"frequency": "HOURLY", "interval": 3, "by_minute": [0, 30], "by_second": [0, 60]},
            {"frequency": "DAILY", "until": datetime(2030, 1, 1, 0, 0, tzinfo=UTC)},
            {"frequency": "DAILY", "until": datetime(2030, 1, 1, 9, 15, 30)},
            {"frequency": "DAILY", "until": datetime(999, 5, 6, 7, 8, 9)},
            {"frequency": "DAILY", "until": datetime(45, 1, 2, 3, 4, 5, tzinfo=UTC)},
            {
                "frequency": "DAILY",
                "until": datetime(2030, 1, 1, 9, 15, tzinfo=timezone(timedelta(hours=-5))),
            },
        ],
    )
    def test_round_trip_through_parser(self, fields):
        spec = build_rule(**fields)
        assert parse_rule(serialize_rule(spec)) == spec
