"""Integration tests for the recurbot command line."""

import logging

import pytest

from recurbot.__main__ import EXIT_ITERATION_LIMIT, EXIT_OK, EXIT_RULE_ERROR, main
from recurbot.logging_config import RECURBOT_MODULES

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def restore_logging(tmp_path, monkeypatch):
    """Run from an empty directory and undo the CLI's logging changes."""
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    saved = root.level, list(root.handlers)
    saved_modules = {name: logging.getLogger(name).level for name in RECURBOT_MODULES}
    yield
    root.setLevel(saved[0])
    root.handlers[:] = saved[1]
    for name, level in saved_modules.items():
        logging.getLogger(name).setLevel(level)


def _lines(capsys):
    captured = capsys.readouterr()
    return captured.out.splitlines(), captured.err


def test_prints_occurrences(capsys):
    code = main(["FREQ=DAILY;COUNT=3", "--start", "2024-01-31T09:00"])
    out, _ = _lines(capsys)
    assert code == EXIT_OK
    assert out == ["2024-01-31T09:00:00", "2024-02-01T09:00:00", "2024-02-02T09:00:00"]


def test_limit_caps_output(capsys):
    assert main(["FREQ=HOURLY", "--start", "2024-01-01T00:00", "--limit", "4"]) == EXIT_OK
    out, _ = _lines(capsys)
    assert out[-1] == "2024-01-01T03:00:00"
    assert len(out) == 4


def test_default_limit(capsys):
    assert main(["FREQ=DAILY", "--start", "2024-01-01"]) == EXIT_OK
    out, _ = _lines(capsys)
    assert len(out) == 10


def test_start_defaults_to_now(capsys):
    assert main(["FREQ=DAILY;COUNT=2"]) == EXIT_OK
    out, _ = _lines(capsys)
    assert len(out) == 2


def test_time_zone(capsys):
    main(["FREQ=DAILY;COUNT=1", "--start", "2024-07-01T09:00", "--tz", "Europe/Berlin"])
    out, _ = _lines(capsys)
    assert out == ["2024-07-01T09:00:00+02:00"]


def test_between(capsys):
    argv = ["FREQ=WEEKLY", "--start", "2024-01-01T09:00", "--between", "2024-02-01", "2024-02-29"]
    assert main(argv) == EXIT_OK
    out, _ = _lines(capsys)
    assert out == [
        "2024-02-05T09:00:00",
        "2024-02-12T09:00:00",
        "2024-02-19T09:00:00",
        "2024-02-26T09:00:00",
    ]


@pytest.mark.parametrize(
    "extra,expected",
    [
        ([], "2024-01-03T09:00:00"),
        (["--inclusive"], "2024-01-02T09:00:00"),
    ],
)
def test_after(capsys, extra, expected):
    argv = ["FREQ=DAILY", "--start", "2024-01-01T09:00", "--after", "2024-01-02T09:00", "--limit", "1"]
    assert main(argv + extra) == EXIT_OK
    out, _ = _lines(capsys)
    assert out == [expected]


def test_config_file(capsys, tmp_path):
    config = tmp_path / "recurbot.yaml"
    config.write_text("recurbot:\n  default_limit: 2\n", encoding="utf-8")
    assert main(["FREQ=DAILY", "--start", "2024-01-01", "--config", str(config)]) == EXIT_OK
    out, _ = _lines(capsys)
    assert len(out) == 2


@pytest.mark.parametrize(
    "rule,fragment",
    [
        ("FREQ=DAILY;BYHOUR=25", "BYHOUR"),
        ("INTERVAL=2", "FREQ is required"),
        ("FREQ=DAILY;FREQ=DAILY", "Duplicate field"),
        ("FREQ=YEARLY;BYEASTER=0", "Unsupported field"),
        ("FREQ=DAILY;COUNT=2;UNTIL=20240101", "mutually exclusive"),
    ],
)
def test_rule_errors(capsys, rule, fragment):
    assert main([rule, "--start", "2024-01-01"]) == EXIT_RULE_ERROR
    out, err = _lines(capsys)
    assert out == []
    assert err.startswith("error:")
    assert fragment in err


def test_unknown_time_zone(capsys):
    assert main(["FREQ=DAILY", "--tz", "Mars/Olympus_Mons"]) == EXIT_RULE_ERROR
    _, err = _lines(capsys)
    assert "unknown time zone" in err


def test_iteration_limit(capsys, monkeypatch):
    monkeypatch.setenv("RECURBOT_MAX_EMPTY_PERIODS", "6")
    code = main(["FREQ=MONTHLY;BYMONTH=2;BYMONTHDAY=30", "--start", "2024-01-01"])
    out, err = _lines(capsys)
    assert code == EXIT_ITERATION_LIMIT
    assert out == []
    assert "6 empty periods" in err


@pytest.mark.parametrize(
    "argv",
    [
        ["FREQ=DAILY", "--start", "yesterday"],
        ["FREQ=DAILY", "--between", "2024-01-01", "2024-02-01", "--after", "2024-01-05"],
        ["FREQ=DAILY", "--limit", "many"],
    ],
)
def test_argument_errors(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    assert exc_info.value.code == 2


def test_debug_flag_enables_debug_logging(capsys):
    assert main(["FREQ=DAILY;COUNT=1", "--start", "2024-01-01", "--debug"]) == EXIT_OK
    assert logging.getLogger("recurbot.generator").level == logging.DEBUG
