"""Shared fixtures for recurbot tests."""

from collections.abc import Generator
from datetime import datetime
from itertools import islice
from typing import Any

import pytest

from recurbot import RecurrenceSettings


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast, isolated tests")
    config.addinivalue_line("markers", "integration: tests spanning several components")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Keep RECURBOT_* environment variables from leaking into tests."""
    for name in ("RECURBOT_DEBUG", "RECURBOT_LOG_LEVEL", "RECURBOT_MAX_EMPTY_PERIODS",
                 "RECURBOT_DEFAULT_LIMIT"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def anchor() -> datetime:
    """A Monday morning used as the default DTSTART."""
    return datetime(2024, 1, 1, 9, 0)


@pytest.fixture
def small_settings() -> RecurrenceSettings:
    """Settings with a low empty-period ceiling so guard tests stay fast."""
    return RecurrenceSettings(max_empty_periods=24)


@pytest.fixture
def take() -> Any:
    """Return a helper pulling at most ``n`` items from an iterator."""

    def _take(iterable: Any, n: int) -> list:
        return list(islice(iterable, n))

    return _take
