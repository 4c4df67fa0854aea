"""Shared test configuration for caldav_lite."""

import logging
from collections.abc import Generator
from typing import Any

import pytest

_WATCHED_LOGGERS = [
    "",
    "caldav_lite",
    "caldav_lite.lite_parser",
    "caldav_lite.lite_rrule_expander",
    "asyncio",
    "icalendar",
    "dateutil",
]


@pytest.fixture(autouse=True)
def restore_logging_levels() -> Generator[None, Any, None]:
    """Restore logger levels and root handlers changed by a test.

    Logging configuration is process-global; tests that exercise
    configure_lite_logging() or _init_logging() must not leak levels or
    handlers into later tests.
    """
    root = logging.getLogger()
    levels = {name: logging.getLogger(name).level for name in _WATCHED_LOGGERS}
    handlers = list(root.handlers)
    yield
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)


def pytest_configure(config: Any) -> None:
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "fast: Tests that finish in well under a second")
