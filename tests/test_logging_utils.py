import json
import logging

import pytest

from canary.config import LoggingConfig
from canary.logging_utils import TRACE, JsonLogFormatter, resolve_level, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_forces_watchdog_loggers_to_configured_level() -> None:
    noisy = logging.getLogger("watchdog.observers.inotify_buffer")
    noisy.setLevel(logging.DEBUG)
    noisy.addHandler(logging.StreamHandler())
    noisy.propagate = False

    setup_logging(LoggingConfig(level="INFO", json=False))

    assert logging.getLogger().level == logging.INFO
    assert noisy.level == logging.INFO
    assert noisy.handlers == []
    assert noisy.propagate is True


def test_setup_logging_accepts_trace_level() -> None:
    setup_logging(LoggingConfig(level="trace"))

    assert logging.getLogger().level == TRACE
    assert logging.getLevelName(TRACE) == "TRACE"


def test_setup_logging_installs_json_formatter() -> None:
    setup_logging(LoggingConfig(level="WARNING", json=True))

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, JsonLogFormatter)


def test_resolve_level_defaults_to_info_for_unknown_names() -> None:
    assert resolve_level("warn") == logging.WARNING
    assert resolve_level("nonsense") == logging.INFO


def test_json_formatter_renders_one_object_per_record() -> None:
    record = logging.LogRecord("canary", TRACE, __file__, 1, "x: %s", ("(1, 2)",), None)

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["level"] == "TRACE"
    assert payload["logger"] == "canary"
    assert payload["message"] == "x: (1, 2)"
    assert "exc_info" not in payload
