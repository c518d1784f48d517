from __future__ import annotations

import json
import logging

from rowcounter.utils.logging import JsonFormatter, _json_formatter, configure_logging, get_logger

EXPECTED_ROWS = 10
EXPECTED_AGGREGATOR = 3


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.rows = EXPECTED_ROWS
    record.variant = "operation"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["rows"] == EXPECTED_ROWS
    assert payload["variant"] == "operation"


def test_json_formatter_supports_legacy_nested_extra_field() -> None:
    record = _record()
    record.extra = {"aggregator": EXPECTED_AGGREGATOR}

    payload = json.loads(_json_formatter(record))

    assert payload["aggregator"] == EXPECTED_AGGREGATOR


def test_json_formatter_stringifies_non_serialisable_values() -> None:
    record = _record()
    record.payload = b"\x00\x01"

    payload = json.loads(JsonFormatter().format(record))

    assert isinstance(payload["payload"], str)


def test_configure_logging_keeps_module_loggers_enabled() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    log = get_logger("rowcounter.test_capture")
    try:
        configure_logging(level="DEBUG", json_logs=True, force=True)

        assert not log.disabled
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
