"""
Tests for the JSON log formatter.
"""

import json
import logging

from callsync.shared.logging import StructuredFormatter, correlation_id_var, get_logger


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="callsync.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Call %s ended",
        args=("v3:abc",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_envelope_and_extra_fields(self) -> None:
        line = StructuredFormatter().format(_record(call_control_id="v3:abc", duration=12))

        entry = json.loads(line)
        assert entry["level"] == "INFO"
        assert entry["logger"] == "callsync.test"
        assert entry["message"] == "Call v3:abc ended"
        assert entry["call_control_id"] == "v3:abc"
        assert entry["duration"] == 12
        assert "lineno" not in entry

    def test_extra_cannot_overwrite_envelope(self) -> None:
        entry = json.loads(StructuredFormatter().format(_record(level="spoofed")))

        assert entry["level"] == "INFO"
        assert entry["extra_level"] == "spoofed"

    def test_correlation_id_is_included(self) -> None:
        token = correlation_id_var.set("req-42")
        try:
            entry = json.loads(StructuredFormatter().format(_record()))
        finally:
            correlation_id_var.reset(token)

        assert entry["correlation_id"] == "req-42"

    def test_non_json_values_are_stringified(self) -> None:
        entry = json.loads(StructuredFormatter().format(_record(owner=object)))

        assert entry["owner"] == str(object)


def test_get_logger_installs_one_handler() -> None:
    first = get_logger("callsync.test.handlers")
    second = get_logger("callsync.test.handlers")

    assert first is second
    assert len(second.handlers) == 1
    assert second.propagate is False
