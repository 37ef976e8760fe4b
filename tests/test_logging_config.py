from __future__ import annotations

import logging

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("weather", logging.INFO, __file__, 1, "Appended readings", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_context_keys_are_appended_in_order() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", extra_keys=("sensor_key", "new_records"))

    line = formatter.format(_record(new_records=2, sensor_key="temp"))

    assert line == "Appended readings | sensor_key=temp new_records=2"


def test_missing_and_none_context_is_omitted() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", extra_keys=("sensor_key", "error"))

    assert formatter.format(_record(error=None)) == "Appended readings"
