"""Tests for logging formatters, structured logger and log context."""

from __future__ import annotations

import json
import logging
from typing import Any

from infra.logging_config import (
    JsonFormatter,
    StructuredLogger,
    TextFormatter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)


def _record(msg: str = "hello", **extra: Any) -> logging.LogRecord:
    record = logging.LogRecord("flowreport.test", logging.INFO, __file__, 10, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_json_formatter_merges_extras_and_context() -> None:
    clear_log_context()
    with log_context(job_id="tok-1"):
        line = JsonFormatter(extra_fields={"service": "flowreport"}).format(_record(org_name="acme"))
    data = json.loads(line)

    assert data["message"] == "hello"
    assert data["level"] == "INFO"
    assert data["logger"] == "flowreport.test"
    assert data["org_name"] == "acme"
    assert data["job_id"] == "tok-1"
    assert data["service"] == "flowreport"
    assert data["timestamp"].endswith("Z")


def test_log_context_is_restored_on_exit() -> None:
    clear_log_context()
    set_log_context(request_id="r1")
    with log_context(job_id="j1"):
        assert get_log_context() == {"request_id": "r1", "job_id": "j1"}
    assert get_log_context() == {"request_id": "r1"}
    clear_log_context()
    assert get_log_context() == {}


def test_text_formatter_layout() -> None:
    line = TextFormatter().format(_record("export_job_queried job_id=t"))
    assert " | INFO | flowreport.test | export_job_queried job_id=t" in line


def test_structured_logger_message_and_extras(caplog: Any) -> None:
    caplog.set_level(logging.INFO, logger="flowreport.events")
    StructuredLogger("flowreport.events").info("export_job_registered", job_id="t1", filtered_location="f/x.csv")

    record = caplog.records[-1]
    assert record.getMessage() == "export_job_registered job_id=t1 filtered_location=f/x.csv"
    assert record.event == "export_job_registered"  # type: ignore[attr-defined]
    assert record.job_id == "t1"  # type: ignore[attr-defined]


def test_structured_logger_respects_level(caplog: Any) -> None:
    caplog.set_level(logging.WARNING, logger="flowreport.quiet")
    StructuredLogger("flowreport.quiet").debug("noise", x=1)
    assert not [r for r in caplog.records if r.name == "flowreport.quiet"]
