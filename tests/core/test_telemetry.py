"""Telemetry and logging tests."""

from __future__ import annotations

import logging

import orjson

from direxport.core.logging import JSONFormatter, get_contextual_logger, get_logger
from direxport.core.telemetry import (
    LoggingTelemetryObserver,
    NullTelemetryObserver,
    TelemetryEvent,
    emit,
)


def test_emit_passes_properties(observer) -> None:
    emit(observer, TelemetryEvent.STAGE_COMPLETED, export_id="e1", stage="users", records=3)

    assert observer.of(TelemetryEvent.STAGE_COMPLETED) == [
        {"export_id": "e1", "stage": "users", "records": 3}
    ]


def test_emit_swallows_observer_failures(caplog) -> None:
    class Broken:
        def emit(self, event, properties):
            raise RuntimeError("sink down")

    with caplog.at_level(logging.WARNING, logger="direxport.telemetry"):
        emit(Broken(), TelemetryEvent.RUN_COMPLETED, export_id="e1")

    assert "Telemetry observer failed" in caplog.text


def test_null_observer_accepts_events() -> None:
    emit(NullTelemetryObserver(), TelemetryEvent.RUN_FAILED, export_id="e1")


def test_logging_observer_levels(caplog) -> None:
    target = get_logger("tests.telemetry")
    sink = LoggingTelemetryObserver(target)

    with caplog.at_level(logging.DEBUG, logger="direxport.tests.telemetry"):
        sink.emit(TelemetryEvent.RETRY_ATTEMPTED, {"attempt": 1})
        sink.emit(TelemetryEvent.RUN_COMPLETED, {"export_id": "e1"})
        sink.emit(TelemetryEvent.RUN_FAILED, {"export_id": "e1"})

    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.WARNING, logging.INFO, logging.ERROR]
    assert caplog.records[0].event == "RetryAttempted"
    assert caplog.records[0].properties == {"attempt": 1}


def test_json_formatter_includes_context() -> None:
    record = logging.LogRecord("direxport.orchestrator", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.export_id = "e1"
    record.stage = "groups"

    line = orjson.loads(JSONFormatter().format(record))

    assert line["message"] == "hello world"
    assert line["export_id"] == "e1"
    assert line["stage"] == "groups"
    assert line["level"] == "INFO"


def test_contextual_logger_stamps_export_and_stage(caplog) -> None:
    log = get_contextual_logger("tests.context", export_id="e1").with_context(stage="users")

    with caplog.at_level(logging.INFO, logger="direxport.tests.context"):
        log.info("page done", extra={"group_id": "g1"})

    record = caplog.records[0]
    assert record.export_id == "e1"
    assert record.stage == "users"
    assert record.group_id == "g1"
