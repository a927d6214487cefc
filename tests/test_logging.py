"""Tests for logging configuration."""

import json
import logging

from curriculum_rag.utils.logging import JSONFormatter, StandardFormatter, get_logger, log_stage, set_request_id


def _record(**extra):
    record = logging.LogRecord("curriculum_rag.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_get_logger():
    """Test that get_logger returns a child of the package logger."""
    logger = get_logger("test")

    assert isinstance(logger, logging.Logger)
    assert logger.name == "curriculum_rag.test"
    assert get_logger().name == "curriculum_rag"


def test_json_formatter_includes_request_id_and_extra_fields():
    set_request_id("req-42")
    try:
        output = json.loads(JSONFormatter().format(_record(extra_fields={"chunks": 3})))
    finally:
        set_request_id(None)

    assert output["message"] == "hello world"
    assert output["level"] == "INFO"
    assert output["request_id"] == "req-42"
    assert output["chunks"] == 3


def test_standard_formatter_defaults_request_id():
    line = StandardFormatter().format(_record())
    assert "[N/A]" in line
    assert line.endswith("hello world")


def test_log_stage_attaches_counters(caplog):
    logger = get_logger("pipeline")
    logger.addHandler(caplog.handler)
    logger.setLevel(logging.INFO)
    try:
        log_stage("chunk", "3 chunks", chunks=3)
    finally:
        logger.removeHandler(caplog.handler)

    record = caplog.records[-1]
    assert record.getMessage() == "[chunk] 3 chunks"
    assert record.extra_fields == {"stage": "chunk", "chunks": 3}
