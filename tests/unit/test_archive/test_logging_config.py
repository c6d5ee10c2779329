# tests/unit/test_archive/test_logging_config.py
"""Unit tests for structured logging helpers."""

import json
import logging

import pytest


def _record(message="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("archive.test", level, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestAlertLevel:
    def test_alert_is_above_critical(self):
        from app.logging_config import ALERT

        assert ALERT > logging.CRITICAL
        assert logging.getLevelName(ALERT) == "ALERT"


class TestCorrelationContext:
    """Tests for correlation_context()."""

    def test_binds_and_resets(self):
        from app.logging_config import correlation_context, current_correlation

        assert current_correlation() == {}
        with correlation_context("job", "srv", 7) as bound:
            assert bound == {"job_id": "job", "server_id": "srv", "worker_id": "7"}
            assert current_correlation() == bound
        assert current_correlation() == {}

    def test_resets_on_error(self):
        from app.logging_config import correlation_context, current_correlation

        with pytest.raises(RuntimeError):
            with correlation_context("job", "srv", "w"):
                raise RuntimeError("boom")

        assert current_correlation() == {}


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_includes_correlation_and_extras(self):
        from app.logging_config import JSONFormatter, correlation_context

        with correlation_context("job-1", "srv-1", "w-1"):
            line = JSONFormatter().format(_record(event="archive_row_failed", table="t", record_id="abc"))

        data = json.loads(line)
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["job_id"] == "job-1"
        assert data["server_id"] == "srv-1"
        assert data["worker_id"] == "w-1"
        assert data["event"] == "archive_row_failed"
        assert data["record_id"] == "abc"

    def test_alert_level_name(self):
        from app.logging_config import ALERT, JSONFormatter

        data = json.loads(JSONFormatter().format(_record(level=ALERT)))

        assert data["level"] == "ALERT"


class TestArchiveLogger:
    """Tests for ArchiveLogger."""

    def test_alert_logs_event(self, caplog):
        from app.logging_config import ALERT, ArchiveLogger

        ArchiveLogger("archive.test").alert("archive_run_failed", "store down", error="refused")

        record = caplog.records[-1]
        assert record.levelno == ALERT
        assert record.event == "archive_run_failed"
        assert record.error == "refused"

    def test_critical_logs_event(self, caplog):
        from app.logging_config import ArchiveLogger

        ArchiveLogger("archive.test").critical("archive_row_failed", "bad row", record_id="1")

        record = caplog.records[-1]
        assert record.levelno == logging.CRITICAL
        assert record.record_id == "1"


class TestLogStage:
    """Tests for log_stage()."""

    def test_sets_stage_and_logs_completion(self, caplog):
        from app.logging_config import log_stage, stage_var

        caplog.set_level(logging.INFO, logger="archive.stage")

        with log_stage("processed"):
            assert stage_var.get() == "processed"

        assert stage_var.get() is None
        assert caplog.records[-1].event == "stage_complete"

    def test_logs_and_reraises_failure(self, caplog):
        from app.logging_config import log_stage, stage_var

        with pytest.raises(ValueError):
            with log_stage("orphaned"):
                raise ValueError("nope")

        assert stage_var.get() is None
        assert caplog.records[-1].event == "stage_failed"
        assert caplog.records[-1].levelno == logging.ERROR


class TestConfigureLogging:
    def test_json_handler_installed(self):
        from app.logging_config import JSONFormatter, configure_logging

        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging(json_format=True, level="DEBUG")

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
