"""
Structured JSON logging for archive runs.

Every log line carries the correlation context of the run that emitted it
(job, server and worker identifiers), plus an event name and any extra
fields passed by the caller.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

# Severity above CRITICAL for failures that need a human now
ALERT = logging.CRITICAL + 10
logging.addLevelName(ALERT, "ALERT")

# Context variables for run correlation
job_id_var: ContextVar[str | None] = ContextVar("job_id", default=None)
server_id_var: ContextVar[str | None] = ContextVar("server_id", default=None)
worker_id_var: ContextVar[str | None] = ContextVar("worker_id", default=None)
stage_var: ContextVar[str | None] = ContextVar("stage", default=None)

# Extra record attributes copied into the JSON payload
EXTRA_FIELDS = (
    "event",
    "duration_ms",
    "table",
    "record_id",
    "error",
    "metric",
    "metric_type",
    "value",
    "tags",
    "selected",
    "archived",
    "failed",
    "pruned",
)


def current_correlation() -> dict[str, str]:
    """Return the correlation identifiers bound to the current context."""
    context = {
        "job_id": job_id_var.get(),
        "server_id": server_id_var.get(),
        "worker_id": worker_id_var.get(),
    }
    return {key: value for key, value in context.items() if value is not None}


@contextmanager
def correlation_context(job_id: str, server_id: str, worker_id: str):
    """
    Bind job/server/worker identifiers for everything logged or measured inside.

    Usage:
        with correlation_context("job-1", "web-3", "worker-7"):
            run_archive_workflow(...)
    """
    tokens = (
        job_id_var.set(str(job_id)),
        server_id_var.set(str(server_id)),
        worker_id_var.set(str(worker_id)),
    )
    try:
        yield current_correlation()
    finally:
        worker_id_var.reset(tokens[2])
        server_id_var.reset(tokens[1])
        job_id_var.reset(tokens[0])


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "job_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        log_data.update(current_correlation())

        stage = stage_var.get()
        if stage:
            log_data["stage"] = stage

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure root logging for the service or a CLI run.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.WARNING)


# -----------------------------------------------------------------------------
# Archive Logger
# -----------------------------------------------------------------------------


class ArchiveLogger:
    """
    Structured logger for archive operations.

    Every call names an event so log lines can be filtered without parsing
    the message.
    """

    def __init__(self, name: str = "archive"):
        self._logger = logging.getLogger(name)

    def debug(self, event: str, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, event, message, **kwargs)

    def info(self, event: str, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, event, message, **kwargs)

    def critical(self, event: str, message: str, **kwargs: Any) -> None:
        """Log a failure that was recovered locally but must not go unnoticed."""
        self._log(logging.CRITICAL, event, message, **kwargs)

    def alert(self, event: str, message: str, **kwargs: Any) -> None:
        """Log a failure that aborted the run."""
        self._log(ALERT, event, message, **kwargs)

    def _log(self, level: int, event: str, message: str, **kwargs: Any) -> None:
        extra = {"event": event}
        extra.update(kwargs)
        self._logger.log(level, message, extra=extra)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def log_stage(stage: str):
    """
    Context manager for stage-level logging.

    Logs stage start and end with duration. Failures are logged and re-raised.

    Usage:
        with log_stage("processed"):
            # ... stage logic ...
    """
    token = stage_var.set(stage)

    start_time = time.time()
    logger = logging.getLogger("archive.stage")

    logger.debug(f"Stage {stage} started", extra={"event": "stage_start"})

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Stage {stage} completed",
            extra={"event": "stage_complete", "duration_ms": duration_ms},
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Stage {stage} failed: {e}",
            extra={"event": "stage_failed", "duration_ms": duration_ms},
            exc_info=True,
        )
        raise
    finally:
        stage_var.reset(token)
