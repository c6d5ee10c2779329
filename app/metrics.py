"""
Metrics sinks for archive runs.

The archive services only talk to the MetricsSink interface. Two sinks ship
with the service:
- MetricsCollector: keeps counters and gauges in memory (run summaries, tests)
- LoggingMetricsSink: writes each metric as a structured log line

Every event is tagged with the current correlation context.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from app.logging_config import current_correlation

# Metric names
ROWS_ARCHIVED = "archive_rows_archived"
ROWS_FAILED = "archive_rows_failed"
ROWS_PRUNED = "live_rows_pruned"
STORE_SIZE = "archive_store_size"
STAGE_SKIPPED = "archive_stage_skipped"


@dataclass
class MetricEvent:
    """A single emitted counter increment or gauge reading."""
    name: str
    kind: str  # "counter" or "gauge"
    value: int
    tags: dict[str, Any] = field(default_factory=dict)


class MetricsSink(ABC):
    """Interface for counter and gauge emission."""

    @abstractmethod
    def increment(self, name: str, value: int = 1, **tags: Any) -> None:
        """Add value to the named counter."""
        pass

    @abstractmethod
    def gauge(self, name: str, value: int, **tags: Any) -> None:
        """Record the current value of the named gauge."""
        pass

    @staticmethod
    def _tags(tags: dict[str, Any]) -> dict[str, Any]:
        merged = current_correlation()
        merged.update(tags)
        return merged


@dataclass
class MetricsCollector(MetricsSink):
    """
    Collect metrics for an archive run in memory.

    Counters are keyed by (name, table) so per-table totals can be read back
    without replaying events.
    """

    events: list[MetricEvent] = field(default_factory=list)
    counters: dict[tuple[str, str | None], int] = field(default_factory=dict)
    gauges: dict[tuple[str, str | None], int] = field(default_factory=dict)

    def increment(self, name: str, value: int = 1, **tags: Any) -> None:
        key = (name, tags.get("table"))
        self.counters[key] = self.counters.get(key, 0) + value
        self.events.append(MetricEvent(name, "counter", value, self._tags(tags)))

    def gauge(self, name: str, value: int, **tags: Any) -> None:
        self.gauges[(name, tags.get("table"))] = value
        self.events.append(MetricEvent(name, "gauge", value, self._tags(tags)))

    def counter_total(self, name: str, table: str | None = None) -> int:
        """Sum a counter, optionally restricted to one table."""
        return sum(
            value
            for (counter, counter_table), value in self.counters.items()
            if counter == name and (table is None or counter_table == table)
        )

    def get_summary(self) -> dict:
        """Get metrics summary."""
        return {
            "counters": {
                f"{name}[{table}]" if table else name: value
                for (name, table), value in self.counters.items()
            },
            "gauges": {
                f"{name}[{table}]" if table else name: value
                for (name, table), value in self.gauges.items()
            },
        }


class LoggingMetricsSink(MetricsSink):
    """Emit metrics as structured log lines for a log-based metrics pipeline."""

    def __init__(self, name: str = "archive.metrics"):
        self._logger = logging.getLogger(name)

    def increment(self, name: str, value: int = 1, **tags: Any) -> None:
        self._emit("counter", name, value, tags)

    def gauge(self, name: str, value: int, **tags: Any) -> None:
        self._emit("gauge", name, value, tags)

    def _emit(self, kind: str, name: str, value: int, tags: dict[str, Any]) -> None:
        self._logger.info(
            f"{kind} {name}={value}",
            extra={
                "event": "metric",
                "metric": name,
                "metric_type": kind,
                "value": value,
                "tags": self._tags(tags),
            },
        )
