"""
metrics.py - Observability for engine invocations.

Provides:
- Prometheus-style counters, gauges and histograms
- Structured JSON logging
- ClientLogger with named events for commands, index syncs and watches
"""

import json
import logging
import os
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# =============================================================================
# Metric Types
# =============================================================================

@dataclass
class MetricValue:
    """Single metric value with labels."""
    name: str
    value: float
    labels: Dict[str, str] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class _Metric:
    def __init__(self, name: str, help_text: str, labels: Optional[List[str]] = None):
        self.name = name
        self.help = help_text
        self.labels = labels or []
        self._lock = threading.Lock()

    def _label_key(self, label_values: dict) -> tuple:
        return tuple(str(label_values.get(l, "")) for l in self.labels)


class Counter(_Metric):
    """Monotonic counter."""

    def __init__(self, name: str, help_text: str, labels: Optional[List[str]] = None):
        super().__init__(name, help_text, labels)
        self._values: Dict[tuple, float] = {}

    def inc(self, value: float = 1, **label_values) -> None:
        if value < 0:
            raise ValueError("Counter can only increase")
        key = self._label_key(label_values)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def get(self, **label_values) -> float:
        return self._values.get(self._label_key(label_values), 0)

    def collect(self) -> List[MetricValue]:
        with self._lock:
            return [
                MetricValue(name=self.name, value=value, labels=dict(zip(self.labels, key)))
                for key, value in self._values.items()
            ]


class Gauge(_Metric):
    """Value that can go up and down."""

    def __init__(self, name: str, help_text: str, labels: Optional[List[str]] = None):
        super().__init__(name, help_text, labels)
        self._values: Dict[tuple, float] = {}

    def inc(self, value: float = 1, **label_values) -> None:
        key = self._label_key(label_values)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def dec(self, value: float = 1, **label_values) -> None:
        self.inc(-value, **label_values)

    def get(self, **label_values) -> float:
        return self._values.get(self._label_key(label_values), 0)

    def collect(self) -> List[MetricValue]:
        with self._lock:
            return [
                MetricValue(name=self.name, value=value, labels=dict(zip(self.labels, key)))
                for key, value in self._values.items()
            ]


class Histogram(_Metric):
    """Bucketed distribution of observed values."""

    DEFAULT_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf"))

    def __init__(
        self,
        name: str,
        help_text: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None,
    ):
        super().__init__(name, help_text, labels)
        self.buckets = buckets or self.DEFAULT_BUCKETS
        self._values: Dict[tuple, dict] = {}

    def observe(self, value: float, **label_values) -> None:
        key = self._label_key(label_values)
        with self._lock:
            data = self._values.setdefault(
                key, {"count": 0, "sum": 0.0, "buckets": {b: 0 for b in self.buckets}}
            )
            data["count"] += 1
            data["sum"] += value
            for bucket in self.buckets:
                if value <= bucket:
                    data["buckets"][bucket] += 1

    @contextmanager
    def time(self, **label_values):
        """Context manager to time an operation."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(time.perf_counter() - start, **label_values)

    def count(self, **label_values) -> int:
        data = self._values.get(self._label_key(label_values))
        return data["count"] if data else 0

    def collect(self) -> List[MetricValue]:
        results = []
        with self._lock:
            for key, data in self._values.items():
                labels = dict(zip(self.labels, key))
                results.append(MetricValue(name=f"{self.name}_sum", value=data["sum"], labels=labels))
                results.append(MetricValue(name=f"{self.name}_count", value=data["count"], labels=labels))
                for le, count in data["buckets"].items():
                    results.append(
                        MetricValue(name=f"{self.name}_bucket", value=count, labels={**labels, "le": str(le)})
                    )
        return results


# =============================================================================
# Metrics Registry
# =============================================================================

class MetricsRegistry:
    """Registry of named metrics sharing a prefix."""

    def __init__(self, prefix: str = "ledgerdb"):
        self.prefix = prefix
        self._metrics: Dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _register(self, name: str, factory):
        full_name = f"{self.prefix}_{name}"
        with self._lock:
            if full_name not in self._metrics:
                self._metrics[full_name] = factory(full_name)
            return self._metrics[full_name]

    def counter(self, name: str, help_text: str, labels: Optional[List[str]] = None) -> Counter:
        return self._register(name, lambda full: Counter(full, help_text, labels))

    def gauge(self, name: str, help_text: str, labels: Optional[List[str]] = None) -> Gauge:
        return self._register(name, lambda full: Gauge(full, help_text, labels))

    def histogram(
        self,
        name: str,
        help_text: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None,
    ) -> Histogram:
        return self._register(name, lambda full: Histogram(full, help_text, labels, buckets))

    def collect_all(self) -> List[MetricValue]:
        results = []
        with self._lock:
            metrics = list(self._metrics.values())
        for metric in metrics:
            results.extend(metric.collect())
        return results

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []
        for metric in self.collect_all():
            if metric.labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in metric.labels.items())
                lines.append(f"{metric.name}{{{label_str}}} {metric.value}")
            else:
                lines.append(f"{metric.name} {metric.value}")
        return "\n".join(lines)

    def export_json(self) -> dict:
        return {
            "metrics": [
                {"name": m.name, "value": m.value, "labels": m.labels, "timestamp": m.timestamp}
                for m in self.collect_all()
            ],
            "exported_at": time.time(),
        }


# =============================================================================
# Pre-defined Client Metrics
# =============================================================================

_registry = MetricsRegistry()

commands_total = _registry.counter(
    "commands_total",
    "Engine invocations by subcommand and outcome",
    labels=["subcommand", "status"],
)

command_latency_seconds = _registry.histogram(
    "command_latency_seconds",
    "Wall time of run-to-completion engine invocations",
    labels=["subcommand"],
)

index_txs_applied_total = _registry.counter(
    "index_txs_applied_total",
    "Transactions applied to the local index by one-shot syncs",
    labels=["mode"],
)

watch_processes_active = _registry.gauge(
    "watch_processes_active",
    "Index watch processes currently alive",
)


def get_registry() -> MetricsRegistry:
    """Get the global metrics registry."""
    return _registry


# =============================================================================
# Structured Logging
# =============================================================================

_STANDARD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName",
})


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra
        self._hostname = os.environ.get("HOSTNAME", "unknown")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self._hostname,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        if self.include_extra:
            for key, value in record.__dict__.items():
                if key not in _STANDARD_ATTRS and not key.startswith("_"):
                    log_data[key] = value
        return json.dumps(log_data, default=str)


class ClientLogger:
    """
    Structured logger for engine interactions.

    Each helper logs one named event and updates the matching metric.
    """

    def __init__(self, name: str = "ledgerdb"):
        self._logger = logging.getLogger(name)

    def command_completed(self, subcommand: str, duration_ms: float, exit_code: int = 0) -> None:
        self._logger.debug(
            f"ledgerdb {subcommand} completed in {duration_ms:.1f}ms",
            extra={
                "event": "command_completed",
                "subcommand": subcommand,
                "duration_ms": duration_ms,
                "exit_code": exit_code,
            },
        )
        commands_total.inc(1, subcommand=subcommand, status="success")
        command_latency_seconds.observe(duration_ms / 1000.0, subcommand=subcommand)

    def command_failed(self, subcommand: str, error: str, exit_code: int | None = None) -> None:
        self._logger.warning(
            f"ledgerdb {subcommand} failed: {error}",
            extra={
                "event": "command_failed",
                "subcommand": subcommand,
                "error": error,
                "exit_code": exit_code,
            },
        )
        commands_total.inc(1, subcommand=subcommand, status="failed")

    def index_synced(self, mode: str, txs_applied: int, docs_upserted: int,
                     docs_deleted: int, reset: bool, last_commit: str | None) -> None:
        self._logger.info(
            f"Index sync applied={txs_applied}, upserted={docs_upserted}, deleted={docs_deleted}",
            extra={
                "event": "index_synced",
                "mode": mode,
                "txs_applied": txs_applied,
                "docs_upserted": docs_upserted,
                "docs_deleted": docs_deleted,
                "reset": reset,
                "last_commit": last_commit,
            },
        )
        index_txs_applied_total.inc(txs_applied, mode=mode)

    def watch_started(self, pid: int | None, interval_ms: int, jitter_ms: int) -> None:
        self._logger.info(
            f"Index watch started (pid={pid}, interval={interval_ms}ms)",
            extra={
                "event": "watch_started",
                "pid": pid,
                "interval_ms": interval_ms,
                "jitter_ms": jitter_ms,
            },
        )
        watch_processes_active.inc()

    def watch_stopped(self, pid: int | None, returncode: int | None) -> None:
        self._logger.info(
            f"Index watch stopped (pid={pid}, returncode={returncode})",
            extra={"event": "watch_stopped", "pid": pid, "returncode": returncode},
        )
        watch_processes_active.dec()


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """
    Configure logging for applications embedding the client.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON formatting on the console
        log_file: Optional log file path (always JSON)
    """
    handlers: list[logging.Handler] = []

    console = logging.StreamHandler()
    if json_format:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
    handlers.append(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True,
    )
