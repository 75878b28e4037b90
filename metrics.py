"""Local, opt-in metrics for Bourbaki."""

import json
import threading
import time
import uuid
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List

from logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class MetricEvent:
    """Represents a single metric event."""
    timestamp: str
    event_type: str
    data: Dict[str, Any]
    session_id: str


@dataclass
class PerformanceBenchmark:
    """Performance benchmark data."""
    operation: str
    duration_ms: float
    timestamp: str
    success: bool
    error_type: Optional[str] = None


@dataclass
class RunCounters:
    """Counters for the current run."""
    external_commands: int = 0
    failed_commands: int = 0
    refreshes: int = 0
    errors_count: int = 0
    commands_by_program: Dict[str, int] = field(default_factory=dict)


class MetricsCollector:
    """Collects events and timings, appending them to a JSONL file when enabled."""

    def __init__(self, config_dir: Path, enabled: bool = False):
        """Initialize metrics collector.

        Args:
            config_dir: Directory under which the ``metrics`` folder is created
            enabled: Whether events are written to disk
        """
        self.metrics_dir = config_dir / "metrics"
        self.enabled = enabled
        self.session_id = str(uuid.uuid4())
        self.counters = RunCounters()
        self.performance_benchmarks: List[PerformanceBenchmark] = []
        self.events_file = self.metrics_dir / "events.jsonl"

        # Worker threads record commands concurrently
        self._lock = threading.Lock()

        logger.debug(f"Metrics collector initialized (session: {self.session_id[:8]}, enabled: {enabled})")

    def record_event(self, event_type: str, data: Dict[str, Any]):
        """Append an event to the events file if metrics are enabled."""
        if not self.enabled:
            return

        with self._lock:
            try:
                event = MetricEvent(
                    timestamp=datetime.now().isoformat(),
                    event_type=event_type,
                    data=data,
                    session_id=self.session_id,
                )
                self.metrics_dir.mkdir(parents=True, exist_ok=True)
                with open(self.events_file, 'a', encoding='utf-8') as f:
                    f.write(json.dumps(asdict(event), default=str) + '\n')
            except OSError as e:
                logger.warning(f"Failed to record event {event_type}: {e}")

    def record_command(self, program: str, success: bool, duration_ms: float):
        """Record one external command execution."""
        with self._lock:
            self.counters.external_commands += 1
            if not success:
                self.counters.failed_commands += 1
            by_program = self.counters.commands_by_program
            by_program[program] = by_program.get(program, 0) + 1

        self.record_event('external_command', {
            'program': program,
            'success': success,
            'duration_ms': round(duration_ms, 2),
        })

    def record_error(self, error_type: str, error_message: str, context: Dict[str, Any] = None):
        """Record error metrics."""
        with self._lock:
            self.counters.errors_count += 1

        self.record_event('error', {
            'error_type': error_type,
            'error_message': error_message,
            'context': context or {}
        })

    def record_performance(self, operation: str, duration_ms: float, success: bool, error_type: Optional[str] = None):
        """Record performance benchmark."""
        benchmark = PerformanceBenchmark(
            operation=operation,
            duration_ms=duration_ms,
            timestamp=datetime.now().isoformat(),
            success=success,
            error_type=error_type
        )
        with self._lock:
            self.performance_benchmarks.append(benchmark)
            if operation.startswith("refresh"):
                self.counters.refreshes += 1

        self.record_event('performance', asdict(benchmark))

    @contextmanager
    def time_operation(self, operation_name: str):
        """Context manager for timing operations.

        Usage:
            with metrics.time_operation('refresh.fast_phase'):
                # perform operation
                pass
        """
        start_time = time.monotonic()
        success = True
        error_type = None

        try:
            yield
        except Exception as e:
            success = False
            error_type = type(e).__name__
            raise
        finally:
            duration_ms = (time.monotonic() - start_time) * 1000
            self.record_performance(operation_name, duration_ms, success, error_type)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get summary of collected metrics."""
        with self._lock:
            summary = {
                'counters': asdict(self.counters),
                'performance_benchmarks_count': len(self.performance_benchmarks),
                'enabled': self.enabled,
                'session_id': self.session_id[:8] + "...",
            }
            durations = [b.duration_ms for b in self.performance_benchmarks if b.success]
        if durations:
            summary['performance_stats'] = {
                'avg_duration_ms': sum(durations) / len(durations),
                'min_duration_ms': min(durations),
                'max_duration_ms': max(durations),
            }
        return summary


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def initialize_metrics(config_dir: Path, enabled: bool = False) -> MetricsCollector:
    """Initialize global metrics collector."""
    global _metrics_collector
    _metrics_collector = MetricsCollector(config_dir, enabled)
    return _metrics_collector


def get_metrics_collector() -> Optional[MetricsCollector]:
    """Get the global metrics collector instance."""
    return _metrics_collector


def record_command(program: str, success: bool, duration_ms: float):
    """Record an external command execution."""
    if _metrics_collector:
        _metrics_collector.record_command(program, success, duration_ms)


def record_error(error_type: str, error_message: str, context: Dict[str, Any] = None):
    """Record an error."""
    if _metrics_collector:
        _metrics_collector.record_error(error_type, error_message, context)


def time_operation(operation_name: str):
    """Context manager for timing operations."""
    if _metrics_collector:
        return _metrics_collector.time_operation(operation_name)
    # No-op when metrics have not been initialized
    return nullcontext()
