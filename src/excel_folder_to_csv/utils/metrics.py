"""Operation metrics for conversion steps.

Timings and outcomes of decode, serialize, archive and delivery steps are
recorded as ``OperationMetrics`` in a process-wide ``MetricsCollector``.
"""

import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


@dataclass
class OperationMetrics:
    """Tracks metrics for a single operation."""

    operation_name: str
    run_id: Optional[str]
    start_time: float
    end_time: Optional[float] = None
    duration_ms: Optional[float] = None
    success: Optional[bool] = None
    error_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def complete(self, success: bool, error_type: Optional[str] = None) -> None:
        """Mark operation as complete and calculate duration.

        Args:
            success: Whether the operation succeeded
            error_type: Type of error if operation failed
        """
        self.end_time = time.time()
        self.duration_ms = (self.end_time - self.start_time) * 1000
        self.success = success
        self.error_type = error_type

    def add_metadata(self, key: str, value: Any) -> None:
        """Attach a metadata value to the operation."""
        self.metadata[key] = value

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to a plain dictionary."""
        return {
            "operation_name": self.operation_name,
            "run_id": self.run_id,
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error_type": self.error_type,
            "metadata": self.metadata.copy(),
        }


class MetricsCollector:
    """Collects and aggregates operation metrics."""

    def __init__(self, max_records: int = 10000):
        self.metrics: List[OperationMetrics] = []
        self.max_records = max_records
        self._lock = Lock()

    def record_operation(self, metrics: OperationMetrics) -> None:
        """Record completed operation metrics, dropping the oldest past the cap."""
        with self._lock:
            self.metrics.append(metrics)
            if len(self.metrics) > self.max_records:
                del self.metrics[: len(self.metrics) - self.max_records]

    def get_metrics_summary(self, operation_name: Optional[str] = None) -> Dict[str, Any]:
        """Get summary statistics for operations.

        Args:
            operation_name: Optional filter by operation name

        Returns:
            Summary statistics dictionary
        """
        with self._lock:
            filtered = [
                m for m in self.metrics
                if operation_name is None or m.operation_name == operation_name
            ]

        if not filtered:
            return {"total_operations": 0}

        completed = [m for m in filtered if m.success is not None]
        successful = [m for m in completed if m.success]
        failed = [m for m in completed if not m.success]
        durations = [m.duration_ms for m in completed if m.duration_ms is not None]

        summary: Dict[str, Any] = {
            "total_operations": len(filtered),
            "successful_operations": len(successful),
            "failed_operations": len(failed),
            "success_rate": len(successful) / len(completed) if completed else 0,
        }

        if durations:
            summary.update({
                "avg_duration_ms": sum(durations) / len(durations),
                "max_duration_ms": max(durations),
                "total_duration_ms": sum(durations),
            })

        if failed:
            error_counts: Dict[str, int] = {}
            for m in failed:
                key = m.error_type or "Unknown"
                error_counts[key] = error_counts.get(key, 0) + 1
            summary["error_breakdown"] = error_counts

        return summary

    def get_run_metrics(self, run_id: str) -> List[OperationMetrics]:
        """Get all metrics recorded for one run."""
        with self._lock:
            return [m for m in self.metrics if m.run_id == run_id]

    def clear_metrics(self) -> None:
        """Clear all collected metrics."""
        with self._lock:
            self.metrics.clear()


_global_metrics_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    return _global_metrics_collector


def create_operation_metrics(operation_name: str, run_id: Optional[str]) -> OperationMetrics:
    """Create a new, started OperationMetrics instance."""
    return OperationMetrics(
        operation_name=operation_name,
        run_id=run_id,
        start_time=time.time()
    )
