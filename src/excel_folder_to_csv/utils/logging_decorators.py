"""Logging decorators and context managers for operation tracking.

Both helpers log START / SUCCESS / ERROR records carrying a ``structured``
payload and record the operation's timing in the metrics collector.
"""

import functools
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, Optional

from .metrics import OperationMetrics, create_operation_metrics, get_metrics_collector
from .run_context import RunContext


def _summarize_args(args: tuple, kwargs: Dict[str, Any]) -> Dict[str, Any]:
    """Build a short, log-safe summary of call arguments.

    Raw bytes are reported by length only.
    """
    summary: Dict[str, Any] = {}

    def _short(value: Any) -> str:
        if isinstance(value, (bytes, bytearray)):
            return f"<{len(value)} bytes>"
        text = str(value)
        return text if len(text) <= 200 else text[:200] + "..."

    for i, arg in enumerate(args[:3]):
        summary[f"arg_{i}"] = _short(arg)
    for key, value in list(kwargs.items())[:5]:
        summary[key] = _short(value)
    return summary


def _finish(
    logger: logging.Logger,
    metrics: Optional[OperationMetrics],
    operation_name: str,
    error: Optional[BaseException] = None
) -> None:
    if metrics:
        metrics.complete(
            success=error is None,
            error_type=type(error).__name__ if error is not None else None
        )
        get_metrics_collector().record_operation(metrics)

    data: Dict[str, Any] = {"operation": operation_name}
    if metrics:
        data["duration_ms"] = metrics.duration_ms

    if error is None:
        data["status"] = "SUCCESS"
        logger.debug("Operation completed", extra={"structured": data})
    else:
        data.update({
            "status": "ERROR",
            "error_type": type(error).__name__,
            "error_message": str(error),
        })
        logger.debug("Operation failed", extra={"structured": data})


def log_operation(
    operation_name: str,
    log_args: bool = True,
    collect_metrics: bool = True
) -> Callable:
    """Decorator for automatic operation logging with metrics collection.

    Args:
        operation_name: Name of the operation being logged
        log_args: Whether to log a summary of the call arguments
        collect_metrics: Whether to record timing metrics

    Returns:
        Decorated function with logging
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger = logging.getLogger(func.__module__)
            metrics = None
            if collect_metrics:
                metrics = create_operation_metrics(operation_name, RunContext.get_run_id())

            start_data: Dict[str, Any] = {"operation": operation_name, "status": "START"}
            if log_args:
                start_data["args"] = _summarize_args(args, kwargs)
            logger.debug("Operation started", extra={"structured": start_data})

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finish(logger, metrics, operation_name, e)
                raise

            _finish(logger, metrics, operation_name)
            return result

        return wrapper
    return decorator


@contextmanager
def operation_context(
    operation_name: str,
    logger: Optional[logging.Logger] = None,
    collect_metrics: bool = True,
    **metadata: Any
) -> Generator[Optional[OperationMetrics], None, None]:
    """Context manager for operation tracking with logging and metrics.

    Args:
        operation_name: Name of the operation
        logger: Logger to use (defaults to this module's logger)
        collect_metrics: Whether to collect metrics
        **metadata: Additional metadata recorded with the operation

    Yields:
        OperationMetrics instance for the operation (None if disabled)
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    metrics = None
    if collect_metrics:
        metrics = create_operation_metrics(operation_name, RunContext.get_run_id())
        for key, value in metadata.items():
            metrics.add_metadata(key, value)

    logger.debug(
        "Operation context started",
        extra={"structured": {"operation": operation_name, "status": "START", **metadata}}
    )

    try:
        yield metrics
    except Exception as e:
        _finish(logger, metrics, operation_name, e)
        raise

    _finish(logger, metrics, operation_name)
