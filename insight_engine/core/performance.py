"""
Stage timing and metrics collection.
"""
import inspect
import time
import logging
from typing import Dict, Optional, Any
from functools import wraps
from collections import defaultdict
import threading

logger = logging.getLogger(__name__)

# Thread-safe metrics storage
_metrics_lock = threading.Lock()
_metrics: Dict[str, list] = defaultdict(list)

_MAX_SAMPLES = 1000


class PerformanceMonitor:
    """Monitor and track per-stage timings."""

    @staticmethod
    def record_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None):
        """
        Record a performance metric.

        Args:
            name: Metric name (e.g., 'parse_table', 'infer_schema')
            value: Metric value (usually duration in seconds)
            metadata: Optional metadata (status, error, ...)
        """
        with _metrics_lock:
            _metrics[name].append({
                'value': value,
                'timestamp': time.time(),
                'metadata': metadata or {}
            })

            if len(_metrics[name]) > _MAX_SAMPLES:
                _metrics[name] = _metrics[name][-_MAX_SAMPLES:]

    @staticmethod
    def get_stats(metric_name: str) -> Optional[Dict[str, float]]:
        """
        Get statistics for a metric.

        Returns:
            Dict with min, max, mean, count and percentiles, or None if no data
        """
        with _metrics_lock:
            samples = _metrics.get(metric_name)
            if not samples:
                return None
            values = sorted(m['value'] for m in samples)

        return {
            'count': len(values),
            'min': values[0],
            'max': values[-1],
            'mean': sum(values) / len(values),
            'p50': values[len(values) // 2],
            'p95': values[int(len(values) * 0.95)],
            'p99': values[int(len(values) * 0.99)],
        }

    @staticmethod
    def get_all_metrics() -> Dict[str, Dict[str, float]]:
        """Get statistics for all metrics."""
        with _metrics_lock:
            names = list(_metrics.keys())
        return {name: PerformanceMonitor.get_stats(name) for name in names}

    @staticmethod
    def clear_metrics():
        """Clear all metrics (useful for testing)."""
        with _metrics_lock:
            _metrics.clear()


def track_performance(metric_name: str):
    """
    Decorator to track function execution time.

    Usage:
        @track_performance("parse_table")
        def parse_table(...):
            ...
    """
    def decorator(func):
        def _record(start_time: float, error: Optional[Exception] = None):
            duration = time.time() - start_time
            if error is None:
                PerformanceMonitor.record_metric(metric_name, duration, {'status': 'success'})
                logger.debug(
                    f"{metric_name} completed in {duration:.3f}s",
                    extra={'metric': metric_name, 'duration': duration}
                )
            else:
                PerformanceMonitor.record_metric(
                    metric_name, duration, {'status': 'error', 'error': str(error)}
                )
                logger.debug(
                    f"{metric_name} failed after {duration:.3f}s: {error}",
                    extra={'metric': metric_name, 'duration': duration}
                )

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _record(start_time, e)
                raise
            _record(start_time)
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _record(start_time, e)
                raise
            _record(start_time)
            return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
