import inspect
import time
import logging
from functools import wraps
from typing import Dict, List


class PerformanceMonitor:
    def __init__(self):
        self.metrics: Dict[str, List[float]] = {}
        self.logger = logging.getLogger(__name__)

    def record(self, operation: str, duration: float) -> None:
        """Store one timing measurement for an operation"""
        times = self.metrics.setdefault(operation, [])
        times.append(duration)

        # Keep only last 100 measurements
        if len(times) > 100:
            del times[:-100]

        self.logger.debug(f"Performance: {operation} took {duration:.3f}s")

    def get_stats(self, operation: str) -> Dict[str, float]:
        """Get performance stats for an operation"""
        times = self.metrics.get(operation)
        if not times:
            return {"count": 0, "avg": 0.0, "min": 0.0, "max": 0.0}

        return {
            "count": len(times),
            "avg": sum(times) / len(times),
            "min": min(times),
            "max": max(times)
        }

    def get_all_stats(self) -> Dict[str, Dict[str, float]]:
        return {operation: self.get_stats(operation) for operation in self.metrics}

    def log_slow_operations(self, threshold: float = 5.0):
        """Log operations that take longer than threshold"""
        for operation, times in self.metrics.items():
            if times:
                avg_time = sum(times) / len(times)
                if avg_time > threshold:
                    self.logger.warning(f"Slow operation detected: {operation} averages {avg_time:.3f}s")


# Global performance monitor instance
performance_monitor = PerformanceMonitor()


def monitor_performance(operation: str):
    """Decorator to time sync or async functions"""
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    performance_monitor.record(operation, time.perf_counter() - start)
            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                performance_monitor.record(operation, time.perf_counter() - start)
        return wrapper
    return decorator
