"""
Query timing diagnostics

Keeps the most recent gateway operation timings in a bounded ring
buffer. Used for /stats only, never persisted.
"""

import time
from collections import deque
from dataclasses import dataclass, field, asdict
from functools import wraps
from typing import Any, Awaitable, Callable, Deque, Dict, List

from call_ingest.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class QueryMetric:
    """Timing of a single gateway operation"""
    label: str
    duration_ms: float
    timestamp: float = field(default_factory=time.time)
    cache_hit: bool = False
    failed: bool = False


class QueryMetrics:
    """Append-only ring buffer of query metrics"""

    def __init__(self, max_entries: int = 1000, slow_threshold_ms: float = 100.0):
        self.slow_threshold_ms = slow_threshold_ms
        self._buffer: Deque[QueryMetric] = deque(maxlen=max(1, max_entries))

    def __len__(self) -> int:
        return len(self._buffer)

    def record(
        self,
        label: str,
        duration_ms: float,
        cache_hit: bool = False,
        failed: bool = False
    ) -> QueryMetric:
        metric = QueryMetric(
            label=label,
            duration_ms=round(duration_ms, 3),
            cache_hit=cache_hit,
            failed=failed,
        )
        self._buffer.append(metric)
        return metric

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        return [asdict(m) for m in list(self._buffer)[-limit:]]

    def summary(self) -> Dict[str, Dict[str, Any]]:
        """
        Aggregate the buffer per label

        Returns:
            {label: {count, avg_ms, max_ms, cache_hits, failures}}
        """
        grouped: Dict[str, Dict[str, Any]] = {}
        for metric in self._buffer:
            stats = grouped.setdefault(metric.label, {
                "count": 0,
                "total_ms": 0.0,
                "max_ms": 0.0,
                "cache_hits": 0,
                "failures": 0,
            })
            stats["count"] += 1
            stats["total_ms"] += metric.duration_ms
            stats["max_ms"] = max(stats["max_ms"], metric.duration_ms)
            stats["cache_hits"] += int(metric.cache_hit)
            stats["failures"] += int(metric.failed)

        for stats in grouped.values():
            stats["avg_ms"] = round(stats.pop("total_ms") / stats["count"], 3)
        return grouped

    def clear(self) -> None:
        self._buffer.clear()


def timed(
    metrics: QueryMetrics,
    label: str,
    fn: Callable[..., Awaitable[Any]]
) -> Callable[..., Awaitable[Any]]:
    """
    Wrap an async function so every call is timed into the metrics buffer

    Calls slower than the buffer's threshold are logged as warnings;
    failures are logged with their duration and re-raised.

    Args:
        metrics: Destination buffer
        label: Metric label
        fn: Function to wrap
    """

    @wraps(fn)
    async def wrapper(*args, **kwargs) -> Any:
        start = time.perf_counter()
        try:
            result = await fn(*args, **kwargs)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            metrics.record(label, duration_ms, failed=True)
            logger.error(f"[Performance] {label} failed after {duration_ms:.2f}ms: {e}")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        metrics.record(label, duration_ms)
        if duration_ms > metrics.slow_threshold_ms:
            logger.warning(f"[Performance] {label} took {duration_ms:.2f}ms")
        return result

    return wrapper
