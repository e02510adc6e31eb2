"""
Cache Performance Monitor

Accumulates cache request outcomes and derives rolling statistics.
"""

from collections import deque
from datetime import datetime, timezone
from typing import Deque, Optional

from pydantic import BaseModel

from marketcache.core.config import settings
from marketcache.core.metrics import Metrics

# Degradation thresholds
DEGRADED_HIT_RATE = 50.0  # percent
DEGRADED_RESPONSE_TIME = 1000.0  # ms
DEGRADED_ERROR_RATE = 10.0  # percent


class CachePerformanceMetrics(BaseModel):
    """Snapshot of the monitor. Rates are percentages, times are ms."""
    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0
    hit_rate: float = 0.0
    average_response_time: float = 0.0
    error_rate: float = 0.0
    last_reset: datetime


class CachePerformanceMonitor:
    """
    Hit/miss/error accounting with a bounded window of response times.

    Example:
        ```python
        monitor = CachePerformanceMonitor()
        monitor.record_cache_hit(0.2)
        monitor.record_cache_miss(350.0)

        monitor.get_metrics().hit_rate  # 50.0
        ```
    """

    def __init__(self, max_samples: Optional[int] = None):
        self.max_samples = max_samples or settings.RESPONSE_TIME_SAMPLES
        self.reset()

    def reset(self):
        """Zero all counters and drop the response time window"""
        self.total_requests = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.errors = 0
        self.response_times: Deque[float] = deque(maxlen=self.max_samples)
        self.last_reset = datetime.now(timezone.utc)

    def record_cache_hit(self, response_time: float):
        self.total_requests += 1
        self.cache_hits += 1
        self.response_times.append(response_time)
        Metrics.increment('hit')
        Metrics.timing('response_time', response_time, tags=['result:hit'])

    def record_cache_miss(self, response_time: float):
        self.total_requests += 1
        self.cache_misses += 1
        self.response_times.append(response_time)
        Metrics.increment('miss')
        Metrics.timing('response_time', response_time, tags=['result:miss'])

    def record_error(self):
        self.errors += 1
        Metrics.increment('error')

    @property
    def hit_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.cache_hits / self.total_requests * 100

    @property
    def average_response_time(self) -> float:
        if not self.response_times:
            return 0.0
        return sum(self.response_times) / len(self.response_times)

    @property
    def error_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.errors / self.total_requests * 100

    def get_metrics(self) -> CachePerformanceMetrics:
        """Return a snapshot (not a live view) of the current metrics"""
        return CachePerformanceMetrics(
            total_requests=self.total_requests,
            cache_hits=self.cache_hits,
            cache_misses=self.cache_misses,
            errors=self.errors,
            hit_rate=self.hit_rate,
            average_response_time=self.average_response_time,
            error_rate=self.error_rate,
            last_reset=self.last_reset,
        )

    def get_summary(self) -> str:
        """Get performance summary for logging"""
        return (
            f"Cache Performance: {self.hit_rate:.1f}% hit rate, "
            f"{self.average_response_time:.0f}ms avg response, "
            f"{self.total_requests} total requests"
        )

    def is_performance_degraded(self) -> bool:
        return (
            self.hit_rate < DEGRADED_HIT_RATE
            or self.average_response_time > DEGRADED_RESPONSE_TIME
            or self.error_rate > DEGRADED_ERROR_RATE
        )
