"""
Cache Health Check

Scores the caching system from cache statistics and performance metrics.
Pure functions: nothing here mutates the cache or the monitor.
"""

from typing import Dict, List, Literal

from pydantic import BaseModel

from marketcache.services.cache.models import TierStats
from marketcache.services.cache.monitor import CachePerformanceMetrics

MAX_CACHE_ENTRIES = 1000
MAX_EXPIRED_RATIO = 30.0  # percent


class CacheHealthStatistics(BaseModel):
    total_entries: int
    valid_entries: int
    expired_entries: int
    hit_rate: float
    average_response_time: float
    error_rate: float


class CacheHealthReport(BaseModel):
    status: Literal["healthy", "warning", "critical"]
    score: int  # 0-100
    issues: List[str]
    recommendations: List[str]
    statistics: CacheHealthStatistics


def perform_cache_health_check(
    stats: Dict[str, TierStats],
    metrics: CachePerformanceMetrics
) -> CacheHealthReport:
    """
    Score the cache starting from 100 and subtracting a fixed penalty for
    each threshold crossed.

    Args:
        stats: Per-tier counts from MarketDataCache.get_stats()
        metrics: Snapshot from CachePerformanceMonitor.get_metrics()

    Returns:
        CacheHealthReport with status healthy (>= 80), warning (>= 60)
        or critical
    """
    issues: List[str] = []
    recommendations: List[str] = []
    score = 100

    total_entries = sum(tier.total for tier in stats.values())
    valid_entries = sum(tier.valid for tier in stats.values())
    expired_entries = sum(tier.expired for tier in stats.values())

    # Hit rate
    if metrics.hit_rate < 50:
        issues.append(f"Low cache hit rate: {metrics.hit_rate:.1f}%")
        recommendations.append("Consider pre-warming cache with popular market data")
        score -= 20
    elif metrics.hit_rate < 70:
        issues.append(f"Moderate cache hit rate: {metrics.hit_rate:.1f}%")
        recommendations.append("Optimize cache expiration times")
        score -= 10

    # Response time
    if metrics.average_response_time > 1000:
        issues.append(f"High average response time: {metrics.average_response_time:.0f}ms")
        recommendations.append("Investigate slow blockchain calls")
        score -= 15
    elif metrics.average_response_time > 500:
        issues.append(f"Moderate response time: {metrics.average_response_time:.0f}ms")
        recommendations.append("Consider optimizing data fetching")
        score -= 5

    # Error rate
    if metrics.error_rate > 10:
        issues.append(f"High error rate: {metrics.error_rate:.1f}%")
        recommendations.append("Check blockchain connectivity and error handling")
        score -= 25
    elif metrics.error_rate > 5:
        issues.append(f"Moderate error rate: {metrics.error_rate:.1f}%")
        recommendations.append("Monitor for intermittent connectivity issues")
        score -= 10

    # Memory usage
    if total_entries > MAX_CACHE_ENTRIES:
        issues.append(f"High cache memory usage: {total_entries} entries")
        recommendations.append("Consider reducing cache expiration times or implementing LRU eviction")
        score -= 10

    expired_ratio = expired_entries / total_entries * 100 if total_entries else 0.0
    if expired_ratio > MAX_EXPIRED_RATIO:
        issues.append(f"High expired entries ratio: {expired_ratio:.1f}%")
        recommendations.append("Run cache cleanup more frequently")
        score -= 5

    if score >= 80:
        status = "healthy"
    elif score >= 60:
        status = "warning"
    else:
        status = "critical"

    if not issues:
        recommendations.append("Cache system is performing well")
        recommendations.append("Continue monitoring performance metrics")

    return CacheHealthReport(
        status=status,
        score=max(0, score),
        issues=issues,
        recommendations=recommendations,
        statistics=CacheHealthStatistics(
            total_entries=total_entries,
            valid_entries=valid_entries,
            expired_entries=expired_entries,
            hit_rate=metrics.hit_rate,
            average_response_time=metrics.average_response_time,
            error_rate=metrics.error_rate,
        ),
    )


def generate_cache_health_summary(report: CacheHealthReport) -> str:
    """Render a report as plain text for logs and operator tooling"""
    lines = [
        f"Cache Health Status: {report.status.upper()} (Score: {report.score}/100)",
        "",
        "Statistics:",
        f"- Total Entries: {report.statistics.total_entries}",
        f"- Valid Entries: {report.statistics.valid_entries}",
        f"- Hit Rate: {report.statistics.hit_rate:.1f}%",
        f"- Avg Response Time: {report.statistics.average_response_time:.0f}ms",
        f"- Error Rate: {report.statistics.error_rate:.1f}%",
    ]

    if report.issues:
        lines += ["", "Issues:"] + [f"- {issue}" for issue in report.issues]

    if report.recommendations:
        lines += ["", "Recommendations:"] + [f"- {rec}" for rec in report.recommendations]

    return "\n".join(lines) + "\n"
