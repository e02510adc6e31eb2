from datadog import initialize, statsd
from loguru import logger

from marketcache.core.config import settings

METRIC_PREFIX = "market_cache"

# Initialize DataDog if API key is present
if settings.DATADOG_API_KEY:
    initialize(
        api_key=settings.DATADOG_API_KEY,
        app_key=settings.DATADOG_APP_KEY,
        statsd_constant_tags=[f"env:{settings.ENVIRONMENT}", f"version:{settings.APP_VERSION}"],
    )
    logger.info("DataDog initialized")


def _name(metric_name: str) -> str:
    return f"{METRIC_PREFIX}.{metric_name}"


class Metrics:
    """Cache metrics forwarded to DataDog; no-ops without an API key"""

    @staticmethod
    def increment(metric_name: str, value: int = 1, tags: list = None):
        """Increment a counter metric"""
        if settings.DATADOG_API_KEY:
            statsd.increment(_name(metric_name), value, tags=tags or [])

    @staticmethod
    def gauge(metric_name: str, value: float, tags: list = None):
        """Set a gauge metric"""
        if settings.DATADOG_API_KEY:
            statsd.gauge(_name(metric_name), value, tags=tags or [])

    @staticmethod
    def timing(metric_name: str, value: float, tags: list = None):
        """Record a timing metric (ms)"""
        if settings.DATADOG_API_KEY:
            statsd.timing(_name(metric_name), value, tags=tags or [])

# Usage:
# Metrics.increment('hit')                -> market_cache.hit
# Metrics.timing('response_time', 12.5)   -> market_cache.response_time
