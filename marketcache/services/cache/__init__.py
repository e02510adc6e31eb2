"""
Cache Services Package

In-memory tiers, performance monitoring and health scoring for market data.
"""

from marketcache.services.cache.store import MarketDataCache
from marketcache.services.cache.monitor import (
    CachePerformanceMonitor,
    CachePerformanceMetrics,
)
from marketcache.services.cache.health import (
    CacheHealthReport,
    perform_cache_health_check,
    generate_cache_health_summary,
)
from marketcache.services.cache.catalog import MarketCatalog, MarketDetails
from marketcache.services.cache.models import (
    CacheTier,
    CacheEntry,
    StaticMarketData,
    TimingData,
    DynamicMarketData,
    UserPositionData,
    PositionEntry,
    SpreadLabel,
    TierStats,
)

__all__ = [
    'MarketDataCache',
    'CachePerformanceMonitor',
    'CachePerformanceMetrics',
    'CacheHealthReport',
    'perform_cache_health_check',
    'generate_cache_health_summary',
    'MarketCatalog',
    'MarketDetails',
    'CacheTier',
    'CacheEntry',
    'StaticMarketData',
    'TimingData',
    'DynamicMarketData',
    'UserPositionData',
    'PositionEntry',
    'SpreadLabel',
    'TierStats',
]
