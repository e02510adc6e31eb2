"""
Market Data Cache

In-memory, multi-tier cache for market data:

1. Static - question, resolution criteria, spread labels (never expires)
2. Timing - bidding deadline, resolution time (minutes)
3. Dynamic - prices, outstanding shares, state (seconds)
4. User - positions keyed by (user, market) (seconds, shorter than dynamic)
5. Error - last fetch failure per market (shortest, suppresses retry storms)

Validity is checked against the clock on every read; expired entries
behave as misses until cleanup_expired() removes them.
"""

import time
from typing import Any, Callable, Dict, Iterable, Optional

from loguru import logger

from marketcache.core.config import settings
from marketcache.services.cache.models import (
    NEVER,
    CacheEntry,
    CacheTier,
    DynamicMarketData,
    StaticMarketData,
    TierStats,
    TimingData,
    UserPositionData,
)


def default_ttls() -> Dict[CacheTier, Optional[float]]:
    """TTL per tier in seconds; None never expires"""
    return {
        CacheTier.STATIC: None,
        CacheTier.TIMING: settings.CACHE_TIMING_TTL,
        CacheTier.DYNAMIC: settings.CACHE_DYNAMIC_TTL,
        CacheTier.USER: settings.CACHE_USER_TTL,
        CacheTier.ERROR: settings.CACHE_ERROR_TTL,
    }


class MarketDataCache:
    """
    Key -> entry tables, one per tier.

    Example:
        ```python
        cache = MarketDataCache()
        cache.set_dynamic_data(market_id, dynamic)

        dynamic = cache.get_dynamic_data(market_id)  # None once expired
        ```
    """

    def __init__(
        self,
        ttls: Optional[Dict[CacheTier, Optional[float]]] = None,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            ttls: Per-tier TTL overrides in seconds (None = never expires)
            clock: Returns the current time in epoch seconds
        """
        self.ttls = default_ttls()
        if ttls:
            self.ttls.update(ttls)
        self.clock = clock
        self._tiers: Dict[CacheTier, Dict[str, CacheEntry]] = {
            tier: {} for tier in CacheTier
        }

    # Generic tier access

    def get(self, tier: CacheTier, key: str) -> Optional[Any]:
        """Return the cached data if present and not expired"""
        entry = self._tiers[tier].get(key)
        if entry is not None and entry.is_valid(self.clock()):
            return entry.data
        return None

    def set(self, tier: CacheTier, key: str, data: Any) -> CacheEntry:
        now = self.clock()
        ttl = self.ttls[tier]
        entry = CacheEntry(
            data=data,
            created_at=now,
            expires_at=NEVER if ttl is None else now + ttl,
            tier=tier,
        )
        self._tiers[tier][key] = entry
        return entry

    def get_entry(self, tier: CacheTier, key: str) -> Optional[CacheEntry]:
        """Raw entry lookup, expired or not"""
        return self._tiers[tier].get(key)

    # Typed helpers

    def get_static_data(self, market_id: str) -> Optional[StaticMarketData]:
        return self.get(CacheTier.STATIC, market_id)

    def set_static_data(self, market_id: str, data: StaticMarketData):
        self.set(CacheTier.STATIC, market_id, data)

    def get_timing_data(self, market_id: str) -> Optional[TimingData]:
        return self.get(CacheTier.TIMING, market_id)

    def set_timing_data(self, market_id: str, data: TimingData):
        self.set(CacheTier.TIMING, market_id, data)

    def get_dynamic_data(self, market_id: str) -> Optional[DynamicMarketData]:
        return self.get(CacheTier.DYNAMIC, market_id)

    def set_dynamic_data(self, market_id: str, data: DynamicMarketData):
        self.set(CacheTier.DYNAMIC, market_id, data)

    @staticmethod
    def user_key(user_address: str, market_id: str) -> str:
        return f"{user_address}:{market_id}"

    def get_user_data(self, user_address: str, market_id: str) -> Optional[UserPositionData]:
        return self.get(CacheTier.USER, self.user_key(user_address, market_id))

    def set_user_data(self, user_address: str, market_id: str, data: UserPositionData):
        self.set(CacheTier.USER, self.user_key(user_address, market_id), data)

    # Error tier

    def has_recent_error(self, market_id: str) -> bool:
        """Check if we have a recent error for this market to avoid repeated failed calls"""
        return self.get(CacheTier.ERROR, market_id) is not None

    def set_error(self, market_id: str, error: BaseException):
        self.set(CacheTier.ERROR, market_id, error)

    def get_error(self, market_id: str) -> Optional[BaseException]:
        return self.get(CacheTier.ERROR, market_id)

    def error_retry_after(self, market_id: str) -> float:
        """Seconds until the cached error for this market expires (0 if none)"""
        entry = self._tiers[CacheTier.ERROR].get(market_id)
        if entry is None:
            return 0.0
        return max(0.0, entry.expires_at - self.clock())

    # Maintenance

    def invalidate(self, key: str, tiers: Iterable[CacheTier]) -> int:
        """Drop one key from the given tiers, returning how many entries were removed"""
        removed = 0
        for tier in tiers:
            if self._tiers[tier].pop(key, None) is not None:
                removed += 1
        if removed:
            logger.debug(f"Invalidated {removed} cache entries for {key}")
        return removed

    def preload_static(self, entries: Dict[str, StaticMarketData]) -> int:
        for market_id, data in entries.items():
            self.set_static_data(market_id, data)
        return len(entries)

    def cleanup_expired(self) -> int:
        """Clear expired entries from all tiers, returning how many were removed"""
        now = self.clock()
        removed = 0

        for table in self._tiers.values():
            expired_keys = [
                key for key, entry in table.items() if not entry.is_valid(now)
            ]
            for key in expired_keys:
                del table[key]
            removed += len(expired_keys)

        if removed:
            logger.debug(f"Removed {removed} expired cache entries")
        return removed

    def clear_all(self):
        """Clear all caches"""
        for table in self._tiers.values():
            table.clear()
        logger.info("Market data cache cleared")

    def get_stats(self) -> Dict[str, TierStats]:
        """Per tier {total, valid, expired} counts as of now"""
        now = self.clock()
        stats = {}

        for tier, table in self._tiers.items():
            tier_stats = TierStats(total=len(table))
            for entry in table.values():
                if entry.is_valid(now):
                    tier_stats.valid += 1
                else:
                    tier_stats.expired += 1
            stats[tier.value] = tier_stats

        return stats
