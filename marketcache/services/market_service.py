"""
Optimized Market Service

Read-through access to market data over the multi-tier cache:
- each tier (static, timing, dynamic) is fetched only when missing or expired
- a recent failure for a market fails fast instead of hitting the ledger again
- batched reads prefetch missing tiers in bounded parallel batches
- hit/miss/error outcomes feed the performance monitor
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from loguru import logger

from marketcache.core.config import settings
from marketcache.services.cache.catalog import MarketCatalog
from marketcache.services.cache.health import (
    CacheHealthReport,
    generate_cache_health_summary,
    perform_cache_health_check,
)
from marketcache.services.cache.models import (
    CacheTier,
    DynamicMarketData,
    PositionEntry,
    StaticMarketData,
    TierStats,
    TimingData,
    UserPositionData,
)
from marketcache.services.cache.monitor import (
    CachePerformanceMetrics,
    CachePerformanceMonitor,
)
from marketcache.services.cache.store import MarketDataCache
from marketcache.services.market_info import CacheInfo, MarketInfo, assemble_market_info
from marketcache.services.sui.errors import SuppressedRetryError
from marketcache.services.sui.models import MarketObject, RawUserPosition
from marketcache.services.sui.source import MarketDataSource, SuiMarketDataSource

T = TypeVar("T")

MARKET_TIERS = (CacheTier.STATIC, CacheTier.TIMING, CacheTier.DYNAMIC)
REFRESH_TIERS = (CacheTier.TIMING, CacheTier.DYNAMIC, CacheTier.ERROR)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def align_spread_prices(pairs: List[Tuple[int, int]], spread_count: int) -> List[Optional[int]]:
    """Place (spread_index, price) pairs at their index; unpriced spreads are None"""
    size = max([spread_count] + [index + 1 for index, _ in pairs])
    prices: List[Optional[int]] = [None] * size
    for index, price in pairs:
        prices[index] = price
    return prices


def dynamic_from_ledger(market: MarketObject, prices: List[Tuple[int, int]]) -> DynamicMarketData:
    return DynamicMarketData(
        spread_prices=align_spread_prices(prices, len(market.spreads)),
        spreads=list(market.spreads),
        total_liquidity=market.total_liquidity,
        cumulative_shares_sold=market.cumulative_shares_sold,
        market_state=market.market_state,
        resolved_value=market.resolved_value,
    )


def user_position_from_ledger(raw: RawUserPosition) -> UserPositionData:
    breakdown: Dict[int, int] = {}
    for index, shares in zip(raw.spread_indices, raw.shares):
        breakdown[index] = breakdown.get(index, 0) + shares

    return UserPositionData(
        positions=[
            PositionEntry(spread_index=index, shares=shares)
            for index, shares in sorted(breakdown.items())
            if shares > 0
        ],
        total_value=sum(breakdown.values()),
        spread_breakdown=breakdown,
    )


class OptimizedMarketService:
    """
    Cache-aside reads of market data.

    Example:
        ```python
        service = OptimizedMarketService(SuiMarketDataSource())

        info = await service.get_market_info("0x1090...")
        print(info.question, info.cache_info.dynamic_from_cache)

        infos = await service.get_multiple_markets_info(["0x1090...", "0xab0a..."])
        ```
    """

    def __init__(
        self,
        source: MarketDataSource,
        cache: Optional[MarketDataCache] = None,
        monitor: Optional[CachePerformanceMonitor] = None,
        catalog: Optional[MarketCatalog] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
        sell_price_discount: Optional[float] = None
    ):
        """
        Args:
            source: Remote reads against the ledger
            cache: Tiered cache (shared by every consumer)
            monitor: Performance monitor (shared by every consumer)
            catalog: Static market details served without a ledger read
            batch_size: Markets fetched concurrently per prefetch batch
            batch_delay: Pause between prefetch batches in seconds
            sell_price_discount: Fraction the sell quote sits under the buy price
        """
        self.source = source
        self.cache = cache or MarketDataCache()
        self.monitor = monitor or CachePerformanceMonitor()
        self.catalog = catalog or MarketCatalog()
        self.batch_size = batch_size or settings.BATCH_SIZE
        self.batch_delay = settings.BATCH_DELAY if batch_delay is None else batch_delay
        self.sell_price_discount = (
            settings.SELL_PRICE_DISCOUNT if sell_price_discount is None else sell_price_discount
        )

        logger.info(
            f"OptimizedMarketService initialized "
            f"(catalog={len(self.catalog)} markets, batch_size={self.batch_size})"
        )

    def _now_ms(self) -> int:
        return int(self.cache.clock() * 1000)

    async def close(self):
        close = getattr(self.source, "close", None)
        if close is not None:
            await close()

    # Reads

    async def get_market_info(self, market_id: str) -> MarketInfo:
        """
        Get the composite market record, fetching only missing tiers.

        Raises:
            SuppressedRetryError: If this market failed within the error TTL
            FetchFailure: If the ledger rejected or timed out a read
            DecodeFailure: If a ledger response had an unexpected shape
        """
        fetch_start = time.perf_counter()
        self._check_recent_error(market_id)

        try:
            static, static_from_cache = await self._load_tier(
                CacheTier.STATIC, market_id, self._fetch_static_data
            )
            timing, timing_from_cache = await self._load_tier(
                CacheTier.TIMING, market_id, self._fetch_timing_data
            )
            dynamic, dynamic_from_cache = await self._load_tier(
                CacheTier.DYNAMIC, market_id, self._fetch_dynamic_data
            )
        except Exception as e:
            self._record_failure(market_id, e)
            raise

        return assemble_market_info(
            market_id=market_id,
            static=static,
            timing=timing,
            dynamic=dynamic,
            cache_info=CacheInfo(
                static_from_cache=static_from_cache,
                dynamic_from_cache=dynamic_from_cache,
                timing_from_cache=timing_from_cache,
                fetch_time=_elapsed_ms(fetch_start),
            ),
            now_ms=self._now_ms(),
            sell_price_discount=self.sell_price_discount,
        )

    def get_cached_market_info(self, market_id: str) -> Optional[MarketInfo]:
        """
        Build a record from whatever is cached right now, without fetching.

        Returns None unless static data is cached. The result is flagged
        stale and may have pending tiers.
        """
        static = self.cache.get_static_data(market_id)
        if static is None:
            return None

        timing = self.cache.get_timing_data(market_id)
        dynamic = self.cache.get_dynamic_data(market_id)

        return assemble_market_info(
            market_id=market_id,
            static=static,
            timing=timing,
            dynamic=dynamic,
            cache_info=CacheInfo(
                static_from_cache=True,
                dynamic_from_cache=dynamic is not None,
                timing_from_cache=timing is not None,
                fetch_time=0.0,
            ),
            now_ms=self._now_ms(),
            sell_price_discount=self.sell_price_discount,
            stale=True,
        )

    async def get_multiple_markets_info(self, market_ids: List[str]) -> List[MarketInfo]:
        """
        Get several markets, prefetching missing tiers in batches first.

        The result order matches market_ids. Any failure fails the whole call.
        """
        unique_ids = list(dict.fromkeys(market_ids))
        fetchers = {
            CacheTier.STATIC: self._fetch_static_data,
            CacheTier.TIMING: self._fetch_timing_data,
            CacheTier.DYNAMIC: self._fetch_dynamic_data,
        }

        # Partition before any fetch so no key is fetched twice
        needs_fetch = {
            tier: [
                market_id for market_id in unique_ids
                if self.cache.get(tier, market_id) is None
                and not self.cache.has_recent_error(market_id)
            ]
            for tier in MARKET_TIERS
        }

        failures: Dict[str, Exception] = {}
        await asyncio.gather(*(
            self._batch_fetch(tier, ids, fetchers[tier], failures)
            for tier, ids in needs_fetch.items() if ids
        ))

        for market_id in unique_ids:
            if market_id in failures:
                raise failures[market_id]

        results = await asyncio.gather(*(
            self.get_market_info(market_id) for market_id in market_ids
        ))
        return list(results)

    async def get_user_positions(self, market_id: str, user_address: str) -> UserPositionData:
        """Get a user's position in a market (cached per user and market)"""
        started = time.perf_counter()

        cached = self.cache.get_user_data(user_address, market_id)
        if cached is not None:
            self.monitor.record_cache_hit(_elapsed_ms(started))
            return cached

        try:
            raw = await self.source.fetch_user_position(market_id, user_address)
        except Exception as e:
            self.monitor.record_cache_miss(_elapsed_ms(started))
            self.monitor.record_error()
            logger.error(f"Failed to fetch position of {user_address} in {market_id}: {e}")
            raise

        self.monitor.record_cache_miss(_elapsed_ms(started))
        data = user_position_from_ledger(raw)
        self.cache.set_user_data(user_address, market_id, data)
        return data

    # Tier loading

    def _check_recent_error(self, market_id: str):
        if self.cache.has_recent_error(market_id):
            self.monitor.record_error()
            retry_after = self.cache.error_retry_after(market_id)
            logger.warning(
                f"Suppressing fetch for {market_id}: recent error, retry in {retry_after:.1f}s"
            )
            raise SuppressedRetryError(
                market_id,
                retry_after=retry_after,
                last_error=self.cache.get_error(market_id),
            )

    def _record_failure(self, market_id: str, error: Exception):
        """Cache the error to prevent repeated failed calls"""
        self.cache.set_error(market_id, error)
        self.monitor.record_error()
        logger.error(f"Failed to fetch market {market_id}: {error}")

    async def _load_tier(
        self,
        tier: CacheTier,
        market_id: str,
        fetcher: Callable[[str], Awaitable[T]]
    ) -> Tuple[T, bool]:
        started = time.perf_counter()

        cached = self.cache.get(tier, market_id)
        if cached is not None:
            self.monitor.record_cache_hit(_elapsed_ms(started))
            logger.debug(f"Cache HIT: {tier.value}:{market_id}")
            return cached, True

        logger.debug(f"Cache MISS: {tier.value}:{market_id}")
        try:
            data = await fetcher(market_id)
        finally:
            self.monitor.record_cache_miss(_elapsed_ms(started))

        self.cache.set(tier, market_id, data)
        return data, False

    async def _batch_fetch(
        self,
        tier: CacheTier,
        market_ids: List[str],
        fetcher: Callable[[str], Awaitable[object]],
        failures: Dict[str, Exception]
    ):
        """Fetch one tier for many markets, batch_size at a time"""
        for start in range(0, len(market_ids), self.batch_size):
            batch = market_ids[start:start + self.batch_size]
            await asyncio.gather(*(
                self._prefetch(tier, market_id, fetcher, failures) for market_id in batch
            ))

            # Small delay between batches
            if start + self.batch_size < len(market_ids):
                await asyncio.sleep(self.batch_delay)

    async def _prefetch(
        self,
        tier: CacheTier,
        market_id: str,
        fetcher: Callable[[str], Awaitable[object]],
        failures: Dict[str, Exception]
    ):
        started = time.perf_counter()
        try:
            data = await fetcher(market_id)
        except Exception as e:
            self.monitor.record_cache_miss(_elapsed_ms(started))
            # One error per market, however many of its tiers fail
            if market_id not in failures:
                failures[market_id] = e
                self._record_failure(market_id, e)
            return

        self.monitor.record_cache_miss(_elapsed_ms(started))
        self.cache.set(tier, market_id, data)

    # Remote fetchers, one per tier

    async def _fetch_static_data(self, market_id: str) -> StaticMarketData:
        static = self.catalog.get_static_data(market_id)
        if static is not None:
            return static

        market = await self.source.fetch_market_object(market_id)
        return StaticMarketData(
            question=market.question,
            resolution_criteria=market.resolution_criteria,
        )

    async def _fetch_timing_data(self, market_id: str) -> TimingData:
        timing = await self.source.fetch_market_timing(market_id)
        return TimingData(
            bidding_deadline=timing.bidding_deadline,
            resolution_time=timing.resolution_time,
            resolved_value=timing.resolved_value,
        )

    async def _fetch_dynamic_data(self, market_id: str) -> DynamicMarketData:
        market, prices = await asyncio.gather(
            self.source.fetch_market_object(market_id),
            self.source.fetch_spread_prices(market_id),
        )
        return dynamic_from_ledger(market, prices)

    # Operator tooling

    def preload_static_data(self) -> int:
        """Seed the static tier with every catalog market"""
        count = self.cache.preload_static(self.catalog.all_static_data())
        logger.info(f"Preloaded static data for {count} markets")
        return count

    def invalidate_market(self, market_id: str) -> int:
        """Drop timing, dynamic and error entries so the next read refetches"""
        return self.cache.invalidate(market_id, REFRESH_TIERS)

    def clear_cache(self):
        self.cache.clear_all()

    def cleanup_expired(self) -> int:
        return self.cache.cleanup_expired()

    def get_cache_stats(self) -> Dict[str, TierStats]:
        return self.cache.get_stats()

    def get_metrics(self) -> CachePerformanceMetrics:
        return self.monitor.get_metrics()

    def reset(self):
        """Reset performance metrics; cached data is kept"""
        self.monitor.reset()
        logger.info("Cache performance metrics reset")

    def perform_health_check(self) -> CacheHealthReport:
        return perform_cache_health_check(self.cache.get_stats(), self.monitor.get_metrics())

    def get_health_summary(self) -> str:
        return generate_cache_health_summary(self.perform_health_check())


# Singleton instance
_market_service: Optional[OptimizedMarketService] = None


def get_market_service() -> OptimizedMarketService:
    """Get singleton instance of OptimizedMarketService"""
    global _market_service
    if _market_service is None:
        catalog = (
            MarketCatalog.from_file(settings.MARKET_CATALOG_PATH)
            if settings.MARKET_CATALOG_PATH else MarketCatalog()
        )
        _market_service = OptimizedMarketService(SuiMarketDataSource(), catalog=catalog)
    return _market_service
