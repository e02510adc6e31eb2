"""
Market Feed

Consumer-facing reads on top of OptimizedMarketService.

Features:
- Single and batched reads with cache efficiency figures
- Stale reads served straight from cache, never fetching
- Forced refresh of a market's timing/dynamic tiers
- Periodic polling subscriptions delivering (info, error) to a callback
- Background maintenance: expired entry cleanup and logged health checks
"""

import asyncio
import inspect
import time
from typing import Any, Callable, List, Optional, Set

from loguru import logger
from pydantic import BaseModel

from marketcache.core.config import settings
from marketcache.core.metrics import Metrics
from marketcache.services.cache.health import CacheHealthReport
from marketcache.services.market_info import MarketInfo
from marketcache.services.market_service import OptimizedMarketService, get_market_service

SubscriptionCallback = Callable[[Optional[MarketInfo], Optional[Exception]], Any]


class CacheEfficiency(BaseModel):
    total_markets: int
    cached_markets: int
    average_fetch_time: float  # ms


class MarketBatch(BaseModel):
    markets: List[MarketInfo]
    cache_efficiency: CacheEfficiency


class MarketSubscription:
    """Polling task for one market; cancel() stops it"""

    def __init__(self, feed: "MarketFeed", market_id: str, callback: SubscriptionCallback, interval: float):
        self.feed = feed
        self.market_id = market_id
        self.callback = callback
        self.interval = interval
        self.last_info: Optional[MarketInfo] = None
        self.last_error: Optional[Exception] = None
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self._task:
            logger.warning(f"Subscription for {self.market_id} already running")
            return
        self._task = asyncio.create_task(self._poll_loop())

    async def cancel(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

            self._task = None
            self.feed._subscriptions.discard(self)
            logger.debug(f"Cancelled subscription for {self.market_id}")

    async def _poll_loop(self):
        while True:
            info: Optional[MarketInfo] = None
            error: Optional[Exception] = None
            try:
                info = await self.feed.read(self.market_id)
            except asyncio.CancelledError:
                break
            except Exception as e:
                error = e
                logger.warning(f"Subscription read failed for {self.market_id}: {e}")

            self.ticks += 1
            self.last_info, self.last_error = info, error

            try:
                result = self.callback(info, error)
                if inspect.isawaitable(result):
                    await result
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Subscription callback error for {self.market_id}: {e}")
                await asyncio.sleep(self.interval)


class MarketFeed:
    """
    Read, refresh and subscribe to markets.

    Example:
        ```python
        feed = MarketFeed(get_market_service())

        batch = await feed.read_many(["0x1090...", "0xab0a..."])
        print(batch.cache_efficiency.cached_markets)

        subscription = feed.subscribe("0x1090...", on_update, interval=30)
        await subscription.cancel()
        ```
    """

    def __init__(
        self,
        service: OptimizedMarketService,
        min_refresh_interval: Optional[float] = None,
        default_refresh_interval: Optional[float] = None
    ):
        self.service = service
        self.min_refresh_interval = (
            settings.MIN_REFRESH_INTERVAL if min_refresh_interval is None else min_refresh_interval
        )
        self.default_refresh_interval = (
            settings.DEFAULT_REFRESH_INTERVAL if default_refresh_interval is None
            else default_refresh_interval
        )
        self._subscriptions: Set[MarketSubscription] = set()
        self._maintenance_task: Optional[asyncio.Task] = None
        self.last_health_report: Optional[CacheHealthReport] = None

    async def read(self, market_id: str) -> MarketInfo:
        return await self.service.get_market_info(market_id)

    async def read_many(self, market_ids: List[str]) -> MarketBatch:
        markets = await self.service.get_multiple_markets_info(market_ids)

        cached = sum(1 for market in markets if market.cache_info.static_from_cache)
        average = (
            sum(market.cache_info.fetch_time for market in markets) / len(markets)
            if markets else 0.0
        )

        return MarketBatch(
            markets=markets,
            cache_efficiency=CacheEfficiency(
                total_markets=len(markets),
                cached_markets=cached,
                average_fetch_time=average,
            ),
        )

    def read_cached(self, market_id: str) -> Optional[MarketInfo]:
        """Stale read: whatever is cached right now, or None"""
        return self.service.get_cached_market_info(market_id)

    async def refresh(self, market_id: str) -> MarketInfo:
        """Drop timing/dynamic/error entries for the market, then read"""
        self.service.invalidate_market(market_id)
        logger.info(f"Forced refresh of market {market_id}")
        return await self.read(market_id)

    # Subscriptions

    def subscribe(
        self,
        market_id: str,
        callback: SubscriptionCallback,
        interval: Optional[float] = None
    ) -> MarketSubscription:
        """
        Poll a market and deliver every result to callback(info, error).

        Must be called from a running event loop.
        """
        interval = self.default_refresh_interval if interval is None else interval
        if interval < self.min_refresh_interval:
            logger.warning(
                f"Refresh interval {interval}s below minimum, "
                f"using {self.min_refresh_interval}s"
            )
            interval = self.min_refresh_interval

        subscription = MarketSubscription(self, market_id, callback, interval)
        subscription.start()
        self._subscriptions.add(subscription)
        logger.debug(f"Subscribed to {market_id} every {interval}s")
        return subscription

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    async def cancel_all(self):
        for subscription in list(self._subscriptions):
            await subscription.cancel()

    # Maintenance

    def run_cleanup(self) -> int:
        removed = self.service.cleanup_expired()
        if removed:
            logger.info(f"Cache cleanup removed {removed} expired entries")
        return removed

    def run_health_check(self) -> CacheHealthReport:
        """Health check with its outcome logged"""
        report = self.service.perform_health_check()
        self.last_health_report = report
        Metrics.gauge("health_score", report.score)

        if report.status != "healthy" or self.service.monitor.is_performance_degraded():
            logger.warning(
                f"Cache health {report.status} (score {report.score}): "
                f"{'; '.join(report.issues) or 'performance degraded'}"
            )
        else:
            logger.debug(f"Cache health {report.status} (score {report.score})")
        return report

    async def start_maintenance(self):
        """Start background task for cache cleanup and health checks"""
        if self._maintenance_task:
            logger.warning("Cache maintenance already running")
            return

        self._maintenance_task = asyncio.create_task(self._maintenance_loop())
        logger.info("Started cache maintenance task")

    async def stop_maintenance(self):
        if self._maintenance_task:
            self._maintenance_task.cancel()
            try:
                await self._maintenance_task
            except asyncio.CancelledError:
                pass

            self._maintenance_task = None
            logger.info("Stopped cache maintenance task")

    async def _maintenance_loop(self):
        last_health_check = time.monotonic()

        while True:
            try:
                await asyncio.sleep(settings.CACHE_CLEANUP_INTERVAL)

                self.run_cleanup()

                if time.monotonic() - last_health_check >= settings.HEALTH_CHECK_INTERVAL:
                    self.run_health_check()
                    last_health_check = time.monotonic()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Cache maintenance error: {e}")

    async def close(self):
        await self.stop_maintenance()
        await self.cancel_all()


# Singleton instance
_market_feed: Optional[MarketFeed] = None


def get_market_feed() -> MarketFeed:
    """Get singleton instance of MarketFeed"""
    global _market_feed
    if _market_feed is None:
        _market_feed = MarketFeed(get_market_service())
    return _market_feed
