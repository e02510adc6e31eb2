"""
Shared fixtures: a controllable clock, an in-memory market data source that
counts every remote read, and fresh cache/monitor/service instances.
"""

import asyncio
from collections import Counter
from typing import Dict, List, Optional, Tuple

import pytest

from marketcache.services.cache.catalog import MarketCatalog
from marketcache.services.cache.models import CacheTier
from marketcache.services.cache.monitor import CachePerformanceMonitor
from marketcache.services.cache.store import MarketDataCache
from marketcache.services.market_feed import MarketFeed
from marketcache.services.market_service import OptimizedMarketService
from marketcache.services.sui.errors import DecodeFailure, FetchFailure
from marketcache.services.sui.models import (
    MarketObject,
    MarketTiming,
    RawUserPosition,
    SpreadFields,
)

MARKET_ID = "0x" + "1" * 64
OTHER_MARKET_ID = "0x" + "2" * 64
USER_ADDRESS = "0x" + "a" * 64

TEST_TTLS = {
    CacheTier.STATIC: None,
    CacheTier.TIMING: 300.0,
    CacheTier.DYNAMIC: 30.0,
    CacheTier.USER: 10.0,
    CacheTier.ERROR: 5.0,
}


class FakeClock:
    """Epoch-seconds clock that only moves when told to"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def make_market(
    market_id: str = MARKET_ID,
    question: str = "What will the BTC price be on Dec 31?",
    outstanding: Tuple[int, ...] = (100, 300),
    market_state: int = 0,
    resolved_value: int = 0,
) -> MarketObject:
    spreads = [
        SpreadFields(lower_bound=i * 100, upper_bound=(i + 1) * 100, outstanding_shares=shares)
        for i, shares in enumerate(outstanding)
    ]
    return MarketObject(
        market_id=market_id,
        question=question,
        resolution_criteria="Resolves to the CoinGecko close.",
        bidding_deadline=1_800_000_000_000,
        resolution_time=1_800_086_400_000,
        market_state=market_state,
        total_liquidity=sum(outstanding),
        cumulative_shares_sold=sum(outstanding),
        resolved_value=resolved_value,
        spreads=spreads,
    )


class FakeMarketDataSource:
    """In-memory MarketDataSource; failures can be injected per market"""

    def __init__(self):
        self.calls: Counter = Counter()
        self.markets: Dict[str, MarketObject] = {
            MARKET_ID: make_market(MARKET_ID),
            OTHER_MARKET_ID: make_market(OTHER_MARKET_ID, question="Will ETH flip BTC?"),
        }
        self.prices: Dict[str, List[Tuple[int, int]]] = {
            MARKET_ID: [(0, 1_000_000), (1, 3_000_000)],
            OTHER_MARKET_ID: [(0, 500_000), (1, 500_000)],
        }
        self.positions: Dict[Tuple[str, str], RawUserPosition] = {}
        self.failures: Dict[str, Exception] = {}
        # Per-market latency, so fetches can complete out of request order
        self.delays: Dict[str, float] = {}
        self.completed: List[Tuple[str, str]] = []

    async def _check(self, method: str, market_id: str):
        self.calls[method] += 1
        if market_id in self.delays:
            await asyncio.sleep(self.delays[market_id])
        self.completed.append((method, market_id))
        if market_id in self.failures:
            raise self.failures[market_id]
        if market_id not in self.markets:
            raise DecodeFailure(f"Market object {market_id} not found", market_id=market_id)

    async def fetch_market_object(self, market_id: str) -> MarketObject:
        await self._check("fetch_market_object", market_id)
        return self.markets[market_id]

    async def fetch_market_timing(self, market_id: str) -> MarketTiming:
        await self._check("fetch_market_timing", market_id)
        market = self.markets[market_id]
        return MarketTiming(
            bidding_deadline=market.bidding_deadline,
            resolution_time=market.resolution_time,
            resolved_value=market.resolved_value,
        )

    async def fetch_spread_prices(self, market_id: str) -> List[Tuple[int, int]]:
        await self._check("fetch_spread_prices", market_id)
        return list(self.prices.get(market_id, []))

    async def fetch_user_position(self, market_id: str, user_address: str) -> RawUserPosition:
        await self._check("fetch_user_position", market_id)
        return self.positions.get(
            (market_id, user_address),
            RawUserPosition(market_id=market_id, user_address=user_address),
        )

    def fail(self, market_id: str, error: Optional[Exception] = None):
        self.failures[market_id] = error or FetchFailure("fullnode unavailable", market_id=market_id)

    def recover(self, market_id: str):
        self.failures.pop(market_id, None)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return MarketDataCache(ttls=TEST_TTLS, clock=clock)


@pytest.fixture
def monitor():
    return CachePerformanceMonitor(max_samples=100)


@pytest.fixture
def source():
    return FakeMarketDataSource()


@pytest.fixture
def catalog():
    return MarketCatalog.from_dict({
        MARKET_ID: {
            "question": "What will the BTC price be on Dec 31?",
            "resolutionCriteria": "Resolves to the CoinGecko close.",
            "shortTag": "BTC-EOY",
            "spreadLabels": [
                {"index": 0, "name": "Low", "lowerBound": 0, "upperBound": 100},
                {"index": 1, "name": "High", "lowerBound": 100, "upperBound": 200},
            ],
        }
    })


@pytest.fixture
def service(source, cache, monitor, catalog):
    return OptimizedMarketService(
        source,
        cache=cache,
        monitor=monitor,
        catalog=catalog,
        batch_size=5,
        batch_delay=0,
        sell_price_discount=0.005,
    )


@pytest.fixture
async def feed(service):
    feed = MarketFeed(service, min_refresh_interval=0.01, default_refresh_interval=0.01)
    yield feed
    await feed.close()
