"""
Composite Market Record

The per-request view of a market, assembled from whichever cache tiers are
populated. Timing and dynamic sections stay None while their tier is
pending; nothing here is stored in the cache.
"""

import math
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, computed_field

from marketcache.services.cache.models import (
    DynamicMarketData,
    StaticMarketData,
    TimingData,
)
from marketcache.services.resolution import find_winning_spread

MARKET_STATE_ACTIVE = 0
MARKET_STATE_RESOLVED = 1
MARKET_STATE_CANCELED = 2


class TimingInfo(BaseModel):
    bidding_deadline: int
    resolution_time: int
    bidding_deadline_display: str
    resolution_time_display: str
    bidding_open: bool
    is_resolved: bool


class DynamicInfo(BaseModel):
    market_state: int
    state_display: str
    resolved_value: int
    total_liquidity: int
    cumulative_shares_sold: int
    spread_prices: List[Optional[int]]
    outstanding_shares: List[int]


class SpreadInfo(BaseModel):
    spread_index: int
    name: Optional[str] = None
    lower_bound: Optional[int] = None
    upper_bound: Optional[int] = None
    outstanding_shares: int = 0
    percentage: float = 0.0
    buy_price: Optional[int] = None
    sell_price: Optional[int] = None


class ResolutionInfo(BaseModel):
    resolved_value: int
    winning_spread_index: Optional[int] = None
    winning_spread_name: Optional[str] = None


class CacheInfo(BaseModel):
    static_from_cache: bool
    dynamic_from_cache: bool
    timing_from_cache: bool
    fetch_time: float  # ms


class MarketInfo(BaseModel):
    """Composite market record with cache provenance"""
    market_id: str
    question: str
    resolution_criteria: str
    short_tag: Optional[str] = None
    timing: Optional[TimingInfo] = None
    dynamic: Optional[DynamicInfo] = None
    spreads: List[SpreadInfo] = []
    resolution: Optional[ResolutionInfo] = None
    cache_info: CacheInfo
    stale: bool = False

    @computed_field
    @property
    def pending(self) -> List[str]:
        """Tiers not yet known for this record"""
        missing = []
        if self.timing is None:
            missing.append("timing")
        if self.dynamic is None:
            missing.append("dynamic")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.pending


def market_state_label(state: int) -> str:
    if state == MARKET_STATE_ACTIVE:
        return "Active"
    if state == MARKET_STATE_RESOLVED:
        return "Resolved"
    if state == MARKET_STATE_CANCELED:
        return "Canceled"
    return f"Unknown ({state})"


def format_timestamp(ms: int) -> str:
    """ISO-8601 UTC with millisecond precision"""
    moment = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_timing_info(timing: TimingData, now_ms: int) -> TimingInfo:
    return TimingInfo(
        bidding_deadline=timing.bidding_deadline,
        resolution_time=timing.resolution_time,
        bidding_deadline_display=format_timestamp(timing.bidding_deadline),
        resolution_time_display=format_timestamp(timing.resolution_time),
        bidding_open=now_ms < timing.bidding_deadline,
        is_resolved=timing.resolved_value > 0,
    )


def build_dynamic_info(dynamic: DynamicMarketData) -> DynamicInfo:
    return DynamicInfo(
        market_state=dynamic.market_state,
        state_display=market_state_label(dynamic.market_state),
        resolved_value=dynamic.resolved_value,
        total_liquidity=dynamic.total_liquidity,
        cumulative_shares_sold=dynamic.cumulative_shares_sold,
        spread_prices=list(dynamic.spread_prices),
        outstanding_shares=dynamic.outstanding_shares,
    )


def sell_price_for(buy_price: Optional[int], outstanding_shares: int, discount: float) -> Optional[int]:
    """Sell quote sits a fixed discount under the buy price; none without shares to sell"""
    if buy_price is None or outstanding_shares <= 0:
        return None
    return math.floor(buy_price * (1 - discount))


def build_spreads(
    dynamic: DynamicMarketData,
    static: Optional[StaticMarketData],
    sell_price_discount: float
) -> List[SpreadInfo]:
    count = max(len(dynamic.spreads), len(dynamic.spread_prices))
    if not count:
        return []

    outstanding = [
        dynamic.spreads[i].outstanding_shares if i < len(dynamic.spreads) else 0
        for i in range(count)
    ]
    total_outstanding = sum(outstanding)

    spreads = []
    for i in range(count):
        shares = outstanding[i]
        buy_price = dynamic.spread_prices[i] if i < len(dynamic.spread_prices) else None
        label = static.label_for(i) if static else None

        if i < len(dynamic.spreads):
            lower_bound = dynamic.spreads[i].lower_bound
            upper_bound = dynamic.spreads[i].upper_bound
        elif label:
            lower_bound, upper_bound = label.lower_bound, label.upper_bound
        else:
            lower_bound = upper_bound = None

        if total_outstanding > 0:
            percentage = shares / total_outstanding * 100
        else:
            # No shares sold yet: show an even split rather than 0% everywhere
            percentage = 100 / count

        spreads.append(SpreadInfo(
            spread_index=i,
            name=label.name if label else None,
            lower_bound=lower_bound,
            upper_bound=upper_bound,
            outstanding_shares=shares,
            percentage=percentage,
            buy_price=buy_price,
            sell_price=sell_price_for(buy_price, shares, sell_price_discount),
        ))

    return spreads


def build_resolution(
    dynamic: Optional[DynamicMarketData],
    timing: Optional[TimingData],
    spreads: List[SpreadInfo]
) -> Optional[ResolutionInfo]:
    resolved = (
        (dynamic is not None and dynamic.market_state == MARKET_STATE_RESOLVED)
        or (timing is not None and timing.resolved_value > 0)
    )
    if not resolved:
        return None

    if dynamic is not None and dynamic.resolved_value:
        resolved_value = dynamic.resolved_value
    elif timing is not None:
        resolved_value = timing.resolved_value
    else:
        resolved_value = 0

    winner = find_winning_spread(
        resolved_value,
        [(s.spread_index, s.lower_bound, s.upper_bound) for s in spreads],
    )
    name = None
    if winner is not None:
        name = next((s.name for s in spreads if s.spread_index == winner), None) or f"Spread #{winner}"

    return ResolutionInfo(
        resolved_value=resolved_value,
        winning_spread_index=winner,
        winning_spread_name=name,
    )


def assemble_market_info(
    market_id: str,
    static: StaticMarketData,
    timing: Optional[TimingData],
    dynamic: Optional[DynamicMarketData],
    cache_info: CacheInfo,
    now_ms: int,
    sell_price_discount: float,
    stale: bool = False
) -> MarketInfo:
    """Merge the available tiers into one record, enriching tier by tier"""
    info = MarketInfo(
        market_id=market_id,
        question=static.question,
        resolution_criteria=static.resolution_criteria,
        short_tag=static.short_tag,
        cache_info=cache_info,
        stale=stale,
    )

    if timing is not None:
        info.timing = build_timing_info(timing, now_ms)

    if dynamic is not None:
        info.dynamic = build_dynamic_info(dynamic)
        info.spreads = build_spreads(dynamic, static, sell_price_discount)

    info.resolution = build_resolution(dynamic, timing, info.spreads)
    return info
