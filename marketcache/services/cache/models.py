"""
Market Data Cache - Tier Models

Payloads stored in each cache tier, and the entry wrapper that carries
their expiry.
"""

import math
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from marketcache.services.sui.models import SpreadFields


class CacheTier(str, Enum):
    """Independent cache tables, each with its own TTL"""
    STATIC = "static"
    TIMING = "timing"
    DYNAMIC = "dynamic"
    USER = "user"
    ERROR = "error"


NEVER = math.inf


@dataclass
class CacheEntry:
    """A cached value with its creation and expiry times (epoch seconds)"""
    data: Any
    created_at: float
    expires_at: float
    tier: CacheTier

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@dataclass
class SpreadLabel:
    """Display metadata for one spread"""
    index: int
    name: str
    lower_bound: Optional[int] = None
    upper_bound: Optional[int] = None
    description: Optional[str] = None


@dataclass
class StaticMarketData:
    """Immutable market content: never expires"""
    question: str
    resolution_criteria: str
    short_tag: Optional[str] = None
    spread_labels: List[SpreadLabel] = field(default_factory=list)

    def label_for(self, spread_index: int) -> Optional[SpreadLabel]:
        for label in self.spread_labels:
            if label.index == spread_index:
                return label
        return None


@dataclass
class TimingData:
    """
    Raw market timing (ms since epoch).

    Derived flags such as "bidding open" are computed when a record is
    assembled, never stored here.
    """
    bidding_deadline: int
    resolution_time: int
    resolved_value: int = 0


@dataclass
class DynamicMarketData:
    """Trading state: changes with every trade"""
    spread_prices: List[Optional[int]] = field(default_factory=list)
    spreads: List[SpreadFields] = field(default_factory=list)
    total_liquidity: int = 0
    cumulative_shares_sold: int = 0
    market_state: int = 0
    resolved_value: int = 0

    @property
    def outstanding_shares(self) -> List[int]:
        return [spread.outstanding_shares for spread in self.spreads]


@dataclass
class PositionEntry:
    spread_index: int
    shares: int


@dataclass
class UserPositionData:
    """A user's holdings in one market"""
    positions: List[PositionEntry] = field(default_factory=list)
    total_value: int = 0
    spread_breakdown: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TierStats:
    total: int = 0
    valid: int = 0
    expired: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
