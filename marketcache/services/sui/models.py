"""
Sui Market Data - Response Models

Pydantic models for decoded ledger reads.
"""

from typing import List
from pydantic import BaseModel, Field


class SpreadFields(BaseModel):
    """One spread as stored on the market object"""
    lower_bound: int = Field(0, description="Exclusive lower bound of the spread range")
    upper_bound: int = Field(0, description="Inclusive upper bound of the spread range")
    outstanding_shares: int = Field(0, description="Shares currently held in this spread")


class MarketObject(BaseModel):
    """Decoded fields of a distribution market object"""
    market_id: str
    question: str = ""
    resolution_criteria: str = ""
    bidding_deadline: int = Field(0, description="Bidding deadline (ms since epoch)")
    resolution_time: int = Field(0, description="Resolution time (ms since epoch)")
    market_state: int = Field(0, description="0 active, 1 resolved, 2 canceled")
    total_liquidity: int = Field(0, description="Total shares backing the market")
    cumulative_shares_sold: int = 0
    resolved_value: int = 0
    spreads: List[SpreadFields] = Field(default_factory=list)


class MarketTiming(BaseModel):
    """Result of the simulated get_market_timing call"""
    bidding_deadline: int
    resolution_time: int
    resolved_value: int


class RawUserPosition(BaseModel):
    """Result of the simulated get_user_position call"""
    market_id: str
    user_address: str
    spread_indices: List[int] = Field(default_factory=list)
    shares: List[int] = Field(default_factory=list)
