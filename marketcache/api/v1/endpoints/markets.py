"""
Market API Endpoints

FastAPI endpoints for reading market data through the tiered cache.
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from marketcache.api.deps import get_feed, get_service, http_error_for
from marketcache.services.market_feed import MarketBatch, MarketFeed
from marketcache.services.market_info import MarketInfo
from marketcache.services.market_service import OptimizedMarketService
from marketcache.services.sui.errors import MarketDataError


router = APIRouter(prefix="/markets", tags=["markets"])


class PositionResponse(BaseModel):
    """A user's holdings in one market"""
    market_id: str
    user_address: str
    positions: List[Dict[str, int]]
    total_value: int
    spread_breakdown: Dict[int, int]


@router.get("", response_model=MarketBatch)
async def get_markets(
    ids: str = Query(..., description="Comma-separated market ids"),
    feed: MarketFeed = Depends(get_feed)
):
    """
    Get several markets in one call.

    **Parameters:**
    - `ids`: Comma-separated market ids; results keep this order

    **Example:**
    ```
    GET /api/v1/markets?ids=0x1090...,0xab0a...
    ```
    """
    market_ids = [market_id.strip() for market_id in ids.split(",") if market_id.strip()]
    if not market_ids:
        raise HTTPException(status_code=400, detail="No market ids given")

    try:
        return await feed.read_many(market_ids)
    except MarketDataError as e:
        raise http_error_for(e)


@router.get("/{market_id}", response_model=MarketInfo)
async def get_market(market_id: str, feed: MarketFeed = Depends(get_feed)):
    """
    Get a market, fetching only the cache tiers that are missing or expired.

    **Returns:**
    - Market record with a `cache_info` section telling which tiers were served from cache
    """
    try:
        return await feed.read(market_id)
    except MarketDataError as e:
        raise http_error_for(e)


@router.get("/{market_id}/cached", response_model=MarketInfo)
async def get_cached_market(market_id: str, feed: MarketFeed = Depends(get_feed)):
    """Whatever is cached for a market right now, without fetching"""
    info = feed.read_cached(market_id)
    if info is None:
        raise HTTPException(status_code=404, detail=f"Market {market_id} not in cache")
    return info


@router.post("/{market_id}/refresh", response_model=MarketInfo)
async def refresh_market(market_id: str, feed: MarketFeed = Depends(get_feed)):
    """Force a refetch of the market's timing and dynamic data"""
    try:
        return await feed.refresh(market_id)
    except MarketDataError as e:
        raise http_error_for(e)


@router.get("/{market_id}/positions/{user_address}", response_model=PositionResponse)
async def get_user_positions(
    market_id: str,
    user_address: str,
    service: OptimizedMarketService = Depends(get_service)
):
    """Get a user's shares per spread in a market"""
    try:
        data = await service.get_user_positions(market_id, user_address)
    except MarketDataError as e:
        raise http_error_for(e)

    return PositionResponse(
        market_id=market_id,
        user_address=user_address,
        **data.to_dict()
    )
