"""
API dependencies

Shared service accessors and the mapping of market data errors to HTTP
responses.
"""

import math

from fastapi import HTTPException, status

from marketcache.services.market_feed import MarketFeed, get_market_feed
from marketcache.services.market_service import OptimizedMarketService, get_market_service
from marketcache.services.sui.errors import (
    DecodeFailure,
    FetchFailure,
    MarketDataError,
    SuppressedRetryError,
)


def get_service() -> OptimizedMarketService:
    """Get the shared market service"""
    return get_market_service()


def get_feed() -> MarketFeed:
    """Get the shared market feed"""
    return get_market_feed()


def http_error_for(error: MarketDataError) -> HTTPException:
    """Translate a market data error into the HTTP error a client sees"""
    if isinstance(error, SuppressedRetryError):
        retry_after = max(1, math.ceil(error.retry_after or 0))
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(error),
            headers={"Retry-After": str(retry_after)},
        )

    if isinstance(error, (FetchFailure, DecodeFailure)):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(error),
        )

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(error),
    )
