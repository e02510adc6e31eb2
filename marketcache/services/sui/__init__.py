"""
Sui Ledger Access Package

Read-only access to Skepsis distribution markets on Sui.
"""

from marketcache.services.sui.client import SuiRpcClient
from marketcache.services.sui.source import (
    MarketDataSource,
    SuiMarketDataSource,
    parse_market_object,
)
from marketcache.services.sui.models import (
    MarketObject,
    MarketTiming,
    RawUserPosition,
    SpreadFields,
)
from marketcache.services.sui.errors import (
    MarketDataError,
    FetchFailure,
    NetworkError,
    RateLimitError,
    DecodeFailure,
    SuppressedRetryError,
    ErrorCategory,
)

__all__ = [
    # Client
    'SuiRpcClient',
    'MarketDataSource',
    'SuiMarketDataSource',
    'parse_market_object',

    # Models
    'MarketObject',
    'MarketTiming',
    'RawUserPosition',
    'SpreadFields',

    # Errors
    'MarketDataError',
    'FetchFailure',
    'NetworkError',
    'RateLimitError',
    'DecodeFailure',
    'SuppressedRetryError',
    'ErrorCategory',
]
