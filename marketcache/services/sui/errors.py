"""
Market Data Errors

Error taxonomy for reads against the Sui ledger and the market cache.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories of errors that can occur"""
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    RPC = "rpc"
    DECODE = "decode"
    SUPPRESSED = "suppressed"
    UNKNOWN = "unknown"


class MarketDataError(Exception):
    """Base exception for all market data errors"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        market_id: Optional[str] = None,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.market_id = market_id
        self.status_code = status_code
        self.response_data = response_data or {}
        self.retry_after = retry_after

    def __str__(self):
        return f"[{self.category.value}] {self.message}"

    def is_retryable(self) -> bool:
        """Check if a later manual retry may succeed"""
        return self.category in [
            ErrorCategory.NETWORK,
            ErrorCategory.RATE_LIMIT,
            ErrorCategory.RPC,
            ErrorCategory.SUPPRESSED,
        ]


class FetchFailure(MarketDataError):
    """Raised when the remote ledger rejects or times out a request"""

    def __init__(
        self,
        message: str = "Remote fetch failed",
        category: ErrorCategory = ErrorCategory.RPC,
        **kwargs
    ):
        super().__init__(message=message, category=category, **kwargs)


class NetworkError(FetchFailure):
    """Raised when the transport fails"""

    def __init__(self, message: str = "Network request failed", **kwargs):
        super().__init__(message=message, category=ErrorCategory.NETWORK, **kwargs)


class RateLimitError(FetchFailure):
    """Raised when the RPC node rate limits us"""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        **kwargs
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.RATE_LIMIT,
            retry_after=retry_after,
            **kwargs
        )


class DecodeFailure(MarketDataError):
    """Raised when a response does not have the expected shape"""

    def __init__(self, message: str = "Unexpected response shape", **kwargs):
        super().__init__(message=message, category=ErrorCategory.DECODE, **kwargs)


class SuppressedRetryError(MarketDataError):
    """Raised when a market failed recently and must not be fetched yet"""

    def __init__(
        self,
        market_id: str,
        retry_after: Optional[float] = None,
        last_error: Optional[BaseException] = None,
        **kwargs
    ):
        super().__init__(
            message=f"Recent error cached for market {market_id}",
            category=ErrorCategory.SUPPRESSED,
            market_id=market_id,
            retry_after=retry_after,
            **kwargs
        )
        self.last_error = last_error


def categorize_error(
    status_code: Optional[int],
    rpc_error: Optional[Dict[str, Any]] = None
) -> ErrorCategory:
    """
    Categorize error based on HTTP status code and JSON-RPC error payload.

    Args:
        status_code: HTTP status code
        rpc_error: The "error" member of a JSON-RPC response

    Returns:
        ErrorCategory enum value
    """
    if status_code == 429:
        return ErrorCategory.RATE_LIMIT

    if status_code and status_code >= 500:
        return ErrorCategory.NETWORK

    if rpc_error:
        code = rpc_error.get('code')
        message = str(rpc_error.get('message', '')).lower()

        if 'rate limit' in message or 'too many' in message:
            return ErrorCategory.RATE_LIMIT

        # -32700 parse error, -32600 invalid request
        if code in (-32700, -32600):
            return ErrorCategory.DECODE

        return ErrorCategory.RPC

    if status_code and status_code >= 400:
        return ErrorCategory.RPC

    return ErrorCategory.UNKNOWN
