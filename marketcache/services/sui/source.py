"""
Market Data Source

Reads Skepsis distribution markets from the Sui ledger and decodes them into
the raw models the cache consumes.
"""

from typing import Any, Dict, List, Optional, Protocol, Tuple

from loguru import logger

from marketcache.core.config import settings
from marketcache.services.sui.bcs import (
    PureAddressInput,
    SharedObjectInput,
    decode_u64,
    decode_u64_vector,
)
from marketcache.services.sui.client import SuiRpcClient
from marketcache.services.sui.errors import DecodeFailure
from marketcache.services.sui.models import (
    MarketObject,
    MarketTiming,
    RawUserPosition,
    SpreadFields,
)


class MarketDataSource(Protocol):
    """The remote reads the optimized market service depends on"""

    async def fetch_market_object(self, market_id: str) -> MarketObject:
        ...

    async def fetch_market_timing(self, market_id: str) -> MarketTiming:
        ...

    async def fetch_spread_prices(self, market_id: str) -> List[Tuple[int, int]]:
        ...

    async def fetch_user_position(self, market_id: str, user_address: str) -> RawUserPosition:
        ...


def _to_int(value: Any, field: str) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        raise DecodeFailure(f"Field {field} is not an integer: {value!r}")


def _to_text(value: Any) -> str:
    """Decode a Move String or vector<u8> field."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        try:
            return bytes(value).decode("utf-8", errors="replace")
        except (TypeError, ValueError):
            raise DecodeFailure(f"Field is not a byte vector: {value!r}")
    if isinstance(value, dict) and "bytes" in value:
        return _to_text(value["bytes"])
    raise DecodeFailure(f"Unsupported text field: {value!r}")


def parse_market_object(market_id: str, response: Dict[str, Any]) -> MarketObject:
    """
    Decode a sui_getObject response for a distribution market.

    Raises:
        DecodeFailure: If the object is missing or is not a Move object
    """
    if not isinstance(response, dict):
        raise DecodeFailure(f"Malformed object response for {market_id}", market_id=market_id)

    data = response.get("data")
    if not data:
        raise DecodeFailure(f"Market object {market_id} not found", market_id=market_id)
    if not isinstance(data, dict):
        raise DecodeFailure(f"Malformed object data for {market_id}", market_id=market_id)

    content = data.get("content")
    if not isinstance(content, dict) or content.get("dataType") != "moveObject":
        raise DecodeFailure(f"Invalid market object for {market_id}", market_id=market_id)

    fields = content.get("fields")
    if not isinstance(fields, dict):
        raise DecodeFailure(f"Market object {market_id} has no fields", market_id=market_id)

    raw_spreads = fields.get("spreads") or []
    if not isinstance(raw_spreads, list):
        raise DecodeFailure(f"Malformed spreads in market {market_id}", market_id=market_id)

    spreads = []
    for raw in raw_spreads:
        spread = raw.get("fields", raw) if isinstance(raw, dict) else None
        if not isinstance(spread, dict):
            raise DecodeFailure(f"Malformed spread in market {market_id}", market_id=market_id)
        spreads.append(SpreadFields(
            lower_bound=_to_int(spread.get("lower_bound"), "lower_bound"),
            upper_bound=_to_int(spread.get("upper_bound"), "upper_bound"),
            outstanding_shares=_to_int(spread.get("outstanding_shares"), "outstanding_shares"),
        ))

    return MarketObject(
        market_id=market_id,
        question=_to_text(fields.get("question")),
        resolution_criteria=_to_text(fields.get("resolution_criteria")),
        bidding_deadline=_to_int(fields.get("bidding_deadline"), "bidding_deadline"),
        resolution_time=_to_int(fields.get("resolution_time"), "resolution_time"),
        market_state=_to_int(fields.get("market_state"), "market_state"),
        total_liquidity=_to_int(fields.get("total_shares"), "total_shares"),
        cumulative_shares_sold=_to_int(fields.get("cumulative_shares_sold"), "cumulative_shares_sold"),
        resolved_value=_to_int(fields.get("resolved_value"), "resolved_value"),
        spreads=spreads,
    )


class SuiMarketDataSource:
    """
    MarketDataSource backed by a Sui fullnode.

    Example:
        ```python
        source = SuiMarketDataSource(SuiRpcClient())
        timing = await source.fetch_market_timing("0x1b98...")
        ```
    """

    def __init__(self, client: Optional[SuiRpcClient] = None):
        self.client = client or SuiRpcClient()
        self.type_arguments = [settings.usdc_type]

    async def close(self):
        await self.client.close()

    async def _market_input(self, market_id: str) -> SharedObjectInput:
        version = await self.client.get_initial_shared_version(market_id)
        return SharedObjectInput(market_id, version, mutable=False)

    async def fetch_market_object(self, market_id: str) -> MarketObject:
        response = await self.client.get_object(market_id, show_content=True)
        return parse_market_object(market_id, response)

    async def fetch_market_timing(self, market_id: str) -> MarketTiming:
        values = await self.client.dev_inspect_move_call(
            function="get_market_timing",
            type_arguments=self.type_arguments,
            inputs=[await self._market_input(market_id)],
        )
        if len(values) < 3:
            raise DecodeFailure(
                f"get_market_timing returned {len(values)} values, expected 3",
                market_id=market_id
            )

        return MarketTiming(
            bidding_deadline=decode_u64(values[0]),
            resolution_time=decode_u64(values[1]),
            resolved_value=decode_u64(values[2]),
        )

    async def fetch_spread_prices(self, market_id: str) -> List[Tuple[int, int]]:
        """Fetch (spread_index, price) pairs in a single simulated call."""
        values = await self.client.dev_inspect_move_call(
            function="get_all_spread_prices",
            type_arguments=self.type_arguments,
            inputs=[await self._market_input(market_id)],
        )
        if len(values) < 2:
            raise DecodeFailure(
                f"get_all_spread_prices returned {len(values)} values, expected 2",
                market_id=market_id
            )

        indices = decode_u64_vector(values[0])
        prices = decode_u64_vector(values[1])
        if len(indices) != len(prices):
            raise DecodeFailure(
                f"Spread index/price length mismatch ({len(indices)} != {len(prices)})",
                market_id=market_id
            )

        logger.debug(f"Fetched {len(prices)} spread prices for {market_id}")
        return list(zip(indices, prices))

    async def fetch_user_position(self, market_id: str, user_address: str) -> RawUserPosition:
        values = await self.client.dev_inspect_move_call(
            function="get_user_position",
            type_arguments=self.type_arguments,
            inputs=[await self._market_input(market_id), PureAddressInput(user_address)],
        )
        if len(values) < 2:
            raise DecodeFailure(
                f"get_user_position returned {len(values)} values, expected 2",
                market_id=market_id
            )

        indices = decode_u64_vector(values[0])
        shares = decode_u64_vector(values[1])
        if len(indices) != len(shares):
            raise DecodeFailure(
                f"Position index/share length mismatch ({len(indices)} != {len(shares)})",
                market_id=market_id
            )

        return RawUserPosition(
            market_id=market_id,
            user_address=user_address,
            spread_indices=indices,
            shares=shares,
        )
