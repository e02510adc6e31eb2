"""
Tests for the Sui JSON-RPC client and market data source

Tests with mocked HTTP responses.
"""

import base64
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from marketcache.services.sui.bcs import encode_u64
from marketcache.services.sui.client import SuiRpcClient
from marketcache.services.sui.errors import (
    DecodeFailure,
    ErrorCategory,
    FetchFailure,
    MarketDataError,
    NetworkError,
    RateLimitError,
    categorize_error,
)
from marketcache.services.sui.source import SuiMarketDataSource, parse_market_object
from tests.conftest import MARKET_ID, USER_ADDRESS


def _response(body=None, status_code=200, headers=None):
    return Mock(
        status_code=status_code,
        headers=headers or {},
        json=lambda: body,
    )


def _rpc_result(result):
    return _response({"jsonrpc": "2.0", "id": 1, "result": result})


def _u64_vector(values):
    return [len(values)] + [b for value in values for b in encode_u64(value)]


def _dev_inspect(*return_values):
    return _rpc_result({
        "effects": {"status": {"status": "success"}},
        "results": [{"returnValues": [[list(value), "u64"] for value in return_values]}],
    })


SHARED_OWNER = _rpc_result({
    "data": {"objectId": MARKET_ID, "owner": {"Shared": {"initial_shared_version": 42}}}
})


@pytest.fixture
async def client():
    client = SuiRpcClient(rpc_url="https://fullnode.test", timeout=5)
    yield client
    await client.close()


class TestSuiRpcClient:

    @pytest.mark.asyncio
    async def test_initialization(self, client):
        assert client.rpc_url == "https://fullnode.test"
        assert client.sender.startswith("0x")

    @pytest.mark.asyncio
    async def test_request_payload(self, client):
        post = AsyncMock(return_value=_rpc_result({"data": {}}))
        with patch.object(client.client, "post", new=post):
            await client.get_object(MARKET_ID)

        url = post.call_args.args[0]
        payload = post.call_args.kwargs["json"]
        assert url == "https://fullnode.test"
        assert payload["jsonrpc"] == "2.0"
        assert payload["method"] == "sui_getObject"
        assert payload["params"] == [MARKET_ID, {"showContent": True, "showOwner": False}]

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self, client):
        post = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))
        with patch.object(client.client, "post", new=post):
            with pytest.raises(NetworkError) as exc_info:
                await client.get_object(MARKET_ID)

        assert exc_info.value.is_retryable()

    @pytest.mark.asyncio
    async def test_http_429_is_rate_limit(self, client):
        post = AsyncMock(return_value=_response(status_code=429, headers={"Retry-After": "2"}))
        with patch.object(client.client, "post", new=post):
            with pytest.raises(RateLimitError) as exc_info:
                await client.get_object(MARKET_ID)

        assert exc_info.value.retry_after == 2.0

    @pytest.mark.asyncio
    async def test_http_500_is_fetch_failure(self, client):
        post = AsyncMock(return_value=_response(status_code=503))
        with patch.object(client.client, "post", new=post):
            with pytest.raises(FetchFailure) as exc_info:
                await client.get_object(MARKET_ID)

        assert exc_info.value.category == ErrorCategory.NETWORK

    @pytest.mark.asyncio
    async def test_rpc_error_member(self, client):
        body = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "object deleted"}}
        with patch.object(client.client, "post", new=AsyncMock(return_value=_response(body))):
            with pytest.raises(FetchFailure) as exc_info:
                await client.get_object(MARKET_ID)

        assert "object deleted" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_result_is_decode_failure(self, client):
        body = {"jsonrpc": "2.0", "id": 1}
        with patch.object(client.client, "post", new=AsyncMock(return_value=_response(body))):
            with pytest.raises(DecodeFailure):
                await client.get_object(MARKET_ID)

    @pytest.mark.parametrize("body", [
        [],
        "ok",
        {"jsonrpc": "2.0", "id": 1, "result": None},
        {"jsonrpc": "2.0", "id": 1, "result": [1, 2]},
        {"jsonrpc": "2.0", "id": 1, "error": "internal"},
    ])
    @pytest.mark.asyncio
    async def test_malformed_body_is_market_data_error(self, client, body):
        with patch.object(client.client, "post", new=AsyncMock(return_value=_response(body))):
            with pytest.raises(MarketDataError):
                await client.get_object(MARKET_ID)

    @pytest.mark.asyncio
    async def test_null_result_is_decode_failure(self, client):
        body = {"jsonrpc": "2.0", "id": 1, "result": None}
        with patch.object(client.client, "post", new=AsyncMock(return_value=_response(body))):
            with pytest.raises(DecodeFailure):
                await client.get_object(MARKET_ID)

    @pytest.mark.asyncio
    async def test_non_object_body_is_decode_failure(self, client):
        with patch.object(client.client, "post", new=AsyncMock(return_value=_response([]))):
            with pytest.raises(DecodeFailure):
                await client.get_object(MARKET_ID)

    @pytest.mark.asyncio
    async def test_shared_version_with_malformed_data(self, client):
        malformed = _rpc_result({"data": "deleted"})
        with patch.object(client.client, "post", new=AsyncMock(return_value=malformed)):
            with pytest.raises(DecodeFailure):
                await client.get_initial_shared_version(MARKET_ID)

    @pytest.mark.asyncio
    async def test_shared_version_is_cached(self, client):
        post = AsyncMock(return_value=SHARED_OWNER)
        with patch.object(client.client, "post", new=post):
            first = await client.get_initial_shared_version(MARKET_ID)
            second = await client.get_initial_shared_version(MARKET_ID.upper().replace("0X", "0x"))

        assert first == second == 42
        assert post.await_count == 1

    @pytest.mark.asyncio
    async def test_owned_object_is_rejected(self, client):
        owned = _rpc_result({"data": {"owner": {"AddressOwner": USER_ADDRESS}}})
        with patch.object(client.client, "post", new=AsyncMock(return_value=owned)):
            with pytest.raises(DecodeFailure):
                await client.get_initial_shared_version(MARKET_ID)

    @pytest.mark.asyncio
    async def test_dev_inspect_sends_base64_kind(self, client):
        post = AsyncMock(return_value=_dev_inspect(encode_u64(1)))
        with patch.object(client.client, "post", new=post):
            values = await client.dev_inspect_move_call("get_market_timing", [], [])

        params = post.call_args.kwargs["json"]["params"]
        assert params[0] == client.sender
        assert base64.b64decode(params[1])[0] == 0
        assert values == [list(encode_u64(1))]

    @pytest.mark.asyncio
    async def test_dev_inspect_abort_is_fetch_failure(self, client):
        failed = _rpc_result({"effects": {"status": {"status": "failure", "error": "MoveAbort"}}})
        with patch.object(client.client, "post", new=AsyncMock(return_value=failed)):
            with pytest.raises(FetchFailure):
                await client.dev_inspect_move_call("get_market_timing", [], [])

    @pytest.mark.asyncio
    async def test_dev_inspect_without_values_is_decode_failure(self, client):
        empty = _rpc_result({"effects": {"status": {"status": "success"}}, "results": []})
        with patch.object(client.client, "post", new=AsyncMock(return_value=empty)):
            with pytest.raises(DecodeFailure):
                await client.dev_inspect_move_call("get_market_timing", [], [])

    @pytest.mark.parametrize("result", [
        None,
        {"effects": "success"},
        {"effects": {"status": {"status": "success"}}, "results": [None]},
        {"effects": {"status": {"status": "success"}}, "results": {"returnValues": []}},
    ])
    @pytest.mark.asyncio
    async def test_dev_inspect_malformed_result_is_decode_failure(self, client, result):
        with patch.object(client.client, "post", new=AsyncMock(return_value=_rpc_result(result))):
            with pytest.raises(DecodeFailure):
                await client.dev_inspect_move_call("get_market_timing", [], [])


class TestCategorizeError:

    @pytest.mark.parametrize("status_code,rpc_error,category", [
        (429, None, ErrorCategory.RATE_LIMIT),
        (502, None, ErrorCategory.NETWORK),
        (200, {"code": -32600, "message": "Invalid request"}, ErrorCategory.DECODE),
        (200, {"code": -32000, "message": "Too many requests, rate limit exceeded"}, ErrorCategory.RATE_LIMIT),
        (200, {"code": -32000, "message": "boom"}, ErrorCategory.RPC),
        (404, None, ErrorCategory.RPC),
        (200, None, ErrorCategory.UNKNOWN),
    ])
    def test_categories(self, status_code, rpc_error, category):
        assert categorize_error(status_code, rpc_error) == category


MARKET_OBJECT = {
    "data": {
        "objectId": MARKET_ID,
        "content": {
            "dataType": "moveObject",
            "fields": {
                "question": "What will the BTC price be?",
                "resolution_criteria": list(b"CoinGecko close"),
                "bidding_deadline": "1800000000000",
                "resolution_time": "1800086400000",
                "market_state": 0,
                "total_shares": "400",
                "cumulative_shares_sold": "400",
                "resolved_value": "0",
                "spreads": [
                    {"type": "spread", "fields": {"lower_bound": "0", "upper_bound": "100", "outstanding_shares": "100"}},
                    {"lower_bound": "100", "upper_bound": "200", "outstanding_shares": "300"},
                ],
            },
        },
    }
}


class TestParseMarketObject:

    def test_parse(self):
        market = parse_market_object(MARKET_ID, MARKET_OBJECT)

        assert market.question == "What will the BTC price be?"
        assert market.resolution_criteria == "CoinGecko close"
        assert market.bidding_deadline == 1_800_000_000_000
        assert market.total_liquidity == 400
        assert [s.outstanding_shares for s in market.spreads] == [100, 300]
        assert market.spreads[1].lower_bound == 100

    def test_missing_object(self):
        with pytest.raises(DecodeFailure):
            parse_market_object(MARKET_ID, {"error": {"code": "notExists"}})

    def test_not_a_move_object(self):
        with pytest.raises(DecodeFailure):
            parse_market_object(MARKET_ID, {"data": {"content": {"dataType": "package"}}})

    def test_non_numeric_field(self):
        bad = {"data": {"content": {"dataType": "moveObject", "fields": {"market_state": "x"}}}}
        with pytest.raises(DecodeFailure):
            parse_market_object(MARKET_ID, bad)

    @pytest.mark.parametrize("response", [
        None,
        {"data": "deleted"},
        {"data": {"content": "moveObject"}},
        {"data": {"content": {"dataType": "moveObject", "fields": None}}},
        {"data": {"content": {"dataType": "moveObject", "fields": {"spreads": 3}}}},
    ])
    def test_malformed_response(self, response):
        with pytest.raises(DecodeFailure):
            parse_market_object(MARKET_ID, response)


class TestSuiMarketDataSource:

    @pytest.fixture
    async def source(self, client):
        return SuiMarketDataSource(client)

    @pytest.mark.asyncio
    async def test_fetch_market_timing(self, source, client):
        post = AsyncMock(side_effect=[
            SHARED_OWNER,
            _dev_inspect(encode_u64(1_800_000_000_000), encode_u64(1_800_086_400_000), encode_u64(0)),
        ])
        with patch.object(client.client, "post", new=post):
            timing = await source.fetch_market_timing(MARKET_ID)

        assert timing.bidding_deadline == 1_800_000_000_000
        assert timing.resolution_time == 1_800_086_400_000
        assert timing.resolved_value == 0

    @pytest.mark.asyncio
    async def test_fetch_spread_prices(self, source, client):
        post = AsyncMock(side_effect=[
            SHARED_OWNER,
            _dev_inspect(_u64_vector([0, 1]), _u64_vector([1_000_000, 3_000_000])),
        ])
        with patch.object(client.client, "post", new=post):
            prices = await source.fetch_spread_prices(MARKET_ID)

        assert prices == [(0, 1_000_000), (1, 3_000_000)]

    @pytest.mark.asyncio
    async def test_spread_prices_length_mismatch(self, source, client):
        post = AsyncMock(side_effect=[
            SHARED_OWNER,
            _dev_inspect(_u64_vector([0, 1]), _u64_vector([1_000_000])),
        ])
        with patch.object(client.client, "post", new=post):
            with pytest.raises(DecodeFailure):
                await source.fetch_spread_prices(MARKET_ID)

    @pytest.mark.asyncio
    async def test_fetch_user_position(self, source, client):
        post = AsyncMock(side_effect=[
            SHARED_OWNER,
            _dev_inspect(_u64_vector([2]), _u64_vector([75])),
        ])
        with patch.object(client.client, "post", new=post):
            position = await source.fetch_user_position(MARKET_ID, USER_ADDRESS)

        assert position.user_address == USER_ADDRESS
        assert position.spread_indices == [2]
        assert position.shares == [75]
        assert set(position.model_dump()) == {"market_id", "user_address", "spread_indices", "shares"}

    @pytest.mark.asyncio
    async def test_fetch_market_object(self, source, client):
        with patch.object(client.client, "post", new=AsyncMock(return_value=_rpc_result(MARKET_OBJECT))):
            market = await source.fetch_market_object(MARKET_ID)

        assert market.market_id == MARKET_ID
        assert len(market.spreads) == 2

    @pytest.mark.asyncio
    async def test_out_of_range_return_bytes(self, source, client):
        post = AsyncMock(side_effect=[
            SHARED_OWNER,
            _dev_inspect([300, 0, 0, 0, 0, 0, 0, 0], encode_u64(0), encode_u64(0)),
        ])
        with patch.object(client.client, "post", new=post):
            with pytest.raises(DecodeFailure):
                await source.fetch_market_timing(MARKET_ID)
