"""
Tests for MarketFeed: batched reads, forced refresh, subscriptions and
maintenance.
"""

import asyncio
from unittest.mock import patch

import pytest

from marketcache.services.market_feed import MarketFeed
from marketcache.services.sui.errors import FetchFailure
from tests.conftest import MARKET_ID, OTHER_MARKET_ID


async def _wait_for(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class TestReads:

    @pytest.mark.asyncio
    async def test_read_many_reports_cache_efficiency(self, feed, service):
        service.preload_static_data()

        batch = await feed.read_many([MARKET_ID, OTHER_MARKET_ID])

        assert [m.market_id for m in batch.markets] == [MARKET_ID, OTHER_MARKET_ID]
        assert batch.cache_efficiency.total_markets == 2
        # both static entries were cached by the time the records were built
        assert batch.cache_efficiency.cached_markets == 2
        assert batch.cache_efficiency.average_fetch_time >= 0

    @pytest.mark.asyncio
    async def test_read_many_empty(self, feed):
        batch = await feed.read_many([])

        assert batch.markets == []
        assert batch.cache_efficiency.average_fetch_time == 0.0

    @pytest.mark.asyncio
    async def test_read_cached(self, feed):
        assert feed.read_cached(MARKET_ID) is None

        await feed.read(MARKET_ID)

        assert feed.read_cached(MARKET_ID).stale is True

    @pytest.mark.asyncio
    async def test_refresh_refetches_dynamic_and_clears_error(self, feed, source, cache):
        await feed.read(MARKET_ID)
        cache.set_error(MARKET_ID, FetchFailure("old"))
        source.prices[MARKET_ID] = [(0, 2_000_000), (1, 3_000_000)]

        info = await feed.refresh(MARKET_ID)

        assert info.spreads[0].buy_price == 2_000_000
        assert info.cache_info.static_from_cache is True
        assert info.cache_info.timing_from_cache is False
        assert not cache.has_recent_error(MARKET_ID)


class TestSubscriptions:

    @pytest.mark.asyncio
    async def test_callback_receives_updates(self, feed):
        updates = []

        subscription = feed.subscribe(MARKET_ID, lambda info, error: updates.append((info, error)))
        await _wait_for(lambda: len(updates) >= 2)
        await subscription.cancel()

        info, error = updates[0]
        assert error is None
        assert info.market_id == MARKET_ID
        assert not subscription.active
        assert feed.subscription_count == 0

    @pytest.mark.asyncio
    async def test_async_callback(self, feed):
        seen = asyncio.Event()

        async def on_update(info, error):
            seen.set()

        subscription = feed.subscribe(MARKET_ID, on_update)
        await asyncio.wait_for(seen.wait(), timeout=2)
        await subscription.cancel()

    @pytest.mark.asyncio
    async def test_errors_delivered_and_loop_survives(self, feed, source, clock):
        source.fail(MARKET_ID)
        errors = []

        subscription = feed.subscribe(MARKET_ID, lambda info, error: errors.append(error))
        await _wait_for(lambda: len(errors) >= 2)

        assert isinstance(errors[0], FetchFailure)
        assert subscription.active
        await subscription.cancel()

    @pytest.mark.asyncio
    async def test_callback_exception_does_not_stop_polling(self, feed):
        calls = []

        def broken(info, error):
            calls.append(info)
            raise RuntimeError("consumer bug")

        subscription = feed.subscribe(MARKET_ID, broken)
        await _wait_for(lambda: len(calls) >= 2)

        assert subscription.active
        await subscription.cancel()

    @pytest.mark.asyncio
    async def test_interval_clamped_to_minimum(self, service):
        feed = MarketFeed(service, min_refresh_interval=5, default_refresh_interval=30)

        subscription = feed.subscribe(MARKET_ID, lambda info, error: None, interval=1)
        default = feed.subscribe(OTHER_MARKET_ID, lambda info, error: None)

        assert subscription.interval == 5
        assert default.interval == 30
        assert feed.subscription_count == 2

        await feed.close()
        assert feed.subscription_count == 0


class TestMaintenance:

    @pytest.mark.asyncio
    async def test_run_cleanup(self, feed, clock, cache):
        await feed.read(MARKET_ID)
        clock.advance(31)

        assert feed.run_cleanup() == 1
        assert cache.get_stats()["dynamic"].total == 0

    @pytest.mark.asyncio
    async def test_run_health_check_warns_when_degraded(self, feed, source):
        source.fail(MARKET_ID)
        with pytest.raises(FetchFailure):
            await feed.read(MARKET_ID)

        with patch("marketcache.services.market_feed.logger") as mock_logger:
            report = feed.run_health_check()

        assert report.status != "healthy"
        assert feed.last_health_report is report
        mock_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_and_stop_maintenance(self, feed):
        with patch("marketcache.services.market_feed.settings") as mock_settings:
            mock_settings.CACHE_CLEANUP_INTERVAL = 0.01
            mock_settings.HEALTH_CHECK_INTERVAL = 0.01

            with patch.object(feed, "run_cleanup", wraps=feed.run_cleanup) as cleanup:
                await feed.start_maintenance()
                await feed.start_maintenance()  # second start is ignored
                await _wait_for(lambda: cleanup.call_count >= 2)
                await feed.stop_maintenance()

        assert feed._maintenance_task is None
        assert feed.last_health_report is not None
