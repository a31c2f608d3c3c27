"""
Tests for the connection monitor.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.connection_monitor import ConnectionMonitor


def _monitor(results, failures_before_rediscovery=3):
    backend_client = MagicMock()
    backend_client.test_connection = AsyncMock(side_effect=results)
    backend_client.reconnect_with_discovery = AsyncMock()
    config = {"monitoring": {
        "connection_check_interval_seconds": 0.01,
        "failures_before_rediscovery": failures_before_rediscovery,
    }}
    return ConnectionMonitor(backend_client, config), backend_client


class TestCheckNow:

    @pytest.mark.asyncio
    async def test_connected(self):
        monitor, _ = _monitor([True])
        assert await monitor.check_now() is True
        status = monitor.get_status()
        assert status["connected"] is True
        assert status["last_check"] is not None
        assert status["consecutive_failures"] == 0

    @pytest.mark.asyncio
    async def test_failures_below_threshold_do_not_rediscover(self):
        monitor, backend_client = _monitor([False, False])
        await monitor.check_now()
        await monitor.check_now()
        assert monitor.consecutive_failures == 2
        backend_client.reconnect_with_discovery.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rediscovery_after_threshold(self):
        monitor, backend_client = _monitor([False, False, False, True])
        for _ in range(3):
            await monitor.check_now()

        backend_client.reconnect_with_discovery.assert_awaited_once()
        assert monitor.connected is True
        assert monitor.consecutive_failures == 0
        assert monitor.rediscovery_count == 1

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        monitor, backend_client = _monitor([False, False, True, False, False])
        for _ in range(5):
            await monitor.check_now()
        assert monitor.consecutive_failures == 2
        backend_client.reconnect_with_discovery.assert_not_awaited()


class TestRunLoop:

    @pytest.mark.asyncio
    async def test_loop_survives_errors_and_stops_on_cancel(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return True

        monitor, backend_client = _monitor(flaky)

        task = asyncio.create_task(monitor.run())
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert backend_client.test_connection.await_count >= 2
        assert monitor.connected is True
