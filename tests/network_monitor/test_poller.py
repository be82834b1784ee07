"""
Tests for the network poller.

============================================================
PURPOSE
============================================================
- One cycle runs discovery through alerts in order
- Concurrent callers share a single in-flight cycle
- Roster caching and failure bookkeeping
- Background loop start / stop

============================================================
"""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from node_sources.exceptions import AllBootstrapsFailedError
from node_sources.models import GeoLocation
from network_monitor.models import AlertType, EventType

from tests.network_monitor.fakes import (
    FakeClient,
    bootstrap_failure,
    fake_discovery,
    live_roster,
)


# ============================================================
# CYCLE
# ============================================================

class TestRunCycle:
    """Tests for a single poll cycle."""

    @pytest.mark.asyncio
    async def test_first_cycle(self, make_poller):
        poller = make_poller()

        result = await poller.run_cycle()

        assert result.cycle_id == 1
        assert result.source == "10.0.0.0:6000"
        assert result.overview.total_pnodes == 3
        assert result.overview.online_pnodes == 3
        assert result.overview.nodes_reporting == 3
        assert [e.type for e in result.events] == [EventType.BOOTSTRAP]
        assert result.alerts == []
        assert result.fetch_summary.requested == 3
        assert poller.last_result is result

    @pytest.mark.asyncio
    async def test_views_carry_health_and_stats(self, make_poller):
        poller = make_poller(client=FakeClient(down={"10.0.0.1"}))

        result = await poller.run_cycle()

        assert set(result.views) == {"10.0.0.0:9001", "10.0.0.1:9001", "10.0.0.2:9001"}
        assert result.views["10.0.0.1:9001"].stats is None
        assert result.views["10.0.0.0:9001"].stats is not None
        for view in result.views.values():
            assert view.online is True
            assert view.health is not None
            assert view.health.percentile is not None
        assert result.overview.nodes_reporting == 2

    @pytest.mark.asyncio
    async def test_second_cycle_diffs_and_alerts(self, make_poller):
        roster = live_roster()
        discovery = fake_discovery(roster)
        poller = make_poller(discovery=discovery)
        await poller.run_cycle()

        stale = [replace(e, last_seen_timestamp=e.last_seen_timestamp - 3600) for e in roster]
        discovery.discover.side_effect = None
        discovery.discover.return_value = stale[:1] + roster[1:]

        result = await poller.run_cycle()

        assert result.cycle_id == 2
        assert [e.type for e in result.events] == [EventType.STATUS_CHANGED]
        assert AlertType.NODE_OFFLINE in [a.type for a in result.alerts]
        assert [e.type for e in poller.events] == [EventType.STATUS_CHANGED, EventType.BOOTSTRAP]
        assert len(poller.alert_history) == len(result.alerts)

    @pytest.mark.asyncio
    async def test_geolocation(self, make_poller):
        geolocator = MagicMock()
        geolocator.locate = AsyncMock(return_value={"10.0.0.0": GeoLocation(country="Germany")})
        geolocator.close = AsyncMock()
        poller = make_poller(geolocator=geolocator)

        result = await poller.run_cycle()

        assert result.overview.location_distribution == {"Germany": 1, "Unknown": 2}
        assert result.views["10.0.0.0:9001"].location.country == "Germany"

    @pytest.mark.asyncio
    async def test_to_dict(self, make_poller):
        result = await make_poller().run_cycle()
        data = result.to_dict()

        assert data["cycle_id"] == 1
        assert data["overview"]["total_pnodes"] == 3
        assert data["events"][0]["type"] == "bootstrap"


# ============================================================
# CONCURRENCY AND CACHING
# ============================================================

class TestCoalescing:
    """Tests for single-flight cycles and roster reuse."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_cycle(self, make_poller):
        discovery = fake_discovery(delay=0.05)
        poller = make_poller(discovery=discovery)

        first, second = await asyncio.gather(poller.run_cycle(), poller.refresh())

        assert first is second
        assert discovery.discover.await_count == 1
        assert poller.stats()["total_cycles"] == 1

    @pytest.mark.asyncio
    async def test_sequential_cycles_rediscover(self, make_poller):
        discovery = fake_discovery()
        poller = make_poller(discovery=discovery)

        await poller.run_cycle()
        await poller.run_cycle()

        assert discovery.discover.await_count == 2

    @pytest.mark.asyncio
    async def test_roster_ttl_reuses_roster(self, make_poller, config):
        discovery = fake_discovery()
        poller = make_poller(discovery=discovery, config=replace(config, roster_ttl_seconds=300))

        await poller.run_cycle()
        await poller.run_cycle()

        assert discovery.discover.await_count == 1


# ============================================================
# FAILURES
# ============================================================

class TestFailures:
    """Tests for failed cycles."""

    @pytest.mark.asyncio
    async def test_bootstrap_failure_propagates(self, make_poller):
        poller = make_poller(discovery=fake_discovery(error=bootstrap_failure()))

        with pytest.raises(AllBootstrapsFailedError):
            await poller.run_cycle()

        stats = poller.stats()
        assert stats["failed_cycles"] == 1
        assert isinstance(poller.last_error, AllBootstrapsFailedError)
        assert poller.last_result is None

    @pytest.mark.asyncio
    async def test_failed_alerting_keeps_event_baseline(self, make_poller):
        roster = live_roster()
        discovery = fake_discovery(roster)
        evaluator = MagicMock()
        evaluator.evaluate = MagicMock(side_effect=[[], RuntimeError("boom"), []])
        poller = make_poller(discovery=discovery, evaluator=evaluator)
        await poller.run_cycle()

        stale = [replace(e, last_seen_timestamp=e.last_seen_timestamp - 3600) for e in roster]
        discovery.discover.side_effect = None
        discovery.discover.return_value = stale[:1] + roster[1:]

        with pytest.raises(RuntimeError):
            await poller.run_cycle()

        assert [e.type for e in poller.events] == [EventType.BOOTSTRAP]
        assert poller.last_result.cycle_id == 1

        result = await poller.run_cycle()

        assert [e.type for e in result.events] == [EventType.STATUS_CHANGED]

    @pytest.mark.asyncio
    async def test_success_clears_last_error(self, make_poller):
        discovery = fake_discovery(error=bootstrap_failure())
        poller = make_poller(discovery=discovery)
        with pytest.raises(AllBootstrapsFailedError):
            await poller.run_cycle()

        discovery.discover.side_effect = None
        discovery.discover.return_value = live_roster()
        await poller.run_cycle()

        assert poller.last_error is None
        assert poller.stats()["last_error"] is None


# ============================================================
# LOOP
# ============================================================

class TestLoop:
    """Tests for start / stop / close."""

    @pytest.mark.asyncio
    async def test_start_runs_a_cycle_and_stop_halts(self, make_poller):
        poller = make_poller()

        await poller.start()
        assert poller.is_running
        for _ in range(100):
            if poller.last_result is not None:
                break
            await asyncio.sleep(0.01)
        await poller.stop()

        assert poller.last_result is not None
        assert not poller.is_running

    @pytest.mark.asyncio
    async def test_loop_survives_failed_cycle(self, make_poller):
        poller = make_poller(discovery=fake_discovery(error=bootstrap_failure()))

        await poller.start()
        for _ in range(100):
            if poller.stats()["failed_cycles"]:
                break
            await asyncio.sleep(0.01)

        assert poller.is_running
        await poller.stop()

    @pytest.mark.asyncio
    async def test_close_releases_client(self, make_poller):
        client = FakeClient()
        poller = make_poller(client=client)
        await poller.start()

        await poller.close()

        assert client.closed
        assert not poller.is_running
