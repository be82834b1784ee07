"""
Network Poller.

============================================================
PURPOSE
============================================================
Runs one poll cycle end to end:

    Discovery -> Fetcher -> Geolocation -> Snapshot
              -> Differencer -> Aggregator -> Health -> Alerts

PRINCIPLES:
- At most one cycle in flight; concurrent callers share its result
- Derivation starts only after the fetch phase has settled
- Only bootstrap exhaustion and unexpected errors escape a cycle

============================================================
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from node_health import NodeMetrics, score_network
from node_sources.client import PRPCClient
from node_sources.config import NetworkConfig, get_config
from node_sources.discovery import BootstrapDiscovery
from node_sources.fetcher import BatchedStatsFetcher, select_targets
from node_sources.geolocation import GeoLocator
from node_sources.models import FetchSummary, GeoLocation, RosterEntry

from .aggregator import aggregate_snapshot
from .alerts import AlertEvaluator, AlertHistory
from .differencer import SnapshotDifferencer
from .models import Alert, ChangeEvent, NetworkOverview, NodeView, Snapshot


logger = logging.getLogger(__name__)


# ============================================================
# CYCLE RESULT
# ============================================================

@dataclass
class CycleResult:
    """Everything one poll cycle produced."""

    cycle_id: int
    snapshot: Snapshot
    overview: NetworkOverview
    views: Dict[str, NodeView]
    events: List[ChangeEvent] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)
    fetch_summary: FetchSummary = field(default_factory=FetchSummary)
    source: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def timestamp(self) -> float:
        return self.snapshot.timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "timestamp": int(self.timestamp * 1000),
            "source": self.source,
            "duration_ms": round(self.duration_ms, 2),
            "overview": self.overview.to_dict(),
            "fetch": self.fetch_summary.to_dict(),
            "events": [e.to_dict() for e in self.events],
            "alerts": [a.to_dict() for a in self.alerts],
        }


# ============================================================
# POLLER
# ============================================================

class NetworkPoller:
    """
    Orchestrates poll cycles on a timer and on demand.

    Usage:
        poller = NetworkPoller(NetworkConfig.from_env())
        result = await poller.run_cycle()
        await poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        config: Optional[NetworkConfig] = None,
        client: Optional[PRPCClient] = None,
        discovery: Optional[BootstrapDiscovery] = None,
        fetcher: Optional[BatchedStatsFetcher] = None,
        geolocator: Optional[GeoLocator] = None,
        differencer: Optional[SnapshotDifferencer] = None,
        evaluator: Optional[AlertEvaluator] = None,
    ) -> None:
        self._config = config or get_config()
        self._client = client or PRPCClient(timeout=self._config.bootstrap_timeout)
        self._discovery = discovery or BootstrapDiscovery(
            self._client,
            self._config.bootstrap_nodes,
            port=self._config.prpc_port,
            timeout=self._config.bootstrap_timeout,
        )
        self._fetcher = fetcher or BatchedStatsFetcher(
            self._client,
            batch_size=self._config.batch_size,
            timeout=self._config.stats_timeout,
        )
        if geolocator is None and self._config.geolocation_enabled:
            geolocator = GeoLocator(
                url=self._config.geolocation_url,
                timeout=self._config.geolocation_timeout,
            )
        self._geolocator = geolocator
        self._differencer = differencer or SnapshotDifferencer(self._config.event_retention)
        self._evaluator = evaluator or AlertEvaluator()
        self._alert_history = AlertHistory(self._config.alert_retention)

        self._inflight: Optional[asyncio.Task] = None
        self._running = False
        self._task: Optional[asyncio.Task] = None

        self._roster: Optional[List[RosterEntry]] = None
        self._roster_fetched_at = 0.0

        self._cycle_count = 0
        self._failed_cycles = 0
        self._last_result: Optional[CycleResult] = None
        self._last_error: Optional[Exception] = None

    # --------------------------------------------------------
    # STATE
    # --------------------------------------------------------

    @property
    def config(self) -> NetworkConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cycle_in_flight(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def last_result(self) -> Optional[CycleResult]:
        return self._last_result

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    @property
    def events(self) -> List[ChangeEvent]:
        return self._differencer.events

    @property
    def alert_history(self) -> AlertHistory:
        return self._alert_history

    def stats(self) -> Dict[str, Any]:
        return {
            "total_cycles": self._cycle_count,
            "failed_cycles": self._failed_cycles,
            "running": self._running,
            "last_cycle": self._last_result.timestamp if self._last_result else None,
            "last_error": str(self._last_error) if self._last_error else None,
        }

    # --------------------------------------------------------
    # CYCLE
    # --------------------------------------------------------

    async def run_cycle(self) -> CycleResult:
        """
        Run one cycle, or join the one already in flight.

        Raises:
            AllBootstrapsFailedError: discovery exhausted every candidate
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._run_cycle())
        else:
            logger.debug("Cycle already in flight; awaiting its result")
        return await asyncio.shield(self._inflight)

    async def refresh(self) -> CycleResult:
        """On-demand cycle."""
        return await self.run_cycle()

    async def _run_cycle(self) -> CycleResult:
        start_time = time.monotonic()
        self._cycle_count += 1
        cycle_id = self._cycle_count

        try:
            roster = await self._get_roster()

            now = time.time()
            targets = select_targets(roster, now)
            worst_case = self._fetcher.worst_case_seconds(len(targets))
            if worst_case > self._config.refresh_interval_seconds:
                logger.warning(
                    f"Worst-case fetch time {worst_case:.0f}s for {len(targets)} targets "
                    f"exceeds refresh interval {self._config.refresh_interval_seconds}s"
                )

            stats = await self._fetcher.fetch_all(targets)
            locations = await self._locate(roster)

            snapshot = Snapshot.create(roster, stats, locations, timestamp=now)
            previous_result = self._last_result

            overview = aggregate_snapshot(snapshot)
            views = self._build_views(snapshot)

            alerts = self._evaluator.evaluate(
                previous_result.views if previous_result else None,
                views,
                overview,
                previous_result.overview if previous_result else None,
                now=now,
            )

            # Differencer baseline advances only together with _last_result.
            events = self._differencer.observe(snapshot)
            self._alert_history.extend(alerts)

        except Exception as e:
            self._failed_cycles += 1
            self._last_error = e
            logger.error(f"Cycle #{cycle_id} failed: {e}")
            raise

        result = CycleResult(
            cycle_id=cycle_id,
            snapshot=snapshot,
            overview=overview,
            views=views,
            events=events,
            alerts=alerts,
            fetch_summary=self._fetcher.last_summary,
            source=self._discovery.last_source,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )
        self._last_result = result
        self._last_error = None

        logger.info(
            f"Cycle #{cycle_id}: {overview.online_pnodes}/{overview.total_pnodes} online, "
            f"{overview.nodes_reporting} reporting, {len(events)} events, "
            f"{len(alerts)} alerts in {result.duration_ms:.0f}ms"
        )
        return result

    async def _get_roster(self) -> List[RosterEntry]:
        """Discover, or reuse the cached roster while it is fresh."""
        ttl = self._config.roster_ttl_seconds
        if ttl > 0 and self._roster is not None:
            age = time.monotonic() - self._roster_fetched_at
            if age < ttl:
                logger.debug(f"Reusing roster ({age:.0f}s old)")
                return self._roster

        roster = await self._discovery.discover()
        self._roster = roster
        self._roster_fetched_at = time.monotonic()
        return roster

    async def _locate(self, roster: List[RosterEntry]) -> Dict[str, GeoLocation]:
        if self._geolocator is None:
            return {}
        return await self._geolocator.locate(entry.host for entry in roster)

    def _build_views(self, snapshot: Snapshot) -> Dict[str, NodeView]:
        metrics = {
            entry.address: NodeMetrics.from_node(
                entry, snapshot.stats_for(entry.address), snapshot.timestamp,
            )
            for entry in snapshot.roster
        }
        health = score_network(metrics)

        return {
            entry.address: NodeView(
                entry=entry,
                online=metrics[entry.address].online,
                stats=snapshot.stats_for(entry.address),
                health=health[entry.address],
                location=snapshot.location_for(entry.address),
            )
            for entry in snapshot.roster
        }

    # --------------------------------------------------------
    # LOOP
    # --------------------------------------------------------

    async def start(self) -> None:
        """Start the polling loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Network poller started (interval {self._config.refresh_interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the polling loop."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Network poller stopped")

    async def _run(self) -> None:
        """Main run loop."""
        while self._running:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Poll cycle error: {e}")

            await asyncio.sleep(self._config.refresh_interval_seconds)

    async def close(self) -> None:
        """Stop polling and release HTTP sessions."""
        await self.stop()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
            try:
                await self._inflight
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"In-flight cycle ended with error during shutdown: {e}")
        await self._client.close()
        if self._geolocator is not None:
            await self._geolocator.close()
