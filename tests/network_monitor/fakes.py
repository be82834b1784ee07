"""
Fakes for poller, service and API tests.

Discovery and the RPC client are faked; everything from the fetcher
down runs for real.
"""

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

from node_sources.exceptions import AllBootstrapsFailedError, ConnectFailureError

from tests.conftest import build_entry, build_stats


class FakeClient:
    """RPC client answering get-stats from a per-host table."""

    DEFAULT_TIMEOUT = 8.0

    def __init__(self, stats=None, down=()):
        self.stats = stats or {}
        self.down = set(down)
        self.closed = False

    async def get_stats(self, host, port, timeout=None):
        if host in self.down:
            raise ConnectFailureError("refused", host=host)
        return self.stats.get(host, build_stats())

    async def close(self):
        self.closed = True


def live_roster(count=3, **overrides):
    """Entries last seen a few seconds ago by the wall clock."""
    now = time.time()
    return [build_entry(f"10.0.0.{i}:9001", now=now, **overrides) for i in range(count)]


def fake_discovery(roster=None, error=None, delay=0.0):
    discovery = MagicMock()
    discovery.last_source = "10.0.0.0:6000"

    async def discover():
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        return roster if roster is not None else live_roster()

    discovery.discover = AsyncMock(side_effect=discover)
    return discovery


def bootstrap_failure():
    return AllBootstrapsFailedError(
        message="Failed to fetch pNode list from all bootstrap nodes",
        attempts=["10.0.0.0:6000: refused", "10.0.0.1:6000: Request timeout after 8.0s"],
    )
