"""
Network Service.

============================================================
RESPONSIBILITY
============================================================
The boundary consumers call. Every method returns a plain dict:
either data annotated with ``timestamp`` and ``responseTime``
(milliseconds), or a structured error object. Nothing raises
out of this layer.
============================================================
"""

import logging
import time
from typing import Any, Dict, Optional

from node_sources.exceptions import AllBootstrapsFailedError

from .poller import CycleResult, NetworkPoller


logger = logging.getLogger(__name__)


STATUS_BOOTSTRAP_FAILED = "bootstrap_failed"
STATUS_INTERNAL_ERROR = "internal_error"


def _now_ms() -> int:
    return int(time.time() * 1000)


class NetworkService:
    """
    Read-side facade over a NetworkPoller.

    Results younger than ``cache_ttl_seconds`` are served without a new
    cycle and flagged ``cached: true``.
    """

    def __init__(self, poller: NetworkPoller, cache_ttl_seconds: Optional[float] = None) -> None:
        self._poller = poller
        self._cache_ttl = (
            cache_ttl_seconds if cache_ttl_seconds is not None
            else poller.config.cache_ttl_seconds
        )

    @property
    def poller(self) -> NetworkPoller:
        return self._poller

    def _fresh_result(self) -> Optional[CycleResult]:
        result = self._poller.last_result
        if result is None or self._cache_ttl <= 0:
            return None
        if time.time() - result.timestamp < self._cache_ttl:
            return result
        return None

    async def _result(self, force: bool) -> tuple[CycleResult, bool]:
        if not force:
            cached = self._fresh_result()
            if cached is not None:
                return cached, True
        return await self._poller.run_cycle(), False

    def _error(self, error: Exception, start_time: float, message: str) -> Dict[str, Any]:
        response_time = int((time.monotonic() - start_time) * 1000)

        if isinstance(error, AllBootstrapsFailedError):
            logger.error(f"{message}: all bootstrap nodes failed")
            return {
                "error": message,
                "status": STATUS_BOOTSTRAP_FAILED,
                "details": list(error.attempts),
                "message": error.message,
                "responseTime": response_time,
                "timestamp": _now_ms(),
            }

        logger.exception(f"{message}: {error}")
        return {
            "error": message,
            "status": STATUS_INTERNAL_ERROR,
            "details": [f"{error.__class__.__name__}: {error}"],
            "message": str(error) or error.__class__.__name__,
            "responseTime": response_time,
            "timestamp": _now_ms(),
        }

    async def get_network(self, force: bool = False) -> Dict[str, Any]:
        """Network overview."""
        start_time = time.monotonic()
        try:
            result, cached = await self._result(force)
        except Exception as e:
            return self._error(e, start_time, "Failed to fetch network overview")

        return {
            "overview": result.overview.to_dict(),
            "timestamp": _now_ms(),
            "responseTime": int((time.monotonic() - start_time) * 1000),
            "cached": cached,
        }

    async def get_nodes(self, force: bool = False) -> Dict[str, Any]:
        """Roster with per-node stats, online flag, health and location."""
        start_time = time.monotonic()
        try:
            result, cached = await self._result(force)
        except Exception as e:
            return self._error(e, start_time, "Failed to fetch pNode list")

        overview = result.overview
        return {
            "nodes": [view.to_dict() for view in result.views.values()],
            "total": overview.total_pnodes,
            "online": overview.online_pnodes,
            "offline": overview.offline_pnodes,
            "public": overview.public_pnodes,
            "private": overview.private_pnodes,
            "reporting": overview.nodes_reporting,
            "timestamp": _now_ms(),
            "responseTime": int((time.monotonic() - start_time) * 1000),
            "cached": cached,
        }

    async def get_events(self, limit: int = 50) -> Dict[str, Any]:
        """Retained change events, newest first."""
        start_time = time.monotonic()
        events = self._poller.events[:max(limit, 0)]
        return {
            "events": [e.to_dict() for e in events],
            "count": len(events),
            "timestamp": _now_ms(),
            "responseTime": int((time.monotonic() - start_time) * 1000),
        }

    async def get_alerts(self, limit: int = 50) -> Dict[str, Any]:
        """Recent alerts, newest first."""
        start_time = time.monotonic()
        alerts = self._poller.alert_history.get_recent(max(limit, 0))
        return {
            "alerts": [a.to_dict() for a in alerts],
            "count": len(alerts),
            "timestamp": _now_ms(),
            "responseTime": int((time.monotonic() - start_time) * 1000),
        }

    async def refresh(self) -> Dict[str, Any]:
        """Force a cycle and return the overview."""
        return await self.get_network(force=True)
