"""
Bootstrap Discovery - Roster lookup with ordered fallback.

Candidates are tried strictly in configured order, once each, until one
returns a non-empty roster. There is no load balancing: the first healthy
bootstrap node always wins, which keeps discovery deterministic.
"""

import logging
from typing import Optional, Sequence

from node_sources.client import PRPCClient
from node_sources.config import DEFAULT_PRPC_PORT
from node_sources.exceptions import AllBootstrapsFailedError, NodeSourceError
from node_sources.models import RosterEntry


logger = logging.getLogger(__name__)


def parse_candidate(candidate: str, default_port: int = DEFAULT_PRPC_PORT) -> tuple[str, int]:
    """Split ``host`` or ``host:port`` into a (host, port) pair."""
    host, sep, port = candidate.strip().rpartition(":")
    if sep and port.isdigit():
        return host, int(port)
    return candidate.strip(), default_port


class BootstrapDiscovery:
    """
    Resolves the network roster from an ordered list of bootstrap nodes.

    Usage:
        discovery = BootstrapDiscovery(client, ["173.212.203.145", "161.97.97.41"])
        roster = await discovery.discover()
    """

    def __init__(
        self,
        client: PRPCClient,
        candidates: Sequence[str],
        port: int = DEFAULT_PRPC_PORT,
        timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._candidates = [parse_candidate(c, port) for c in candidates]
        self._timeout = timeout

        self._last_source: Optional[str] = None
        self._last_attempts: list[str] = []

    @property
    def candidates(self) -> list[tuple[str, int]]:
        """Ordered (host, port) candidates."""
        return list(self._candidates)

    @property
    def last_source(self) -> Optional[str]:
        """``host:port`` that answered the most recent successful discovery."""
        return self._last_source

    @property
    def last_attempts(self) -> list[str]:
        """Diagnostics of candidates skipped during the most recent discovery."""
        return list(self._last_attempts)

    def worst_case_seconds(self) -> float:
        """Upper bound on one discovery attempt."""
        return len(self._candidates) * (self._timeout or self._client.DEFAULT_TIMEOUT)

    async def discover(self) -> list[RosterEntry]:
        """
        Return the first non-empty roster.

        Raises:
            AllBootstrapsFailedError: every candidate errored or was empty
        """
        attempts: list[str] = []

        for host, port in self._candidates:
            label = f"{host}:{port}"
            logger.debug(f"Trying bootstrap node: {label}")
            try:
                roster = await self._client.get_pods_with_stats(host, port, timeout=self._timeout)
            except Exception as e:
                reason = e.message if isinstance(e, NodeSourceError) else str(e)
                logger.warning(f"[{label}] Bootstrap failed: {reason}")
                attempts.append(f"{label}: {reason}")
                continue

            if not roster:
                logger.warning(f"[{label}] Bootstrap returned an empty roster")
                attempts.append(f"{label}: empty roster")
                continue

            if attempts:
                logger.info(f"Fallback: roster from {label} after {len(attempts)} failed candidate(s)")
            logger.info(f"Got {len(roster)} pods from {label}")

            self._last_source = label
            self._last_attempts = attempts
            return roster

        self._last_source = None
        self._last_attempts = attempts
        logger.error(f"All bootstrap nodes failed: {attempts}")

        raise AllBootstrapsFailedError(
            message="Failed to fetch pNode list from all bootstrap nodes",
            attempts=attempts,
        )
