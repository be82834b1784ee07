"""
Batched Stats Fetcher - Bounded-concurrency ``get-stats`` fan-out.

Targets are split into fixed-size batches that run strictly one after
another; calls inside a batch run concurrently and the whole batch settles
before the next one starts. At most ``batch_size`` connections are ever in
flight, and a failing node resolves to None without touching its siblings.
"""

import asyncio
import logging
import math
import time
from typing import Iterable, Optional, Sequence

from node_sources.client import PRPCClient
from node_sources.exceptions import NodeSourceError
from node_sources.models import FetchSummary, FetchTarget, NodeStats, RosterEntry


logger = logging.getLogger(__name__)


def select_targets(roster: Iterable[RosterEntry], now: Optional[float] = None) -> list[FetchTarget]:
    """Online public nodes that advertise an RPC port."""
    targets = []
    for entry in roster:
        if entry.is_online(now) and entry.is_public and entry.rpc_port:
            targets.append(FetchTarget(address=entry.address, host=entry.host, port=entry.rpc_port))
    return targets


class BatchedStatsFetcher:
    """
    Fetches per-node stats in sequential batches.

    Usage:
        fetcher = BatchedStatsFetcher(client, batch_size=20, timeout=3.0)
        stats = await fetcher.fetch_all(select_targets(roster))
        reporting = sum(1 for s in stats.values() if s is not None)
    """

    BATCH_SIZE = 20
    DEFAULT_TIMEOUT = 3.0

    def __init__(
        self,
        client: PRPCClient,
        batch_size: int = BATCH_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._client = client
        self._batch_size = batch_size
        self._timeout = timeout
        self._last_summary = FetchSummary()

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def last_summary(self) -> FetchSummary:
        """Counters from the most recent fetch_all call."""
        return self._last_summary

    def worst_case_seconds(self, target_count: int, timeout: Optional[float] = None) -> float:
        """ceil(N / batch_size) x per-call timeout."""
        return math.ceil(target_count / self._batch_size) * (timeout or self._timeout)

    async def fetch_all(
        self,
        targets: Sequence[FetchTarget],
        timeout: Optional[float] = None,
    ) -> dict[str, Optional[NodeStats]]:
        """
        Fetch stats for every target.

        Returns:
            Mapping with one entry per target address; None marks a node
            that failed (timeout, refused connection, malformed reply)
        """
        deadline = timeout if timeout is not None else self._timeout
        summary = FetchSummary(requested=len(targets))
        results: dict[str, Optional[NodeStats]] = {}
        start_time = time.monotonic()

        for offset in range(0, len(targets), self._batch_size):
            batch = targets[offset:offset + self._batch_size]
            summary.batches += 1

            outcomes = await asyncio.gather(
                *(self._fetch_one(target, deadline, summary) for target in batch),
                return_exceptions=True,
            )

            for target, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    logger.warning(f"[{target.address}] Unexpected stats failure: {outcome!r}")
                    summary.failures[target.address] = repr(outcome)
                    outcome = None

                results[target.address] = outcome

        summary.succeeded = sum(1 for s in results.values() if s is not None)
        summary.failed = len(results) - summary.succeeded
        summary.duration_ms = (time.monotonic() - start_time) * 1000
        self._last_summary = summary

        logger.info(
            f"Stats: {summary.succeeded}/{summary.requested} nodes reported "
            f"in {summary.batches} batch(es), {summary.duration_ms:.0f}ms"
        )
        return results

    async def _fetch_one(
        self,
        target: FetchTarget,
        timeout: float,
        summary: FetchSummary,
    ) -> Optional[NodeStats]:
        """Fetch one node; any node-level failure becomes None."""
        try:
            return await self._client.get_stats(target.host, target.port, timeout=timeout)
        except NodeSourceError as e:
            logger.debug(f"[{target.address}] Stats unavailable: {e}")
            summary.failures[target.address] = e.message
            return None
