"""
GeoLocator - Best-effort IP geolocation.

Lookups go to an ip-api compatible ``/batch`` endpoint, 100 addresses per
POST. Results are cached for the life of the process. Nothing here ever
raises into a poll cycle: a failed batch or an unknown address is simply
absent from the returned mapping.
"""

import asyncio
import logging
from typing import Iterable, Optional

import aiohttp

from node_sources.config import DEFAULT_GEOLOCATION_URL
from node_sources.models import GeoLocation


logger = logging.getLogger(__name__)


LOOKUP_FIELDS = "status,query,country,regionName,city,lat,lon,timezone"


class GeoLocator:
    """
    Batched, cached IP to location resolver.

    Usage:
        locator = GeoLocator()
        locations = await locator.locate(["173.212.203.145", "161.97.97.41"])
        country = locations.get("161.97.97.41", GeoLocation()).country
    """

    BATCH_SIZE = 100
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        url: str = DEFAULT_GEOLOCATION_URL,
        timeout: float = DEFAULT_TIMEOUT,
        batch_size: int = BATCH_SIZE,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._batch_size = batch_size
        self._session = session
        self._owns_session = session is None
        self._cache: dict[str, GeoLocation] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def cached(self, host: str) -> Optional[GeoLocation]:
        return self._cache.get(host)

    def clear_cache(self) -> None:
        self._cache.clear()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Content-Type": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def locate(self, hosts: Iterable[str]) -> dict[str, GeoLocation]:
        """
        Resolve every host that can be resolved.

        Args:
            hosts: IP addresses (duplicates allowed)

        Returns:
            Mapping of host -> GeoLocation for the hosts that resolved
        """
        results: dict[str, GeoLocation] = {}
        pending: list[str] = []

        for host in dict.fromkeys(hosts):
            location = self._cache.get(host)
            if location is not None:
                results[host] = location
            else:
                pending.append(host)

        if not pending:
            return results

        for offset in range(0, len(pending), self._batch_size):
            batch = pending[offset:offset + self._batch_size]
            resolved = await self._lookup_batch(batch)
            self._cache.update(resolved)
            results.update(resolved)

        logger.debug(
            f"Geolocation: {len(results)} resolved, "
            f"{len(pending)} looked up, cache size {len(self._cache)}"
        )
        return results

    async def _lookup_batch(self, batch: list[str]) -> dict[str, GeoLocation]:
        """POST one batch; any failure yields an empty mapping."""
        try:
            session = await self._get_session()
            async with session.post(
                self._url,
                params={"fields": LOOKUP_FIELDS},
                json=batch,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                if response.status != 200:
                    logger.warning(f"Geolocation batch failed: HTTP {response.status}")
                    return {}
                data = await response.json(content_type=None)

        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"Geolocation batch of {len(batch)} failed: {e!r}")
            return {}

        if not isinstance(data, list):
            logger.warning("Geolocation batch returned a non-list body")
            return {}

        resolved: dict[str, GeoLocation] = {}
        for item in data:
            if not isinstance(item, dict) or item.get("status") != "success":
                continue
            query = item.get("query")
            if not query:
                continue
            try:
                resolved[query] = GeoLocation.from_lookup(item)
            except (TypeError, ValueError):
                logger.debug(f"[{query}] Ignoring malformed geolocation record")
        return resolved

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "GeoLocator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
