"""
pRPC Client - JSON-RPC 2.0 over HTTP for pNodes.

One request, one reply, one deadline:
- Every call gets a fresh, monotonically increasing request id
- The per-call timeout cancels the request and closes its connection
- Failures surface as ConnectFailureError, RequestTimeoutError,
  ProtocolError or ParseError; no partial results are returned
"""

import asyncio
import json
import logging
import time
from typing import Any, Optional

import aiohttp

from node_sources.config import DEFAULT_PRPC_PORT
from node_sources.exceptions import (
    ConnectFailureError,
    NodeSourceError,
    ParseError,
    ProtocolError,
    RequestTimeoutError,
)
from node_sources.models import (
    NodeStats,
    RosterEntry,
    RpcRequest,
)


logger = logging.getLogger(__name__)


class PRPCClient:
    """
    Thin async client for the pNode pRPC endpoint.

    A single client (and its aiohttp session) is shared by discovery and
    the stats fetcher. Connections are never kept alive: rosters hold
    thousands of distinct hosts and a timed-out socket must not linger
    in a pool.

    Usage:
        async with PRPCClient() as client:
            version = await client.get_version("173.212.203.145")
            stats = await client.get_stats("173.212.203.145", timeout=3.0)
    """

    DEFAULT_TIMEOUT = 8.0
    RPC_PATH = "/rpc"
    CONNECTION_LIMIT = 100

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._request_id = 0

    @property
    def last_request_id(self) -> int:
        """Id of the most recently issued request."""
        return self._request_id

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(
                    limit=self.CONNECTION_LIMIT,
                    force_close=True,
                ),
                headers={
                    "Accept": "application/json",
                    "User-Agent": "pnode-monitor/1.0",
                },
            )
            self._owns_session = True
        return self._session

    async def send(
        self,
        host: str,
        port: int = DEFAULT_PRPC_PORT,
        method: str = "get-version",
        params: Optional[list[Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Issue one JSON-RPC call and return its ``result`` member.

        Args:
            host: Node IP or hostname
            port: pRPC port
            method: RPC method name
            params: Positional params, omitted from the envelope when None
            timeout: Per-call deadline in seconds (defaults to client timeout)

        Raises:
            ConnectFailureError, RequestTimeoutError, ProtocolError, ParseError
        """
        deadline = timeout if timeout is not None else self._timeout
        request = RpcRequest(method=method, id=self._next_request_id(), params=params)
        url = f"http://{host}:{port}{self.RPC_PATH}"
        session = await self._get_session()

        start_time = time.monotonic()
        try:
            async with session.post(
                url,
                json=request.to_dict(),
                timeout=aiohttp.ClientTimeout(total=deadline),
            ) as response:
                status = response.status
                body = await response.text()

        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                message=f"Request timeout after {deadline}s",
                host=host,
                port=port,
                method=method,
                timeout_seconds=deadline,
                original_error=e,
            )
        except aiohttp.ClientConnectionError as e:
            raise ConnectFailureError(
                message=f"Connection failed: {e}",
                host=host,
                port=port,
                method=method,
                original_error=e,
            )
        except aiohttp.ClientError as e:
            raise ParseError(
                message=f"Unreadable response: {e}",
                host=host,
                original_error=e,
            )

        latency_ms = (time.monotonic() - start_time) * 1000
        logger.debug(f"[{host}:{port}] {method} #{request.id} completed in {latency_ms:.1f}ms")

        return self._decode(host, request, status, body)

    def _decode(self, host: str, request: RpcRequest, status: int, body: str) -> Any:
        """Validate the reply envelope and extract its result."""
        if status >= 400:
            raise ParseError(
                message=f"HTTP {status}",
                host=host,
                status_code=status,
                response_body=body,
            )

        try:
            envelope = json.loads(body)
        except ValueError as e:
            raise ParseError(
                message="Failed to parse response",
                host=host,
                status_code=status,
                response_body=body,
                original_error=e,
            )

        if not isinstance(envelope, dict):
            raise ParseError(
                message="Response is not a JSON-RPC object",
                host=host,
                status_code=status,
                response_body=body,
            )

        reply_id = envelope.get("id")
        if reply_id is not None and str(reply_id) != str(request.id):
            raise ParseError(
                message=f"Response id {reply_id} does not match request id {request.id}",
                host=host,
                status_code=status,
                response_body=body,
            )

        error = envelope.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            rpc_message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProtocolError(
                message=f"RPC Error {code}: {rpc_message}",
                host=host,
                code=code,
                rpc_message=rpc_message,
                method=request.method,
            )

        if "result" not in envelope or envelope["result"] is None:
            raise ParseError(
                message="No result in RPC response",
                host=host,
                status_code=status,
                response_body=body,
            )

        return envelope["result"]

    # --------------------------------------------------------
    # TYPED METHODS
    # --------------------------------------------------------

    async def get_version(
        self,
        host: str,
        port: int = DEFAULT_PRPC_PORT,
        timeout: Optional[float] = None,
    ) -> str:
        """Return the node software version."""
        result = await self.send(host, port, "get-version", timeout=timeout)
        if not isinstance(result, dict) or "version" not in result:
            raise ParseError(
                message="get-version result has no version",
                host=host,
                response_body=str(result),
                field_name="version",
            )
        return str(result["version"])

    async def get_stats(
        self,
        host: str,
        port: int = DEFAULT_PRPC_PORT,
        timeout: Optional[float] = None,
    ) -> NodeStats:
        """Return decoded node stats."""
        result = await self.send(host, port, "get-stats", timeout=timeout)
        try:
            return NodeStats.from_wire(result)
        except ParseError as e:
            e.host = host
            raise

    async def get_pods_with_stats(
        self,
        host: str,
        port: int = DEFAULT_PRPC_PORT,
        timeout: Optional[float] = None,
    ) -> list[RosterEntry]:
        """Return the roster as seen by ``host``."""
        result = await self.send(host, port, "get-pods-with-stats", timeout=timeout)
        return self._decode_pods(host, result)

    async def get_pods(
        self,
        host: str,
        port: int = DEFAULT_PRPC_PORT,
        timeout: Optional[float] = None,
    ) -> list[RosterEntry]:
        """Return the plain pod list (no storage/uptime fields)."""
        result = await self.send(host, port, "get-pods", timeout=timeout)
        return self._decode_pods(host, result)

    async def is_healthy(
        self,
        host: str,
        port: int = DEFAULT_PRPC_PORT,
        timeout: Optional[float] = None,
    ) -> bool:
        """True if the node answers ``get-version``."""
        try:
            await self.get_version(host, port, timeout=timeout)
            return True
        except NodeSourceError as e:
            logger.debug(f"[{host}:{port}] Health probe failed: {e}")
            return False

    def _decode_pods(self, host: str, result: Any) -> list[RosterEntry]:
        """Decode a pods result, skipping entries that are not valid pods."""
        if not isinstance(result, dict):
            raise ParseError(
                message="pods result is not an object",
                host=host,
                response_body=str(result),
            )
        pods = result.get("pods") or []
        if not isinstance(pods, list):
            raise ParseError(
                message="pods member is not a list",
                host=host,
                response_body=str(pods),
                field_name="pods",
            )

        roster: list[RosterEntry] = []
        for raw in pods:
            try:
                roster.append(RosterEntry.from_wire(raw))
            except ParseError as e:
                logger.warning(f"[{host}] Skipping malformed pod entry: {e.message}")
        return roster

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "PRPCClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(timeout={self._timeout}, requests={self._request_id})>"
