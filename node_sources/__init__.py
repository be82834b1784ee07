"""
Node Sources Package - pRPC access layer for pNodes.

Provides fail-safe access to a large set of independently operated nodes.

Features:
- JSON-RPC 2.0 over HTTP with a hard per-call deadline
- Roster discovery with ordered bootstrap fallback
- Bounded-concurrency stats fetching (sequential batches of 20)
- Best-effort batched IP geolocation
- Typed wire models with defaults applied at the boundary

Quick Start:
    from node_sources import (
        PRPCClient,
        BootstrapDiscovery,
        BatchedStatsFetcher,
        select_targets,
    )

    async def poll():
        async with PRPCClient() as client:
            discovery = BootstrapDiscovery(client, ["173.212.203.145", "161.97.97.41"])
            roster = await discovery.discover()

            fetcher = BatchedStatsFetcher(client)
            stats = await fetcher.fetch_all(select_targets(roster))

            print(f"{fetcher.last_summary.succeeded} of {len(roster)} nodes reporting")
"""

from node_sources.client import PRPCClient
from node_sources.config import (
    DEFAULT_BOOTSTRAP_NODES,
    DEFAULT_PRPC_PORT,
    NetworkConfig,
    get_config,
    set_config,
)
from node_sources.discovery import BootstrapDiscovery, parse_candidate
from node_sources.exceptions import (
    AllBootstrapsFailedError,
    ConfigurationError,
    ConnectFailureError,
    NodeSourceError,
    ParseError,
    ProtocolError,
    RequestTimeoutError,
    TransportError,
)
from node_sources.fetcher import BatchedStatsFetcher, select_targets
from node_sources.geolocation import GeoLocator
from node_sources.models import (
    ONLINE_THRESHOLD_SECONDS,
    FetchSummary,
    FetchTarget,
    GeoLocation,
    NodeStats,
    RosterEntry,
    RpcRequest,
    extract_ip,
    is_online,
)


__version__ = "1.0.0"

__all__ = [
    # Transport
    "PRPCClient",

    # Discovery / fetching
    "BootstrapDiscovery",
    "parse_candidate",
    "BatchedStatsFetcher",
    "select_targets",
    "GeoLocator",

    # Models
    "ONLINE_THRESHOLD_SECONDS",
    "RosterEntry",
    "NodeStats",
    "GeoLocation",
    "FetchTarget",
    "FetchSummary",
    "RpcRequest",
    "extract_ip",
    "is_online",

    # Exceptions
    "NodeSourceError",
    "TransportError",
    "ConnectFailureError",
    "RequestTimeoutError",
    "ProtocolError",
    "ParseError",
    "AllBootstrapsFailedError",
    "ConfigurationError",

    # Config
    "NetworkConfig",
    "DEFAULT_BOOTSTRAP_NODES",
    "DEFAULT_PRPC_PORT",
    "get_config",
    "set_config",
]
