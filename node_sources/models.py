"""
Node Source Models - Typed pRPC payloads.

Every reply a node can send is decoded into one of these dataclasses.
Fallbacks for optional wire fields are applied here and nowhere else.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from node_sources.exceptions import ParseError


JSONRPC_VERSION = "2.0"

# A roster entry last seen longer ago than this is offline.
ONLINE_THRESHOLD_SECONDS = 300

UNKNOWN_VERSION = "unknown"


def extract_ip(address: str) -> str:
    """Strip the port from an ``ip:port`` roster address."""
    return address.split(":")[0]


def is_online(
    last_seen_timestamp: float,
    now: Optional[float] = None,
    threshold: float = ONLINE_THRESHOLD_SECONDS,
) -> bool:
    """Derive online status from last-seen age."""
    if now is None:
        now = time.time()
    return (now - last_seen_timestamp) < threshold


def _number(
    payload: Mapping[str, Any],
    key: str,
    default: Optional[float] = None,
    required: bool = False,
) -> Optional[float]:
    """Read a numeric wire field, raising ParseError for garbage."""
    value = payload.get(key)
    if value is None:
        if required:
            raise ParseError(
                message=f"Missing required field '{key}'",
                field_name=key,
                response_body=str(dict(payload)),
            )
        return default
    if isinstance(value, bool):
        raise ParseError(
            message=f"Field '{key}' is not numeric",
            field_name=key,
            response_body=str(value),
        )
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ParseError(
            message=f"Field '{key}' is not numeric",
            field_name=key,
            response_body=str(value),
            original_error=e,
        )
    if not math.isfinite(number):
        raise ParseError(
            message=f"Field '{key}' is not finite",
            field_name=key,
            response_body=str(value),
        )
    return number


def _int(payload: Mapping[str, Any], key: str, default: int = 0, required: bool = False) -> int:
    value = _number(payload, key, None, required)
    return default if value is None else int(value)


@dataclass
class RpcRequest:
    """JSON-RPC request envelope."""
    method: str
    id: int
    params: Optional[list[Any]] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire envelope."""
        body: dict[str, Any] = {
            "jsonrpc": JSONRPC_VERSION,
            "method": self.method,
            "id": self.id,
        }
        if self.params is not None:
            body["params"] = self.params
        return body


@dataclass(frozen=True)
class NodeStats:
    """
    Reply to ``get-stats``.

    ``ram_percent`` is derived from used/total and never read from the wire.
    """
    cpu_percent: float
    ram_used: int
    ram_total: int
    disk_used: int
    disk_total: int
    uptime: int
    packets_received: int
    packets_sent: int
    active_streams: int
    file_size: int
    total_bytes: int = 0
    total_pages: int = 0
    last_updated: int = 0
    current_index: int = 0

    REQUIRED_FIELDS = (
        "cpu_percent",
        "ram_used",
        "ram_total",
        "uptime",
        "packets_received",
        "packets_sent",
        "active_streams",
        "file_size",
    )

    @property
    def ram_percent(self) -> float:
        """RAM utilization, 0 when total is unknown."""
        if self.ram_total <= 0:
            return 0.0
        return self.ram_used / self.ram_total * 100

    @classmethod
    def from_wire(cls, payload: Any) -> "NodeStats":
        """Decode a ``get-stats`` result, applying fallbacks for optional fields."""
        if not isinstance(payload, Mapping):
            raise ParseError(
                message="get-stats result is not an object",
                response_body=str(payload),
            )
        for key in cls.REQUIRED_FIELDS:
            _number(payload, key, required=True)

        file_size = _int(payload, "file_size", required=True)
        total_bytes = _int(payload, "total_bytes")

        disk_used = _number(payload, "disk_used")
        disk_total = _number(payload, "disk_total")

        return cls(
            cpu_percent=_number(payload, "cpu_percent", required=True),
            ram_used=_int(payload, "ram_used", required=True),
            ram_total=_int(payload, "ram_total", required=True),
            disk_used=int(disk_used) if disk_used is not None else file_size,
            disk_total=int(disk_total) if disk_total is not None else total_bytes,
            uptime=_int(payload, "uptime", required=True),
            packets_received=_int(payload, "packets_received", required=True),
            packets_sent=_int(payload, "packets_sent", required=True),
            active_streams=_int(payload, "active_streams", required=True),
            file_size=file_size,
            total_bytes=total_bytes,
            total_pages=_int(payload, "total_pages"),
            last_updated=_int(payload, "last_updated"),
            current_index=_int(payload, "current_index"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "cpu_percent": self.cpu_percent,
            "ram_used": self.ram_used,
            "ram_total": self.ram_total,
            "ram_percent": round(self.ram_percent, 2),
            "disk_used": self.disk_used,
            "disk_total": self.disk_total,
            "uptime": self.uptime,
            "packets_received": self.packets_received,
            "packets_sent": self.packets_sent,
            "active_streams": self.active_streams,
            "file_size": self.file_size,
            "total_bytes": self.total_bytes,
            "total_pages": self.total_pages,
            "last_updated": self.last_updated,
            "current_index": self.current_index,
        }


@dataclass(frozen=True)
class RosterEntry:
    """One pod in a bootstrap node's roster (``get-pods-with-stats``)."""
    address: str
    version: str = UNKNOWN_VERSION
    last_seen_timestamp: float = 0.0
    pubkey: Optional[str] = None
    is_public: bool = False
    rpc_port: Optional[int] = None
    storage_committed: int = 0
    storage_used: int = 0
    storage_usage_percent: float = 0.0
    uptime: int = 0

    @property
    def host(self) -> str:
        """IP portion of the address."""
        return extract_ip(self.address)

    def is_online(self, now: Optional[float] = None) -> bool:
        """Online iff last seen within the fixed threshold."""
        return is_online(self.last_seen_timestamp, now)

    @classmethod
    def from_wire(cls, payload: Any) -> "RosterEntry":
        """Decode one pod object."""
        if not isinstance(payload, Mapping):
            raise ParseError(
                message="pod entry is not an object",
                response_body=str(payload),
            )
        address = payload.get("address")
        if not address or not isinstance(address, str):
            raise ParseError(
                message="pod entry has no address",
                field_name="address",
                response_body=str(dict(payload)),
            )

        rpc_port = _number(payload, "rpc_port")
        pubkey = payload.get("pubkey")

        return cls(
            address=address,
            version=str(payload.get("version") or UNKNOWN_VERSION),
            last_seen_timestamp=_number(payload, "last_seen_timestamp", 0.0),
            pubkey=str(pubkey) if pubkey else None,
            is_public=bool(payload.get("is_public", False)),
            rpc_port=int(rpc_port) if rpc_port else None,
            storage_committed=_int(payload, "storage_committed"),
            storage_used=_int(payload, "storage_used"),
            storage_usage_percent=_number(payload, "storage_usage_percent", 0.0),
            uptime=_int(payload, "uptime"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "address": self.address,
            "pubkey": self.pubkey,
            "version": self.version,
            "last_seen_timestamp": self.last_seen_timestamp,
            "is_public": self.is_public,
            "rpc_port": self.rpc_port,
            "storage_committed": self.storage_committed,
            "storage_used": self.storage_used,
            "storage_usage_percent": self.storage_usage_percent,
            "uptime": self.uptime,
        }


@dataclass(frozen=True)
class GeoLocation:
    """Best-effort location of a node's IP."""
    country: str = "Unknown"
    region: str = "Unknown"
    city: str = "Unknown"
    latitude: float = 0.0
    longitude: float = 0.0
    timezone: str = "Unknown"

    @classmethod
    def from_lookup(cls, payload: Mapping[str, Any]) -> "GeoLocation":
        """Build from an ip-api style record."""
        return cls(
            country=payload.get("country") or "Unknown",
            region=payload.get("regionName") or "Unknown",
            city=payload.get("city") or "Unknown",
            latitude=float(payload.get("lat") or 0.0),
            longitude=float(payload.get("lon") or 0.0),
            timezone=payload.get("timezone") or "Unknown",
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "country": self.country,
            "region": self.region,
            "city": self.city,
            "ll": [self.latitude, self.longitude],
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class FetchTarget:
    """A node the fetcher should ask for stats."""
    address: str
    host: str
    port: int


@dataclass
class FetchSummary:
    """Outcome counters for one ``fetch_all`` call."""
    requested: int = 0
    succeeded: int = 0
    failed: int = 0
    batches: int = 0
    duration_ms: float = 0.0
    failures: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "requested": self.requested,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "batches": self.batches,
            "duration_ms": round(self.duration_ms, 2),
        }
