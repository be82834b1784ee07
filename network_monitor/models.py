"""
Network Monitor Data Models.

============================================================
PURPOSE
============================================================
Point-in-time network state and everything derived from it.

- Snapshot is an immutable value; each cycle builds a new one
- Online/offline is derived from last-seen age, never stored
- Per-node stats are only reachable through the roster

============================================================
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from node_health.models import HealthScore
from node_sources.models import GeoLocation, NodeStats, RosterEntry, extract_ip


def to_millis(epoch_seconds: float) -> int:
    return int(epoch_seconds * 1000)


# ============================================================
# ENUMS
# ============================================================

class EventType(str, Enum):
    """Change event types."""
    BOOTSTRAP = "bootstrap"
    STATUS_CHANGED = "status_changed"
    VERSION_CHANGED = "version_changed"
    DATA_SERVED = "data_served"
    HIGH_TRAFFIC = "high_traffic"
    NODE_JOINED = "node_joined"
    NODE_LEFT = "node_left"


class AlertType(str, Enum):
    """Alert types."""
    NODE_OFFLINE = "node_offline"
    NODE_ONLINE = "node_online"
    HEALTH_DROP = "health_drop"
    HIGH_CPU = "high_cpu"
    HIGH_RAM = "high_ram"
    LOW_STORAGE = "low_storage"
    VERSION_OUTDATED = "version_outdated"
    DATA_MILESTONE = "data_milestone"
    NETWORK_HEALTH = "network_health"


class AlertSeverity(str, Enum):
    """Alert severity."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"
    SUCCESS = "success"


# ============================================================
# SNAPSHOT
# ============================================================

@dataclass(frozen=True)
class Snapshot:
    """
    Consistent view of the network at one instant.

    Build with ``Snapshot.create``; stats for addresses outside the
    roster are dropped there.
    """

    timestamp: float
    roster: Tuple[RosterEntry, ...]
    stats: Mapping[str, Optional[NodeStats]]
    locations: Mapping[str, GeoLocation] = field(default_factory=lambda: MappingProxyType({}))
    index: Mapping[str, RosterEntry] = field(default_factory=lambda: MappingProxyType({}), repr=False, compare=False)

    @classmethod
    def create(
        cls,
        roster: Iterable[RosterEntry],
        stats: Optional[Mapping[str, Optional[NodeStats]]] = None,
        locations: Optional[Mapping[str, GeoLocation]] = None,
        timestamp: Optional[float] = None,
    ) -> "Snapshot":
        roster = tuple(roster)
        index = {entry.address: entry for entry in roster}
        stats = stats or {}
        return cls(
            timestamp=time.time() if timestamp is None else timestamp,
            roster=roster,
            stats=MappingProxyType({a: s for a, s in stats.items() if a in index}),
            locations=MappingProxyType(dict(locations or {})),
            index=MappingProxyType(index),
        )

    @property
    def addresses(self) -> List[str]:
        return [entry.address for entry in self.roster]

    def __len__(self) -> int:
        return len(self.roster)

    def __contains__(self, address: object) -> bool:
        return address in self.index

    def entry(self, address: str) -> Optional[RosterEntry]:
        return self.index.get(address)

    def stats_for(self, address: str) -> Optional[NodeStats]:
        """Stats are trusted only while the address is in this roster."""
        if address not in self.index:
            return None
        return self.stats.get(address)

    def location_for(self, address: str) -> Optional[GeoLocation]:
        return self.locations.get(extract_ip(address))

    def is_online(self, address: str) -> bool:
        entry = self.index.get(address)
        return entry is not None and entry.is_online(self.timestamp)

    def reporting_count(self) -> int:
        return sum(1 for entry in self.roster if self.stats.get(entry.address) is not None)


# ============================================================
# NETWORK OVERVIEW
# ============================================================

@dataclass
class NetworkOverview:
    """Aggregate statistics over one roster."""

    total_pnodes: int = 0
    online_pnodes: int = 0
    offline_pnodes: int = 0
    public_pnodes: int = 0
    private_pnodes: int = 0

    total_storage_committed: int = 0
    total_storage_used: int = 0

    total_ram: int = 0
    total_ram_used: int = 0
    avg_cpu_percent: float = 0.0
    avg_ram_percent: float = 0.0
    avg_uptime: float = 0.0

    total_pages: int = 0
    total_bytes: int = 0
    total_packets_received: int = 0
    total_packets_sent: int = 0
    total_active_streams: int = 0

    version_distribution: Dict[str, int] = field(default_factory=dict)
    location_distribution: Dict[str, int] = field(default_factory=dict)

    nodes_reporting: int = 0

    @property
    def total_storage(self) -> int:
        return self.total_storage_used

    @property
    def online_percent(self) -> float:
        if self.total_pnodes == 0:
            return 0.0
        return self.online_pnodes / self.total_pnodes * 100

    @property
    def latest_version(self) -> Optional[str]:
        """Most common version; ties go to the first seen."""
        if not self.version_distribution:
            return None
        return max(self.version_distribution, key=self.version_distribution.get)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_pnodes": self.total_pnodes,
            "online_pnodes": self.online_pnodes,
            "offline_pnodes": self.offline_pnodes,
            "public_pnodes": self.public_pnodes,
            "private_pnodes": self.private_pnodes,
            "total_storage": self.total_storage,
            "total_storage_committed": self.total_storage_committed,
            "total_storage_used": self.total_storage_used,
            "total_ram": self.total_ram,
            "total_ram_used": self.total_ram_used,
            "avg_cpu_percent": self.avg_cpu_percent,
            "avg_ram_percent": self.avg_ram_percent,
            "avg_uptime": self.avg_uptime,
            "total_pages": self.total_pages,
            "total_bytes": self.total_bytes,
            "total_packets_received": self.total_packets_received,
            "total_packets_sent": self.total_packets_sent,
            "total_active_streams": self.total_active_streams,
            "version_distribution": dict(self.version_distribution),
            "location_distribution": dict(self.location_distribution),
            "nodes_reporting": self.nodes_reporting,
        }


# ============================================================
# CHANGE EVENTS
# ============================================================

@dataclass(frozen=True)
class ChangeEvent:
    """A discrete change between two consecutive snapshots."""

    event_id: str
    type: EventType
    timestamp: float
    address: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.event_id,
            "type": self.type.value,
            "timestamp": to_millis(self.timestamp),
            "address": self.address,
            "payload": dict(self.payload),
        }


# ============================================================
# NODE VIEW
# ============================================================

@dataclass
class NodeView:
    """
    One roster entry joined with everything derived about it.

    This is what the nodes endpoint returns per node.
    """

    entry: RosterEntry
    online: bool
    stats: Optional[NodeStats] = None
    health: Optional[HealthScore] = None
    location: Optional[GeoLocation] = None

    @property
    def address(self) -> str:
        return self.entry.address

    def to_dict(self) -> Dict[str, Any]:
        data = self.entry.to_dict()
        data.update({
            "online": self.online,
            "stats": self.stats.to_dict() if self.stats else None,
            "health": self.health.to_dict() if self.health else None,
            "location": self.location.to_dict() if self.location else None,
        })
        return data


# ============================================================
# ALERTS
# ============================================================

@dataclass
class Alert:
    """An alert record."""

    alert_id: str
    type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    timestamp: float
    address: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.alert_id,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "address": self.address,
            "timestamp": to_millis(self.timestamp),
            "data": dict(self.data),
        }
