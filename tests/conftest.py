"""
Shared fixtures for the pNode monitor tests.
"""

import time
from typing import Any, Dict

import pytest

from node_sources.models import NodeStats, RosterEntry


NOW = 1_700_000_000.0


def build_entry(
    address: str = "10.0.0.1:9001",
    age: float = 10,
    now: float = NOW,
    **overrides: Any,
) -> RosterEntry:
    fields: Dict[str, Any] = {
        "address": address,
        "version": "0.7.0",
        "last_seen_timestamp": now - age,
        "pubkey": f"pk-{address}",
        "is_public": True,
        "rpc_port": 6000,
        "storage_committed": 1000,
        "storage_used": 500,
        "storage_usage_percent": 50.0,
        "uptime": 86400,
    }
    fields.update(overrides)
    return RosterEntry(**fields)


def build_stats(**overrides: Any) -> NodeStats:
    fields: Dict[str, Any] = {
        "cpu_percent": 20.0,
        "ram_used": 4_000,
        "ram_total": 10_000,
        "disk_used": 100,
        "disk_total": 1000,
        "uptime": 86400,
        "packets_received": 100,
        "packets_sent": 200,
        "active_streams": 5,
        "file_size": 100,
        "total_bytes": 1_000_000,
        "total_pages": 10,
    }
    fields.update(overrides)
    return NodeStats(**fields)


def stats_payload(**overrides: Any) -> Dict[str, Any]:
    """A valid get-stats result as a node would send it."""
    payload: Dict[str, Any] = {
        "cpu_percent": 12.5,
        "ram_used": 2_000_000,
        "ram_total": 8_000_000,
        "uptime": 3600,
        "packets_received": 10,
        "packets_sent": 20,
        "active_streams": 3,
        "file_size": 5_000,
        "total_bytes": 9_000,
        "total_pages": 4,
        "last_updated": int(time.time()),
        "current_index": 7,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def now() -> float:
    return NOW


@pytest.fixture
def make_entry():
    return build_entry


@pytest.fixture
def make_stats():
    return build_stats


@pytest.fixture
def make_stats_payload():
    return stats_payload
