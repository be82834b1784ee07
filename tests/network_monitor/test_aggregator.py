"""
Tests for snapshot construction and network aggregation.

============================================================
PURPOSE
============================================================
- Count identities hold for any roster
- Averages use only the nodes they are defined over
- A three-node roster aggregates, scores and diffs as expected

============================================================
"""

import pytest

from node_health import ComponentType, NodeMetrics, score_node
from node_sources.models import GeoLocation
from network_monitor.aggregator import aggregate, aggregate_snapshot
from network_monitor.differencer import diff_snapshots
from network_monitor.models import EventType, NetworkOverview, Snapshot


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def three_nodes(make_entry, make_stats):
    """Two online nodes with stats (one public, one private), one stale node."""
    roster = [
        make_entry("1.1.1.1:9001", is_public=True),
        make_entry("2.2.2.2:9001", is_public=False),
        make_entry("3.3.3.3:9001", is_public=False, age=3600, version="0.6.0", rpc_port=None),
    ]
    stats = {
        "1.1.1.1:9001": make_stats(cpu_percent=20.0, ram_used=4_000, ram_total=10_000),
        "2.2.2.2:9001": make_stats(cpu_percent=40.0, ram_used=1_000, ram_total=10_000),
    }
    return roster, stats


# ============================================================
# SNAPSHOT
# ============================================================

class TestSnapshot:
    """Tests for Snapshot."""

    def test_stats_outside_roster_are_dropped(self, make_entry, make_stats, now):
        snapshot = Snapshot.create(
            [make_entry("1.1.1.1:9001")],
            {"1.1.1.1:9001": make_stats(), "9.9.9.9:9001": make_stats()},
            timestamp=now,
        )

        assert "9.9.9.9:9001" not in snapshot.stats
        assert snapshot.stats_for("9.9.9.9:9001") is None
        assert snapshot.reporting_count() == 1

    def test_lookups(self, make_entry, now):
        snapshot = Snapshot.create(
            [make_entry("1.1.1.1:9001"), make_entry("2.2.2.2:9001", age=600)],
            locations={"1.1.1.1": GeoLocation(country="Germany")},
            timestamp=now,
        )

        assert len(snapshot) == 2
        assert "1.1.1.1:9001" in snapshot
        assert snapshot.addresses == ["1.1.1.1:9001", "2.2.2.2:9001"]
        assert snapshot.is_online("1.1.1.1:9001") is True
        assert snapshot.is_online("2.2.2.2:9001") is False
        assert snapshot.is_online("missing:1") is False
        assert snapshot.location_for("1.1.1.1:9001").country == "Germany"
        assert snapshot.location_for("2.2.2.2:9001") is None

    def test_immutable(self, make_entry, now):
        snapshot = Snapshot.create([make_entry()], timestamp=now)

        with pytest.raises(TypeError):
            snapshot.stats["x"] = None


# ============================================================
# AGGREGATION
# ============================================================

class TestAggregate:
    """Tests for aggregate."""

    def test_counts(self, three_nodes, now):
        roster, stats = three_nodes
        overview = aggregate(roster, stats, now=now)

        assert overview.total_pnodes == 3
        assert overview.online_pnodes == 2
        assert overview.offline_pnodes == 1
        assert overview.public_pnodes == 1
        assert overview.private_pnodes == 1
        assert overview.nodes_reporting == 2

    def test_identities(self, three_nodes, now):
        roster, stats = three_nodes
        overview = aggregate(roster, stats, now=now)

        assert overview.total_pnodes == overview.online_pnodes + overview.offline_pnodes
        assert overview.online_pnodes == overview.public_pnodes + overview.private_pnodes
        assert sum(overview.version_distribution.values()) == overview.total_pnodes
        assert sum(overview.location_distribution.values()) == overview.total_pnodes

    def test_averages_and_sums(self, three_nodes, now):
        roster, stats = three_nodes
        overview = aggregate(roster, stats, now=now)

        assert overview.avg_cpu_percent == 30.0
        assert overview.total_ram == 20_000
        assert overview.total_ram_used == 5_000
        assert overview.avg_ram_percent == 25.0
        assert overview.avg_uptime == 86400
        assert overview.total_bytes == 2_000_000
        assert overview.total_active_streams == 10
        assert overview.total_storage_committed == 3000
        assert overview.total_storage == 1500

    def test_distributions(self, three_nodes, now):
        roster, stats = three_nodes
        overview = aggregate(
            roster, stats, now=now,
            locations={"1.1.1.1": GeoLocation(country="Germany")},
        )

        assert overview.version_distribution == {"0.7.0": 2, "0.6.0": 1}
        assert overview.location_distribution == {"Germany": 1, "Unknown": 2}
        assert overview.latest_version == "0.7.0"

    def test_missing_stats_do_not_count(self, three_nodes, now):
        roster, _ = three_nodes
        overview = aggregate(roster, {"1.1.1.1:9001": None}, now=now)

        assert overview.nodes_reporting == 0
        assert overview.avg_cpu_percent == 0.0
        assert overview.avg_ram_percent == 0.0
        assert overview.avg_uptime == 86400

    def test_empty_roster(self, now):
        overview = aggregate([], {}, now=now)

        assert overview.total_pnodes == 0
        assert overview.online_percent == 0.0
        assert overview.latest_version is None

    def test_online_percent(self, three_nodes, now):
        roster, stats = three_nodes
        overview = aggregate(roster, stats, now=now)

        assert overview.online_percent == pytest.approx(200 / 3)

    def test_to_dict(self):
        data = NetworkOverview(total_pnodes=1, total_storage_used=42).to_dict()

        assert data["total_storage"] == 42
        assert data["version_distribution"] == {}


# ============================================================
# END TO END
# ============================================================

class TestThreeNodeNetwork:
    """A three node roster through aggregation, scoring and diffing."""

    def test_end_to_end(self, make_entry, make_stats, now):
        roster = [
            make_entry("1.1.1.1:9001", is_public=True),
            make_entry("2.2.2.2:9001", is_public=False),
            make_entry("3.3.3.3:9001", is_public=False, age=3600),
        ]
        stats = {
            "1.1.1.1:9001": make_stats(),
            "2.2.2.2:9001": make_stats(),
        }
        snapshot = Snapshot.create(roster, stats, timestamp=now)

        overview = aggregate_snapshot(snapshot)
        assert (
            overview.total_pnodes,
            overview.online_pnodes,
            overview.offline_pnodes,
            overview.public_pnodes,
            overview.private_pnodes,
        ) == (3, 2, 1, 1, 1)

        offline = roster[2]
        health = score_node(NodeMetrics.from_node(offline, snapshot.stats_for(offline.address), now))
        assert health.get_component_score(ComponentType.AVAILABILITY) == 0

        events = diff_snapshots(None, snapshot)
        assert len(events) == 1
        assert events[0].type == EventType.BOOTSTRAP
        assert events[0].payload["total"] == 3
        assert events[0].payload["online"] == 2
