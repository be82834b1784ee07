"""
Snapshot Aggregator.

============================================================
PURPOSE
============================================================
Reduce one roster (plus whatever stats came back) to network-wide
counts, sums, averages and distributions.

RULES:
- Single pass over the roster
- Averages of CPU/RAM use only nodes that returned stats
- Average uptime uses every online node, stats or not
- Public/private split counts online nodes only
- Distributions keep first-occurrence order
- Percentages are rounded to 2 decimals on the way out, never before

============================================================
"""

import logging
import time
from typing import Iterable, Mapping, Optional

from node_sources.models import UNKNOWN_VERSION, GeoLocation, NodeStats, RosterEntry

from .models import NetworkOverview, Snapshot


logger = logging.getLogger(__name__)


UNKNOWN_COUNTRY = "Unknown"


def aggregate(
    roster: Iterable[RosterEntry],
    stats: Mapping[str, Optional[NodeStats]],
    now: Optional[float] = None,
    locations: Optional[Mapping[str, GeoLocation]] = None,
) -> NetworkOverview:
    """
    Build a NetworkOverview.

    Args:
        roster: Current roster
        stats: address -> stats (None or missing means "did not report")
        now: Reference time in epoch seconds
        locations: host -> location

    Returns:
        NetworkOverview
    """
    if now is None:
        now = time.time()
    locations = locations or {}

    overview = NetworkOverview()

    cpu_sum = 0.0
    uptime_sum = 0.0

    for entry in roster:
        overview.total_pnodes += 1

        online = entry.is_online(now)
        if online:
            overview.online_pnodes += 1
            uptime_sum += entry.uptime or 0
            if entry.is_public:
                overview.public_pnodes += 1
            else:
                overview.private_pnodes += 1

        overview.total_storage_committed += entry.storage_committed or 0
        overview.total_storage_used += entry.storage_used or 0

        version = entry.version or UNKNOWN_VERSION
        overview.version_distribution[version] = overview.version_distribution.get(version, 0) + 1

        location = locations.get(entry.host)
        country = location.country if location and location.country else UNKNOWN_COUNTRY
        overview.location_distribution[country] = overview.location_distribution.get(country, 0) + 1

        node_stats = stats.get(entry.address)
        if node_stats is None:
            continue

        overview.nodes_reporting += 1
        cpu_sum += node_stats.cpu_percent
        overview.total_ram += node_stats.ram_total
        overview.total_ram_used += node_stats.ram_used
        overview.total_packets_received += node_stats.packets_received
        overview.total_packets_sent += node_stats.packets_sent
        overview.total_active_streams += node_stats.active_streams
        overview.total_pages += node_stats.total_pages
        overview.total_bytes += node_stats.total_bytes

    overview.offline_pnodes = overview.total_pnodes - overview.online_pnodes

    if overview.nodes_reporting:
        overview.avg_cpu_percent = round(cpu_sum / overview.nodes_reporting, 2)
    if overview.total_ram > 0:
        overview.avg_ram_percent = round(overview.total_ram_used / overview.total_ram * 100, 2)
    if overview.online_pnodes:
        overview.avg_uptime = uptime_sum / overview.online_pnodes

    logger.debug(
        f"Aggregated {overview.total_pnodes} nodes: {overview.online_pnodes} online, "
        f"{overview.nodes_reporting} reporting"
    )
    return overview


def aggregate_snapshot(snapshot: Snapshot) -> NetworkOverview:
    """Aggregate a snapshot at its own timestamp."""
    return aggregate(
        snapshot.roster,
        snapshot.stats,
        now=snapshot.timestamp,
        locations=snapshot.locations,
    )
