"""
Snapshot Differencer.

============================================================
PURPOSE
============================================================
Turn two consecutive snapshots into discrete change events.

PRINCIPLES:
- First observation yields one bootstrap summary, not per-node noise
- Threshold events are edge-triggered
- Missing stats on either side suppress stats-derived events for
  that node only; nothing here raises on partial data

============================================================
"""

import logging
from collections import deque
from typing import Deque, List, Optional
from uuid import uuid4

from node_sources.models import UNKNOWN_VERSION

from .models import ChangeEvent, EventType, Snapshot


logger = logging.getLogger(__name__)


DATA_SERVED_THRESHOLD_BYTES = 100 * 1024 * 1024
HIGH_TRAFFIC_STREAMS = 50
TOP_CONTRIBUTORS = 3
DEFAULT_RETENTION = 50


def _event(
    event_type: EventType,
    timestamp: float,
    address: Optional[str] = None,
    **payload,
) -> ChangeEvent:
    return ChangeEvent(
        event_id=f"{event_type.value}-{uuid4().hex[:12]}",
        type=event_type,
        timestamp=timestamp,
        address=address,
        payload=payload,
    )


def _bootstrap_event(current: Snapshot) -> ChangeEvent:
    online = 0
    public = 0
    committed = 0
    bytes_served = 0
    contributors = []

    for entry in current.roster:
        is_online = entry.is_online(current.timestamp)
        online += is_online
        public += is_online and entry.is_public
        committed += entry.storage_committed or 0

        stats = current.stats_for(entry.address)
        if stats is None:
            continue
        bytes_served += stats.total_bytes
        if is_online and stats.total_bytes > 0:
            contributors.append((entry.address, stats.total_bytes))

    contributors.sort(key=lambda item: item[1], reverse=True)

    return _event(
        EventType.BOOTSTRAP,
        current.timestamp,
        total=len(current.roster),
        online=online,
        public=public,
        storage_committed=committed,
        bytes_served=bytes_served,
        top_contributors=[
            {"address": address, "bytes_served": served}
            for address, served in contributors[:TOP_CONTRIBUTORS]
        ],
    )


def _node_events(previous: Snapshot, current: Snapshot, address: str) -> List[ChangeEvent]:
    """Events for an address present in both snapshots."""
    events: List[ChangeEvent] = []
    prev_entry = previous.entry(address)
    cur_entry = current.entry(address)
    ts = current.timestamp

    was_online = prev_entry.is_online(previous.timestamp)
    is_online = cur_entry.is_online(current.timestamp)
    if was_online != is_online:
        events.append(_event(
            EventType.STATUS_CHANGED, ts, address,
            online=is_online,
            previous_online=was_online,
        ))

    new_version = cur_entry.version
    if new_version and new_version != UNKNOWN_VERSION and new_version != prev_entry.version:
        events.append(_event(
            EventType.VERSION_CHANGED, ts, address,
            version=new_version,
            previous_version=prev_entry.version,
        ))

    prev_stats = previous.stats_for(address)
    cur_stats = current.stats_for(address)
    if prev_stats is None or cur_stats is None:
        return events

    if prev_stats.total_bytes > 0 and cur_stats.total_bytes > 0:
        growth = cur_stats.total_bytes - prev_stats.total_bytes
        if growth > DATA_SERVED_THRESHOLD_BYTES:
            events.append(_event(
                EventType.DATA_SERVED, ts, address,
                bytes_served=growth,
                total_bytes=cur_stats.total_bytes,
            ))

    if prev_stats.active_streams <= HIGH_TRAFFIC_STREAMS < cur_stats.active_streams:
        events.append(_event(
            EventType.HIGH_TRAFFIC, ts, address,
            active_streams=cur_stats.active_streams,
            previous_active_streams=prev_stats.active_streams,
        ))

    return events


def diff_snapshots(
    previous: Optional[Snapshot],
    current: Snapshot,
    limit: int = DEFAULT_RETENTION,
) -> List[ChangeEvent]:
    """
    Compare two snapshots.

    Args:
        previous: Prior snapshot, or None on first observation
        current: Latest snapshot
        limit: Maximum number of events returned

    Returns:
        Change events, newest first
    """
    if previous is None:
        if not current.roster:
            return []
        return [_bootstrap_event(current)]

    events: List[ChangeEvent] = []

    for entry in current.roster:
        address = entry.address
        if address in previous:
            events.extend(_node_events(previous, current, address))
        else:
            events.append(_event(
                EventType.NODE_JOINED, current.timestamp, address,
                version=entry.version,
                is_public=entry.is_public,
            ))

    for entry in previous.roster:
        if entry.address not in current:
            events.append(_event(
                EventType.NODE_LEFT, current.timestamp, entry.address,
                version=entry.version,
                last_seen_timestamp=entry.last_seen_timestamp,
            ))

    # Stable sort keeps roster order among same-timestamp events
    events.sort(key=lambda e: e.timestamp, reverse=True)
    return events[:limit]


class SnapshotDifferencer:
    """
    Owns the previous-snapshot reference and a capped event buffer.

    Usage:
        differencer = SnapshotDifferencer(retention=50)
        new_events = differencer.observe(snapshot)
        feed = differencer.events
    """

    def __init__(self, retention: int = DEFAULT_RETENTION) -> None:
        self._retention = retention
        self._previous: Optional[Snapshot] = None
        self._events: Deque[ChangeEvent] = deque(maxlen=retention)

    @property
    def previous(self) -> Optional[Snapshot]:
        return self._previous

    @property
    def events(self) -> List[ChangeEvent]:
        """Retained events, newest first."""
        return list(self._events)

    def observe(self, snapshot: Snapshot) -> List[ChangeEvent]:
        """Diff against the previous snapshot, then make this one the previous."""
        new_events = diff_snapshots(self._previous, snapshot, limit=self._retention)
        self._events.extendleft(reversed(new_events))
        self._previous = snapshot

        if new_events:
            logger.info(f"{len(new_events)} change event(s) from {len(snapshot)} nodes")
        return new_events

    def reset(self) -> None:
        self._previous = None
        self._events.clear()
