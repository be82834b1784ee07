"""
Alert Rules.

============================================================
PURPOSE
============================================================
Deterministic threshold alerts over node views.

PRINCIPLES:
- All thresholds are explicit and configurable
- Every rule can be disabled individually
- Transition rules (offline, online, health drop, milestone)
  need a previous view
- Level rules (CPU, RAM, storage, version, network health) fire
  when the condition starts to hold, not on every cycle

============================================================
"""

import logging
import time
from collections import deque
from dataclasses import dataclass, replace
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional

from node_sources.models import UNKNOWN_VERSION

from .models import Alert, AlertSeverity, AlertType, NetworkOverview, NodeView


logger = logging.getLogger(__name__)


GIB = 1024 * 1024 * 1024


# ============================================================
# RULE CONFIGURATION
# ============================================================

@dataclass(frozen=True)
class AlertRuleConfig:
    """Configuration for an alert rule."""
    rule_id: str
    alert_type: AlertType
    severity: AlertSeverity
    description: str
    enabled: bool = True
    threshold: Optional[float] = None


DEFAULT_ALERT_RULES = (
    AlertRuleConfig(
        rule_id="node_offline",
        alert_type=AlertType.NODE_OFFLINE,
        severity=AlertSeverity.CRITICAL,
        description="Alert when a monitored node goes offline",
    ),
    AlertRuleConfig(
        rule_id="node_online",
        alert_type=AlertType.NODE_ONLINE,
        severity=AlertSeverity.SUCCESS,
        description="Alert when a monitored node comes back online",
    ),
    AlertRuleConfig(
        rule_id="health_drop",
        alert_type=AlertType.HEALTH_DROP,
        severity=AlertSeverity.WARNING,
        description="Alert when health score drops significantly",
        threshold=20,
    ),
    AlertRuleConfig(
        rule_id="high_cpu",
        alert_type=AlertType.HIGH_CPU,
        severity=AlertSeverity.WARNING,
        description="Alert when CPU usage is critically high",
        threshold=90,
    ),
    AlertRuleConfig(
        rule_id="high_ram",
        alert_type=AlertType.HIGH_RAM,
        severity=AlertSeverity.WARNING,
        description="Alert when RAM usage is critically high",
        threshold=90,
    ),
    AlertRuleConfig(
        rule_id="low_storage",
        alert_type=AlertType.LOW_STORAGE,
        severity=AlertSeverity.WARNING,
        description="Alert when storage is almost full (percent free)",
        threshold=10,
    ),
    AlertRuleConfig(
        rule_id="version_outdated",
        alert_type=AlertType.VERSION_OUTDATED,
        severity=AlertSeverity.INFO,
        description="Alert when node is running an outdated version",
    ),
    AlertRuleConfig(
        rule_id="network_health",
        alert_type=AlertType.NETWORK_HEALTH,
        severity=AlertSeverity.CRITICAL,
        description="Alert when the online share of the network is poor",
        threshold=50,
    ),
    AlertRuleConfig(
        rule_id="data_milestone",
        alert_type=AlertType.DATA_MILESTONE,
        severity=AlertSeverity.SUCCESS,
        description="Celebrate when nodes reach data milestones",
    ),
)


# ============================================================
# HELPERS
# ============================================================

def _cpu(view: Optional[NodeView]) -> Optional[float]:
    if view is None or view.stats is None:
        return None
    return view.stats.cpu_percent


def _ram(view: Optional[NodeView]) -> Optional[float]:
    if view is None or view.stats is None:
        return None
    return view.stats.ram_percent


def _bytes_served(view: Optional[NodeView]) -> Optional[int]:
    if view is None or view.stats is None:
        return None
    return view.stats.total_bytes


def _is_outdated(view: Optional[NodeView], latest: Optional[str]) -> bool:
    if view is None or not view.online or not latest:
        return False
    version = view.entry.version
    return bool(version) and version != UNKNOWN_VERSION and version != latest


# ============================================================
# EVALUATOR
# ============================================================

class AlertEvaluator:
    """
    Evaluates alert rules against consecutive node views.

    Usage:
        evaluator = AlertEvaluator()
        evaluator.disable_rule("version_outdated")
        alerts = evaluator.evaluate(previous_views, current_views, overview)
    """

    def __init__(self, rules: Optional[Iterable[AlertRuleConfig]] = None) -> None:
        self._rules: Dict[str, AlertRuleConfig] = {
            rule.rule_id: rule for rule in (rules if rules is not None else DEFAULT_ALERT_RULES)
        }

    @property
    def rules(self) -> List[AlertRuleConfig]:
        return list(self._rules.values())

    def get_rule(self, rule_id: str) -> Optional[AlertRuleConfig]:
        return self._rules.get(rule_id)

    def enable_rule(self, rule_id: str) -> bool:
        return self._set_rule(rule_id, enabled=True)

    def disable_rule(self, rule_id: str) -> bool:
        return self._set_rule(rule_id, enabled=False)

    def set_threshold(self, rule_id: str, threshold: float) -> bool:
        return self._set_rule(rule_id, threshold=threshold)

    def _set_rule(self, rule_id: str, **changes: Any) -> bool:
        rule = self._rules.get(rule_id)
        if rule is None:
            return False
        self._rules[rule_id] = replace(rule, **changes)
        return True

    def _active(self, rule_id: str) -> Optional[AlertRuleConfig]:
        rule = self._rules.get(rule_id)
        if rule is None or not rule.enabled:
            return None
        return rule

    def _alert(
        self,
        rule: AlertRuleConfig,
        title: str,
        message: str,
        now: float,
        address: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Alert:
        subject = f"{address}-" if address else ""
        return Alert(
            alert_id=f"{rule.rule_id}-{subject}{int(now * 1000)}",
            type=rule.alert_type,
            severity=rule.severity,
            title=title,
            message=message,
            timestamp=now,
            address=address,
            data=data or {},
        )

    # --------------------------------------------------------
    # NODE RULES
    # --------------------------------------------------------

    def check_node(
        self,
        current: NodeView,
        previous: Optional[NodeView],
        network: NetworkOverview,
        now: Optional[float] = None,
    ) -> List[Alert]:
        """Evaluate all node rules for one node."""
        if now is None:
            now = time.time()
        alerts: List[Alert] = []
        address = current.address
        host = current.entry.host

        rule = self._active("node_offline")
        if rule and previous is not None and previous.online and not current.online:
            alerts.append(self._alert(
                rule, "Node Offline", f"Node {host} has gone offline", now, address,
            ))

        rule = self._active("node_online")
        if rule and previous is not None and not previous.online and current.online:
            alerts.append(self._alert(
                rule, "Node Online", f"Node {host} is back online", now, address,
            ))

        rule = self._active("health_drop")
        if rule and previous is not None and previous.health and current.health:
            drop = previous.health.overall - current.health.overall
            if drop >= (rule.threshold if rule.threshold is not None else 20):
                alerts.append(self._alert(
                    rule,
                    "Health Score Dropped",
                    f"Node {host} health dropped from {previous.health.overall} "
                    f"to {current.health.overall}",
                    now,
                    address,
                    {"previous": previous.health.overall, "current": current.health.overall},
                ))

        rule = self._active("high_cpu")
        if rule and current.online:
            limit = rule.threshold if rule.threshold is not None else 90
            cpu = _cpu(current)
            prev_cpu = _cpu(previous)
            if cpu is not None and cpu >= limit and (prev_cpu is None or prev_cpu < limit):
                alerts.append(self._alert(
                    rule, "High CPU Usage", f"Node {host} CPU at {cpu:.1f}%", now, address,
                    {"cpu_percent": cpu},
                ))

        rule = self._active("high_ram")
        if rule and current.online:
            limit = rule.threshold if rule.threshold is not None else 90
            ram = _ram(current)
            prev_ram = _ram(previous)
            if ram is not None and ram >= limit and (prev_ram is None or prev_ram < limit):
                alerts.append(self._alert(
                    rule, "High RAM Usage", f"Node {host} RAM at {ram:.1f}%", now, address,
                    {"ram_percent": ram},
                ))

        rule = self._active("low_storage")
        if rule and current.online and current.entry.storage_committed > 0:
            limit = rule.threshold if rule.threshold is not None else 10
            used = current.entry.storage_usage_percent
            was_low = (
                previous is not None
                and previous.entry.storage_committed > 0
                and 100 - previous.entry.storage_usage_percent <= limit
            )
            if 100 - used <= limit and not was_low:
                alerts.append(self._alert(
                    rule, "Low Storage", f"Node {host} storage {used:.1f}% full", now, address,
                    {"storage_percent": used},
                ))

        rule = self._active("version_outdated")
        latest = network.latest_version
        if rule and _is_outdated(current, latest):
            if previous is None or not _is_outdated(previous, latest) or previous.entry.version != current.entry.version:
                alerts.append(self._alert(
                    rule,
                    "Outdated Version",
                    f"Node {host} running v{current.entry.version}, latest is v{latest}",
                    now,
                    address,
                    {"current": current.entry.version, "latest": latest},
                ))

        rule = self._active("data_milestone")
        if rule and previous is not None:
            prev_bytes = _bytes_served(previous)
            cur_bytes = _bytes_served(current)
            if prev_bytes is not None and cur_bytes is not None:
                prev_gib = prev_bytes // GIB
                cur_gib = cur_bytes // GIB
                if cur_gib > prev_gib and cur_gib > 0:
                    alerts.append(self._alert(
                        rule, "Data Milestone!", f"Node {host} served {cur_gib} GB of data", now, address,
                        {"gigabytes": cur_gib},
                    ))

        return alerts

    # --------------------------------------------------------
    # NETWORK RULES
    # --------------------------------------------------------

    def check_network(
        self,
        network: NetworkOverview,
        previous: Optional[NetworkOverview] = None,
        now: Optional[float] = None,
    ) -> List[Alert]:
        """Evaluate network-wide rules."""
        if now is None:
            now = time.time()
        alerts: List[Alert] = []

        rule = self._active("network_health")
        if rule and network.total_pnodes > 0:
            limit = rule.threshold if rule.threshold is not None else 50
            percent = round(network.online_percent, 1)
            was_poor = (
                previous is not None
                and previous.total_pnodes > 0
                and previous.online_percent < limit
            )
            if percent < limit and not was_poor:
                alerts.append(self._alert(
                    rule,
                    "Network Health Alert",
                    f"Network health is at {percent}% (below threshold of {limit:g}%)",
                    now,
                    data={"health_percent": percent},
                ))

        return alerts

    def evaluate(
        self,
        previous_views: Optional[Mapping[str, NodeView]],
        current_views: Mapping[str, NodeView],
        network: NetworkOverview,
        previous_network: Optional[NetworkOverview] = None,
        now: Optional[float] = None,
    ) -> List[Alert]:
        """
        Evaluate every rule for one cycle.

        With no previous views only network rules run; the first cycle
        establishes the baseline for node rules.
        """
        if now is None:
            now = time.time()
        alerts = self.check_network(network, previous_network, now)

        if previous_views is not None:
            for address, view in current_views.items():
                alerts.extend(self.check_node(view, previous_views.get(address), network, now))

        if alerts:
            logger.info(f"{len(alerts)} alert(s) raised")
        return alerts


# ============================================================
# ALERT HISTORY
# ============================================================

class AlertHistory:
    """Capped alert history."""

    def __init__(self, max_history: int = 100) -> None:
        self._alerts: Deque[Alert] = deque(maxlen=max_history)

    def __len__(self) -> int:
        return len(self._alerts)

    def add(self, alert: Alert) -> None:
        self._alerts.append(alert)

    def extend(self, alerts: Iterable[Alert]) -> None:
        for alert in alerts:
            self.add(alert)

    def get_recent(self, limit: int = 100) -> List[Alert]:
        """Get recent alerts, newest first."""
        recent = list(self._alerts)[-limit:] if limit > 0 else []
        return recent[::-1]

    def get_by_severity(self, severity: AlertSeverity) -> List[Alert]:
        return [a for a in self._alerts if a.severity == severity]

    def clear(self) -> None:
        self._alerts.clear()

    def stats(self) -> Dict[str, Any]:
        """Get alert statistics."""
        return {
            "total_alerts": len(self._alerts),
            "by_severity": {
                severity.value: len(self.get_by_severity(severity))
                for severity in AlertSeverity
            },
        }
