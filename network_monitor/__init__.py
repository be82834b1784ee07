"""
Network Monitor Module.

============================================================
PURPOSE
============================================================
Turns pNode telemetry into point-in-time snapshots and derives:

- Aggregate network statistics
- Per-node health scores
- Discrete change events
- Threshold alerts

CONSTRAINTS:
- At most one poll cycle in flight
- One failing node never affects another
- Consumers get structured results or structured errors,
  never exceptions

============================================================
USAGE
============================================================

```python
from network_monitor import NetworkPoller, NetworkService, create_app

poller = NetworkPoller()
service = NetworkService(poller)

overview = await service.get_network()
app = create_app(service, manage_poller=True)
```

============================================================
"""

from .models import (
    Alert,
    AlertSeverity,
    AlertType,
    ChangeEvent,
    EventType,
    NetworkOverview,
    NodeView,
    Snapshot,
)
from .aggregator import aggregate, aggregate_snapshot
from .differencer import SnapshotDifferencer, diff_snapshots
from .alerts import (
    DEFAULT_ALERT_RULES,
    AlertEvaluator,
    AlertHistory,
    AlertRuleConfig,
)
from .poller import CycleResult, NetworkPoller
from .service import NetworkService
from .api import create_app


__all__ = [
    # Models
    "Alert",
    "AlertSeverity",
    "AlertType",
    "ChangeEvent",
    "EventType",
    "NetworkOverview",
    "NodeView",
    "Snapshot",
    # Derivation
    "aggregate",
    "aggregate_snapshot",
    "diff_snapshots",
    "SnapshotDifferencer",
    # Alerts
    "AlertEvaluator",
    "AlertHistory",
    "AlertRuleConfig",
    "DEFAULT_ALERT_RULES",
    # Runtime
    "CycleResult",
    "NetworkPoller",
    "NetworkService",
    "create_app",
]
