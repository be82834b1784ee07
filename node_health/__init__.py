"""
Node Health Scoring Module.

============================================================
PER-NODE HEALTH
============================================================

Maps a node's raw metrics to a weighted composite score
(0-100) and a letter grade.

============================================================
HEALTH COMPONENTS
============================================================

1. Availability    (0.35) - online, publicly reachable
2. Performance     (0.35) - CPU / RAM utilization
3. Storage         (0.20) - used vs committed
4. Session uptime  (0.10) - time since restart

============================================================
USAGE
============================================================

```python
from node_health import NodeMetrics, score_node

health = score_node(NodeMetrics.from_node(entry, stats))
print(f"Score: {health.overall}, Grade: {health.grade.value}")
```

============================================================
"""

from .models import (
    ComponentScore,
    ComponentType,
    Grade,
    HealthScore,
    NodeMetrics,
)
from .config import (
    GRADE_BREAKPOINTS,
    WEIGHTS,
    ComponentWeights,
    grade_for,
)
from .scorers import (
    AvailabilityScorer,
    BaseComponentScorer,
    ComponentScorerFactory,
    HealthScorer,
    PerformanceScorer,
    SessionUptimeScorer,
    StorageScorer,
    round_half_up,
    score_network,
    score_node,
)


__all__ = [
    # Models
    "ComponentScore",
    "ComponentType",
    "Grade",
    "HealthScore",
    "NodeMetrics",
    # Config
    "ComponentWeights",
    "WEIGHTS",
    "GRADE_BREAKPOINTS",
    "grade_for",
    # Scorers
    "BaseComponentScorer",
    "AvailabilityScorer",
    "PerformanceScorer",
    "StorageScorer",
    "SessionUptimeScorer",
    "ComponentScorerFactory",
    "HealthScorer",
    "round_half_up",
    "score_node",
    "score_network",
]
