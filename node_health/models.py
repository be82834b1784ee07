"""
Node Health - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

Defines all data models for node health scoring:
- Grade: Letter grade for an overall score
- ComponentType: The four scored components
- NodeMetrics: Scorer input for one node
- ComponentScore: Score for a single component
- HealthScore: Weighted composite with grade

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from node_sources.models import NodeStats, RosterEntry


# =============================================================
# ENUMS
# =============================================================


class Grade(str, Enum):
    """Letter grade derived from the overall score."""
    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D = "D"
    F = "F"

    def is_passing(self) -> bool:
        return self != Grade.F


class ComponentType(str, Enum):
    """
    Scored components of node health.

    Each component contributes to the overall score by a fixed weight.
    """
    AVAILABILITY = "availability"
    PERFORMANCE = "performance"
    STORAGE = "storage"
    UPTIME = "uptime"


# =============================================================
# DATA CLASSES
# =============================================================


@dataclass(frozen=True)
class NodeMetrics:
    """
    Raw inputs for scoring one node.

    None means "unknown"; each scorer decides what unknown is worth.
    """
    online: bool
    is_public: bool = False
    uptime: Optional[float] = None
    cpu_percent: Optional[float] = None
    ram_percent: Optional[float] = None
    storage_used: Optional[float] = None
    storage_committed: Optional[float] = None

    @classmethod
    def from_node(
        cls,
        entry: RosterEntry,
        stats: Optional[NodeStats] = None,
        now: Optional[float] = None,
    ) -> "NodeMetrics":
        """Build scorer input from a roster entry and its (optional) stats."""
        return cls(
            online=entry.is_online(now),
            is_public=entry.is_public,
            uptime=entry.uptime,
            cpu_percent=stats.cpu_percent if stats is not None else None,
            ram_percent=stats.ram_percent if stats is not None else None,
            storage_used=entry.storage_used,
            storage_committed=entry.storage_committed,
        )


@dataclass(frozen=True)
class ComponentScore:
    """Score for a single component, rounded to an integer 0-100."""
    component: ComponentType
    score: int
    weight: float
    raw: Any = None
    explanation: str = ""

    def __post_init__(self) -> None:
        """Validate score range."""
        if not 0 <= self.score <= 100:
            object.__setattr__(self, "score", max(0, min(100, self.score)))


@dataclass
class HealthScore:
    """
    Weighted composite health of one node.

    ``percentile`` is only set when scored as part of a network.
    """
    overall: int
    grade: Grade
    components: Dict[ComponentType, ComponentScore] = field(default_factory=dict)
    percentile: Optional[int] = None

    def get_component_score(self, component: ComponentType) -> Optional[int]:
        """Get score for a specific component."""
        if component in self.components:
            return self.components[component].score
        return None

    def get_weakest_component(self) -> Optional[ComponentScore]:
        """Get the component with the lowest score."""
        if not self.components:
            return None
        return min(self.components.values(), key=lambda c: c.score)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {
            "overall": self.overall,
            "grade": self.grade.value,
            "components": {
                c.value: {
                    "score": v.score,
                    "weight": v.weight,
                    "raw": v.raw,
                }
                for c, v in self.components.items()
            },
        }
        if self.percentile is not None:
            data["percentile"] = self.percentile
        return data
