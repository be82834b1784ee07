"""
Node Health - Scoring Constants.

============================================================
FIXED SCORING PARAMETERS
============================================================

Weights and grade breakpoints are part of the score's meaning
and are not runtime-configurable:

- availability  0.35
- performance   0.35
- storage       0.20
- uptime        0.10

Grades: A+ >=95, A >=85, B+ >=80, B >=70, C+ >=65, C >=55,
D >=40, otherwise F.

============================================================
"""

from dataclasses import dataclass
from typing import Dict

from .models import ComponentType, Grade


# =============================================================
# COMPONENT WEIGHTS
# =============================================================


@dataclass(frozen=True)
class ComponentWeights:
    """
    Weights for each health component.

    All weights must sum to 1.0.
    """
    availability: float = 0.35
    performance: float = 0.35
    storage: float = 0.20
    uptime: float = 0.10

    def __post_init__(self) -> None:
        """Validate weights sum to 1.0."""
        total = self.total()
        if abs(total - 1.0) > 0.001:
            raise ValueError(f"Component weights must sum to 1.0, got {total}")

    def total(self) -> float:
        """Get sum of all weights."""
        return self.availability + self.performance + self.storage + self.uptime

    def get_weight(self, component: ComponentType) -> float:
        """Get weight for a specific component."""
        return {
            ComponentType.AVAILABILITY: self.availability,
            ComponentType.PERFORMANCE: self.performance,
            ComponentType.STORAGE: self.storage,
            ComponentType.UPTIME: self.uptime,
        }.get(component, 0.0)

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "availability": self.availability,
            "performance": self.performance,
            "storage": self.storage,
            "uptime": self.uptime,
        }


WEIGHTS = ComponentWeights()


# =============================================================
# GRADES
# =============================================================


GRADE_BREAKPOINTS = (
    (95, Grade.A_PLUS),
    (85, Grade.A),
    (80, Grade.B_PLUS),
    (70, Grade.B),
    (65, Grade.C_PLUS),
    (55, Grade.C),
    (40, Grade.D),
)


def grade_for(score: float) -> Grade:
    """Map an overall score to its letter grade."""
    for threshold, grade in GRADE_BREAKPOINTS:
        if score >= threshold:
            return grade
    return Grade.F


# =============================================================
# COMPONENT CONSTANTS
# =============================================================


ONE_DAY = 86400
ONE_WEEK = 604800
ONE_MONTH = 2592000

# Substituted when a node returned no stats
UNKNOWN_CPU_PERCENT = 50.0
UNKNOWN_RAM_PERCENT = 50.0
