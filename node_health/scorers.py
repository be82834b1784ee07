"""
Node Health - Component Scorers.

============================================================
HEALTH COMPONENT SCORING
============================================================

Individual scorers for each health component:
1. Availability    - online, publicly reachable
2. Performance     - CPU and RAM utilization
3. Storage         - used vs committed storage
4. Session uptime  - how long the node has been up

Each scorer:
- Takes NodeMetrics
- Returns an integer score (0-100)
- Provides explanation

============================================================
SCORING PHILOSOPHY
============================================================

- Pure and deterministic: identical input, identical output
- Higher is always better
- Unknown inputs get a neutral value, never an exception
- Overall is the weighted sum of unrounded component values,
  rounded half up once at the end

============================================================
"""

import math
from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional

from .config import (
    ONE_DAY,
    ONE_MONTH,
    ONE_WEEK,
    UNKNOWN_CPU_PERCENT,
    UNKNOWN_RAM_PERCENT,
    WEIGHTS,
    ComponentWeights,
    grade_for,
)
from .models import ComponentScore, ComponentType, HealthScore, NodeMetrics


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up."""
    return int(math.floor(value + 0.5))


# =============================================================
# BASE COMPONENT SCORER
# =============================================================


class BaseComponentScorer(ABC):
    """
    Abstract base class for component scorers.

    Subclasses implement ``raw_score``; ``score`` wraps it into a
    ComponentScore with weight and explanation.
    """

    component_type: ComponentType

    def __init__(self, weights: ComponentWeights = WEIGHTS) -> None:
        self._weights = weights

    @property
    def weight(self) -> float:
        return self._weights.get_weight(self.component_type)

    @abstractmethod
    def raw_score(self, metrics: NodeMetrics) -> float:
        """Unrounded component value in [0, 100]."""
        pass

    @abstractmethod
    def raw_input(self, metrics: NodeMetrics):
        """The input echoed back as ``raw`` on the component."""
        pass

    def explain(self, metrics: NodeMetrics, value: float) -> str:
        return f"{self.component_type.value}: {value:.1f}"

    def score(self, metrics: NodeMetrics) -> ComponentScore:
        """Calculate score for this component."""
        value = self.raw_score(metrics)
        return ComponentScore(
            component=self.component_type,
            score=round_half_up(value),
            weight=self.weight,
            raw=self.raw_input(metrics),
            explanation=self.explain(metrics, value),
        )


# =============================================================
# AVAILABILITY SCORER
# =============================================================


class AvailabilityScorer(BaseComponentScorer):
    """
    0 if offline, 100 if online and public, 70 if online but private.
    """

    component_type = ComponentType.AVAILABILITY

    ONLINE_PUBLIC = 100.0
    ONLINE_PRIVATE = 70.0

    def raw_score(self, metrics: NodeMetrics) -> float:
        if not metrics.online:
            return 0.0
        if metrics.is_public:
            return self.ONLINE_PUBLIC
        return self.ONLINE_PRIVATE

    def raw_input(self, metrics: NodeMetrics) -> bool:
        return metrics.online

    def explain(self, metrics: NodeMetrics, value: float) -> str:
        if not metrics.online:
            return "Offline"
        return "Online, public" if metrics.is_public else "Online, private"


# =============================================================
# PERFORMANCE SCORER
# =============================================================


class PerformanceScorer(BaseComponentScorer):
    """
    Mean of a CPU sub-score and a RAM sub-score.

    CPU: 100 - cpu%, flat 95 below 10%, flat 10 above 90%.
    RAM: 100 inside 20-60%, 70 + ram% below, 100 - (ram% - 60) x 2 above.
    """

    component_type = ComponentType.PERFORMANCE

    @staticmethod
    def cpu_score(cpu: float) -> float:
        if cpu < 10:
            return 95.0
        if cpu > 90:
            return 10.0
        return 100.0 - cpu

    @staticmethod
    def ram_score(ram: float) -> float:
        if 20 <= ram <= 60:
            return 100.0
        if ram < 20:
            return 70.0 + ram
        return max(0.0, 100.0 - (ram - 60) * 2)

    def raw_score(self, metrics: NodeMetrics) -> float:
        cpu = metrics.cpu_percent if metrics.cpu_percent is not None else UNKNOWN_CPU_PERCENT
        ram = metrics.ram_percent if metrics.ram_percent is not None else UNKNOWN_RAM_PERCENT
        return self.cpu_score(cpu) * 0.5 + self.ram_score(ram) * 0.5

    def raw_input(self, metrics: NodeMetrics) -> Dict[str, float]:
        return {
            "cpu": metrics.cpu_percent or 0,
            "ram": metrics.ram_percent or 0,
        }

    def explain(self, metrics: NodeMetrics, value: float) -> str:
        if metrics.cpu_percent is None and metrics.ram_percent is None:
            return f"No stats - neutral ({value:.0f})"
        return (
            f"CPU: {metrics.cpu_percent or 0:.1f}%, "
            f"RAM: {metrics.ram_percent or 0:.1f}% ({value:.0f})"
        )


# =============================================================
# STORAGE SCORER
# =============================================================


class StorageScorer(BaseComponentScorer):
    """
    Rewards a 40-80% utilization band of committed storage.
    """

    component_type = ComponentType.STORAGE

    NO_COMMITMENT = 50.0
    NOTHING_USED = 30.0

    def raw_score(self, metrics: NodeMetrics) -> float:
        committed = metrics.storage_committed
        if not committed or committed <= 0:
            return self.NO_COMMITMENT
        if not metrics.storage_used:
            return self.NOTHING_USED

        utilization = metrics.storage_used / committed * 100
        if 40 <= utilization <= 80:
            return 100.0
        if utilization < 40:
            return 60.0 + utilization
        return max(50.0, 100.0 - (utilization - 80) * 2)

    def raw_input(self, metrics: NodeMetrics) -> float:
        return metrics.storage_used or 0


# =============================================================
# SESSION UPTIME SCORER
# =============================================================


class SessionUptimeScorer(BaseComponentScorer):
    """
    Piecewise linear in session uptime:
    0 -> 60 over the first day, 60 -> 80 up to a week,
    80 -> 100 up to 30 days, 100 beyond.
    """

    component_type = ComponentType.UPTIME

    def raw_score(self, metrics: NodeMetrics) -> float:
        uptime = metrics.uptime
        if not uptime or uptime <= 0:
            return 0.0
        if uptime >= ONE_MONTH:
            return 100.0
        if uptime >= ONE_WEEK:
            return 80.0 + (uptime - ONE_WEEK) / (ONE_MONTH - ONE_WEEK) * 20
        if uptime >= ONE_DAY:
            return 60.0 + (uptime - ONE_DAY) / (ONE_WEEK - ONE_DAY) * 20
        return uptime / ONE_DAY * 60

    def raw_input(self, metrics: NodeMetrics) -> float:
        return metrics.uptime or 0

    def explain(self, metrics: NodeMetrics, value: float) -> str:
        return f"Session uptime {(metrics.uptime or 0) / 3600:.1f}h ({value:.0f})"


# =============================================================
# SCORER FACTORY
# =============================================================


class ComponentScorerFactory:
    """Factory for creating component scorers."""

    _scorers = {
        ComponentType.AVAILABILITY: AvailabilityScorer,
        ComponentType.PERFORMANCE: PerformanceScorer,
        ComponentType.STORAGE: StorageScorer,
        ComponentType.UPTIME: SessionUptimeScorer,
    }

    @classmethod
    def create(
        cls,
        component: ComponentType,
        weights: ComponentWeights = WEIGHTS,
    ) -> BaseComponentScorer:
        """Create a scorer for the given component."""
        scorer_class = cls._scorers.get(component)
        if scorer_class is None:
            raise ValueError(f"Unknown component: {component}")
        return scorer_class(weights)

    @classmethod
    def create_all(
        cls,
        weights: ComponentWeights = WEIGHTS,
    ) -> Dict[ComponentType, BaseComponentScorer]:
        """Create scorers for all components."""
        return {
            component: cls.create(component, weights)
            for component in ComponentType
        }


# =============================================================
# COMPOSITE SCORER
# =============================================================


class HealthScorer:
    """
    Combines the component scorers into one HealthScore.

    Usage:
        scorer = HealthScorer()
        health = scorer.score(NodeMetrics(online=True, is_public=True, uptime=86400))
        print(health.overall, health.grade.value)
    """

    def __init__(self, weights: ComponentWeights = WEIGHTS) -> None:
        self._weights = weights
        self._scorers = ComponentScorerFactory.create_all(weights)

    def score(self, metrics: NodeMetrics) -> HealthScore:
        weighted_sum = 0.0
        components: Dict[ComponentType, ComponentScore] = {}

        for component, scorer in self._scorers.items():
            value = scorer.raw_score(metrics)
            weighted_sum += value * scorer.weight
            components[component] = scorer.score(metrics)

        overall = max(0, min(100, round_half_up(weighted_sum)))
        return HealthScore(
            overall=overall,
            grade=grade_for(overall),
            components=components,
        )

    def score_network(self, metrics_by_address: Mapping[str, NodeMetrics]) -> Dict[str, HealthScore]:
        """
        Score every node and attach its network percentile.

        Percentile is ``round(rank / n * 100)`` where rank is the first
        position of the node's score in ascending order, so tied nodes
        share a percentile and the lowest score is always 0.
        """
        scores = {address: self.score(m) for address, m in metrics_by_address.items()}
        if not scores:
            return scores

        ordered = sorted(s.overall for s in scores.values())
        first_rank: Dict[int, int] = {}
        for rank, value in enumerate(ordered):
            first_rank.setdefault(value, rank)

        for health in scores.values():
            health.percentile = round_half_up(first_rank[health.overall] / len(ordered) * 100)
        return scores


_default_scorer = HealthScorer()


def score_node(metrics: NodeMetrics) -> HealthScore:
    """Score one node with the fixed weights."""
    return _default_scorer.score(metrics)


def score_network(metrics_by_address: Mapping[str, NodeMetrics]) -> Dict[str, HealthScore]:
    """Score a set of nodes with network percentiles."""
    return _default_scorer.score_network(metrics_by_address)
