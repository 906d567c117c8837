"""Shared score types.

Every scoring function returns a :class:`ScoreResult`.  The orchestrator
publishes the coarser :class:`ScoreState` (pending / unavailable /
computed) per category.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union


class ScoreCategory(str, Enum):
    RECOVERY = "recovery"
    SLEEP = "sleep"
    STRAIN = "strain"
    STRESS = "stress"


class ScoreStatus(str, Enum):
    OPTIMAL = "optimal"
    MODERATE = "moderate"
    POOR = "poor"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ScoreResult:
    """A score with its status and the sub-metrics that produced it.

    ``value`` is None exactly when the status is ``unavailable``; a zero
    score is a real score.
    """

    category: ScoreCategory
    value: float | None
    status: ScoreStatus
    sub_metrics: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None

    @property
    def available(self) -> bool:
        return self.status is not ScoreStatus.UNAVAILABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "value": self.value,
            "status": self.status.value,
            "sub_metrics": dict(self.sub_metrics),
            "reason": self.reason,
        }

    def __repr__(self) -> str:
        if self.value is None:
            return f"ScoreResult({self.category.value}: unavailable, {self.reason!r})"
        return f"ScoreResult({self.category.value}={self.value:.1f}, {self.status.value})"


def unavailable(category: ScoreCategory, reason: str) -> ScoreResult:
    return ScoreResult(category=category, value=None, status=ScoreStatus.UNAVAILABLE, reason=reason)


def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def banded_status(value: float, optimal_at: float, moderate_at: float) -> ScoreStatus:
    """Higher-is-better status: optimal at/above *optimal_at*, and so on."""
    if value >= optimal_at:
        return ScoreStatus.OPTIMAL
    if value >= moderate_at:
        return ScoreStatus.MODERATE
    return ScoreStatus.POOR


# ---------------------------------------------------------------------------
# Published per-category state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Pending:
    kind: ClassVar[str] = "pending"


@dataclass(frozen=True)
class Unavailable:
    reason: str
    kind: ClassVar[str] = "unavailable"


@dataclass(frozen=True)
class Computed:
    value: float
    status: ScoreStatus
    kind: ClassVar[str] = "computed"


ScoreState = Union[Pending, Unavailable, Computed]


def state_from_result(result: ScoreResult) -> ScoreState:
    if result.value is None:
        return Unavailable(result.reason or f"{result.category.value} unavailable")
    return Computed(value=result.value, status=result.status)
