"""Analytics pipeline: compute all four daily scores in one call.

This is the synchronous, gate-free path used for batch analysis and
history.  The orchestrator runs the same scoring functions one category
at a time, behind recency gates.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from typing import Any, Sequence

from healthscore.analytics.baseline import BaselineStats
from healthscore.analytics.recovery import score_recovery
from healthscore.analytics.scoring import ScoreCategory, ScoreResult
from healthscore.analytics.sessions import SleepSession
from healthscore.analytics.sleep import score_sleep
from healthscore.analytics.strain import score_strain
from healthscore.analytics.stress import score_stress


@dataclass(frozen=True)
class DailyMetrics:
    """The scalar inputs for one day's scores (None = not available)."""

    hrv: float | None = None
    resting_hr: float | None = None
    sleep_session: SleepSession | None = None
    sleep_duration_hours: float | None = None
    sleep_efficiency: float | None = None
    wake_events: int | None = None
    steps: float | None = None
    active_energy: float | None = None

    @property
    def effective_sleep_efficiency(self) -> float | None:
        if self.sleep_efficiency is not None:
            return self.sleep_efficiency
        if self.sleep_session is not None:
            return self.sleep_session.efficiency
        return None


@dataclass(frozen=True)
class Baselines:
    hrv: BaselineStats | None = None
    resting_hr: BaselineStats | None = None
    steps: BaselineStats | None = None
    active_energy: BaselineStats | None = None


@dataclass(frozen=True)
class DailyScores:
    """All four scores for one day."""

    day: date
    recovery: ScoreResult
    sleep: ScoreResult
    strain: ScoreResult
    stress: ScoreResult

    def get(self, category: ScoreCategory | str) -> ScoreResult:
        return getattr(self, ScoreCategory(category).value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            **{c.value: self.get(c).to_dict() for c in ScoreCategory},
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __repr__(self) -> str:
        parts = []
        for c in ScoreCategory:
            value = self.get(c).value
            parts.append(f"{c.value}={'-' if value is None else f'{value:.0f}'}")
        return f"DailyScores({self.day.isoformat()}: {', '.join(parts)})"


def compute_scores(
    day: date,
    metrics: DailyMetrics,
    baselines: Baselines | None = None,
) -> DailyScores:
    """Run every scoring function over one day's metrics.

    Args:
        day: The day being scored.
        metrics: Scalar inputs; any may be None.
        baselines: Baselines per metric (personal ones change scores,
            static priors do not).

    Returns:
        DailyScores; categories without inputs are unavailable.
    """
    b = baselines or Baselines()
    session = metrics.sleep_session

    recovery = score_recovery(
        hrv=metrics.hrv,
        resting_hr=metrics.resting_hr,
        sleep_efficiency=metrics.effective_sleep_efficiency,
        hrv_baseline=b.hrv,
        rhr_baseline=b.resting_hr,
    )
    if session is not None:
        sleep = score_sleep(session)
    else:
        sleep = score_sleep(
            duration_hours=metrics.sleep_duration_hours,
            efficiency=metrics.sleep_efficiency,
            wake_events=metrics.wake_events,
        )
    strain = score_strain(
        steps=metrics.steps,
        active_energy=metrics.active_energy,
        steps_baseline=b.steps,
        energy_baseline=b.active_energy,
    )
    stress = score_stress(hrv=metrics.hrv, hrv_baseline=b.hrv)

    return DailyScores(day=day, recovery=recovery, sleep=sleep, strain=strain, stress=stress)


def score_trend(
    history: Sequence[DailyScores],
    category: ScoreCategory | str,
    days: int = 7,
) -> list[float]:
    """Values of *category* over the last *days* entries of *history*.

    Unavailable days are left out rather than reported as zero.
    """
    category = ScoreCategory(category)
    recent = list(history)[-days:] if days > 0 else []
    values = [d.get(category).value for d in recent]
    return [v for v in values if v is not None]
