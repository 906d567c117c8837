"""Daily strain score from step count and active energy.

Strain blends two components, 40% steps and 60% active energy.  Each
component is scored against the personal baseline (z-score mapped onto
0-100) once one exists, and against a fixed absolute curve before that.
A near-sedentary day (under 1000 steps and 200 kcal) scores exactly 0.
"""

from __future__ import annotations

import numpy as np

from healthscore.analytics.baseline import BaselineStats
from healthscore.analytics.scoring import (
    ScoreCategory,
    ScoreResult,
    ScoreStatus,
    banded_status,
    clamp,
    unavailable,
)

W_STEPS = 0.4
W_ENERGY = 0.6

# Absolute curves used until a personal baseline exists
STEPS_CURVE = ([0.0, 500.0, 2000.0, 5000.0, 8000.0, 12000.0, 15000.0],
               [5.0, 5.0, 20.0, 40.0, 70.0, 90.0, 100.0])
ENERGY_CURVE = ([0.0, 33.3, 100.0, 200.0, 400.0, 600.0, 800.0],
                [5.0, 5.0, 15.0, 35.0, 65.0, 85.0, 100.0])

# Low-activity guard
MIN_STEPS = 1000.0
MIN_ENERGY = 200.0  # kcal

OPTIMAL_AT = 70.0
MODERATE_AT = 40.0


def _component(
    value: float,
    baseline: BaselineStats | None,
    curve: tuple[list[float], list[float]],
) -> tuple[float, str]:
    if baseline is not None and baseline.is_personal:
        return baseline.normalized_score(value), "baseline"
    xs, ys = curve
    return float(np.interp(value, xs, ys)), "absolute"


def score_strain(
    steps: float | None = None,
    active_energy: float | None = None,
    steps_baseline: BaselineStats | None = None,
    energy_baseline: BaselineStats | None = None,
) -> ScoreResult:
    """Compute the daily strain score.

    Args:
        steps: Step count for the day.
        active_energy: Active energy for the day (kcal).
        steps_baseline: Steps baseline; only used when personal.
        energy_baseline: Active energy baseline; only used when personal.

    Returns:
        ScoreResult; unavailable when both inputs are absent.  When one is
        absent the other carries the full weight.
    """
    if steps is None and active_energy is None:
        return unavailable(ScoreCategory.STRAIN, "No activity data")

    steps_v = steps if steps is not None else 0.0
    energy_v = active_energy if active_energy is not None else 0.0
    sub: dict = {"steps": steps, "active_energy": active_energy}

    if steps_v < MIN_STEPS and energy_v < MIN_ENERGY:
        sub["low_activity"] = True
        return ScoreResult(
            category=ScoreCategory.STRAIN,
            value=0.0,
            status=ScoreStatus.POOR,
            sub_metrics=sub,
        )

    parts: list[tuple[float, float]] = []
    if steps is not None:
        s, method = _component(steps, steps_baseline, STEPS_CURVE)
        parts.append((W_STEPS, s))
        sub.update(steps_score=round(s, 1), steps_method=method)
    if active_energy is not None:
        e, method = _component(active_energy, energy_baseline, ENERGY_CURVE)
        parts.append((W_ENERGY, e))
        sub.update(energy_score=round(e, 1), energy_method=method)

    total_weight = sum(w for w, _ in parts)
    raw = sum(w * s for w, s in parts) / total_weight

    value = round(clamp(raw), 1)
    return ScoreResult(
        category=ScoreCategory.STRAIN,
        value=value,
        status=banded_status(value, OPTIMAL_AT, MODERATE_AT),
        sub_metrics=sub,
    )
