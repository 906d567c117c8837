"""Stress score from HRV relative to its personal baseline.

Suppressed HRV (well under the baseline mean) reads as stress; elevated
HRV as relaxation.  Higher is worse, so the status bands are inverted:
70+ is poor, under 40 optimal.  Without a personal baseline the score
stays at the neutral 50.
"""

from __future__ import annotations

from healthscore.analytics.baseline import BaselineStats
from healthscore.analytics.scoring import (
    ScoreCategory,
    ScoreResult,
    ScoreStatus,
    clamp,
    unavailable,
)

BASE_SCORE = 50.0

# (ratio bound, points); ratio = hrv / baseline mean
RATIO_VERY_LOW = (0.8, 25.0)
RATIO_LOW = (0.9, 15.0)
RATIO_HIGH = (1.1, -20.0)

POOR_AT = 70.0
MODERATE_AT = 40.0


def _status(value: float) -> ScoreStatus:
    if value >= POOR_AT:
        return ScoreStatus.POOR
    if value >= MODERATE_AT:
        return ScoreStatus.MODERATE
    return ScoreStatus.OPTIMAL


def score_stress(
    hrv: float | None = None,
    hrv_baseline: BaselineStats | None = None,
) -> ScoreResult:
    """Compute the stress score (0 calm - 100 stressed)."""
    if hrv is None:
        return unavailable(ScoreCategory.STRESS, "No HRV data")

    score = BASE_SCORE
    sub: dict = {"hrv": hrv}

    if hrv_baseline is not None and hrv_baseline.is_personal and hrv_baseline.mean > 0:
        ratio = hrv / hrv_baseline.mean
        if ratio < RATIO_VERY_LOW[0]:
            points = RATIO_VERY_LOW[1]
        elif ratio < RATIO_LOW[0]:
            points = RATIO_LOW[1]
        elif ratio > RATIO_HIGH[0]:
            points = RATIO_HIGH[1]
        else:
            points = 0.0
        score += points
        sub.update(hrv_baseline_ratio=round(ratio, 3), ratio_points=points)
    else:
        sub["baseline"] = "none"

    value = round(clamp(score), 1)
    return ScoreResult(
        category=ScoreCategory.STRESS,
        value=value,
        status=_status(value),
        sub_metrics=sub,
    )
