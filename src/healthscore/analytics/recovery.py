"""Recovery score (HRV + resting HR + sleep efficiency).

Starts from a neutral 50 and adds or subtracts points for each input:

  * HRV band, plus ±10 when a personal baseline shows HRV well above
    (>110%) or below (<80%) its mean
  * resting HR band, plus ±10 when it sits >5 bpm below or >3 bpm above
    the personal baseline
  * last night's sleep efficiency

Band labels are exposed separately (``hrv_status`` etc.) for display.
"""

from __future__ import annotations

from healthscore.analytics.baseline import BaselineStats
from healthscore.analytics.scoring import (
    ScoreCategory,
    ScoreResult,
    banded_status,
    clamp,
    unavailable,
)

BASE_SCORE = 50.0

# (lower bound, label, points), checked top-down
HRV_BANDS = [
    (70.0, "Excellent", 20.0),
    (50.0, "Very Good", 15.0),
    (30.0, "Good", 8.0),
    (20.0, "Fair", -5.0),
    (float("-inf"), "Poor", -15.0),
]

HRV_RATIO_HIGH = 1.1
HRV_RATIO_LOW = 0.8
RHR_BELOW_BASELINE = 5.0  # bpm under baseline that earns the bonus
RHR_ABOVE_BASELINE = 3.0  # bpm over baseline that costs the penalty
BASELINE_ADJUSTMENT = 10.0

# (lower bound, label) in ml/kg/min
VO2MAX_BANDS = [
    (60.0, "Excellent"),
    (50.0, "Very Good"),
    (40.0, "Good"),
    (30.0, "Fair"),
    (float("-inf"), "Poor"),
]

OPTIMAL_AT = 75.0
MODERATE_AT = 50.0


def _hrv_band(hrv: float) -> tuple[str, float]:
    for lower, label, points in HRV_BANDS:
        if hrv >= lower:
            return label, points
    return HRV_BANDS[-1][1], HRV_BANDS[-1][2]


def _rhr_band(rhr: float) -> tuple[str, float]:
    if rhr < 40:
        return "Very Low", 0.0
    if rhr <= 55:
        return "Excellent", 20.0
    if rhr < 60:
        return "Very Good", 15.0
    if rhr < 80:
        return "Good", 8.0
    if rhr < 100:
        return "Fair", -5.0
    return "High", -15.0


def _efficiency_points(efficiency: float) -> float:
    if efficiency >= 0.85:
        return 15.0
    if efficiency >= 0.75:
        return 8.0
    if efficiency < 0.65:
        return -12.0
    return 0.0


def hrv_status(hrv: float) -> str:
    """Fitness label for an HRV reading (ms)."""
    return _hrv_band(hrv)[0]


def rhr_status(resting_hr: float) -> str:
    """Fitness label for a resting heart rate (bpm)."""
    return _rhr_band(resting_hr)[0]


def vo2max_status(vo2max: float) -> str:
    """Fitness label for a VO2 max estimate (ml/kg/min)."""
    for lower, label in VO2MAX_BANDS:
        if vo2max >= lower:
            return label
    return VO2MAX_BANDS[-1][1]


def score_recovery(
    hrv: float | None = None,
    resting_hr: float | None = None,
    sleep_efficiency: float | None = None,
    hrv_baseline: BaselineStats | None = None,
    rhr_baseline: BaselineStats | None = None,
) -> ScoreResult:
    """Compute the recovery score.

    Args:
        hrv: Latest HRV (SDNN/RMSSD, ms).
        resting_hr: Latest resting heart rate (bpm).
        sleep_efficiency: Primary session efficiency (0-1).
        hrv_baseline: HRV baseline; only used when personal.
        rhr_baseline: Resting HR baseline; only used when personal.

    Returns:
        ScoreResult; unavailable when none of the three inputs is given.
    """
    if hrv is None and resting_hr is None and sleep_efficiency is None:
        return unavailable(ScoreCategory.RECOVERY, "No recovery data")

    score = BASE_SCORE
    sub: dict = {}

    if hrv is not None:
        label, points = _hrv_band(hrv)
        score += points
        sub.update(hrv=hrv, hrv_band=label, hrv_points=points)

        if hrv_baseline is not None and hrv_baseline.is_personal and hrv_baseline.mean > 0:
            ratio = hrv / hrv_baseline.mean
            adj = 0.0
            if ratio > HRV_RATIO_HIGH:
                adj = BASELINE_ADJUSTMENT
            elif ratio < HRV_RATIO_LOW:
                adj = -BASELINE_ADJUSTMENT
            score += adj
            sub.update(hrv_baseline_ratio=round(ratio, 3), hrv_baseline_adjustment=adj)

    if resting_hr is not None:
        label, points = _rhr_band(resting_hr)
        score += points
        sub.update(resting_hr=resting_hr, rhr_band=label, rhr_points=points)

        if rhr_baseline is not None and rhr_baseline.is_personal:
            delta = rhr_baseline.mean - resting_hr
            adj = 0.0
            if delta > RHR_BELOW_BASELINE:
                adj = BASELINE_ADJUSTMENT
            elif delta < -RHR_ABOVE_BASELINE:
                adj = -BASELINE_ADJUSTMENT
            score += adj
            sub.update(rhr_baseline_delta=round(delta, 1), rhr_baseline_adjustment=adj)

    if sleep_efficiency is not None:
        points = _efficiency_points(sleep_efficiency)
        score += points
        sub.update(sleep_efficiency=sleep_efficiency, efficiency_points=points)

    value = round(clamp(score), 1)
    return ScoreResult(
        category=ScoreCategory.RECOVERY,
        value=value,
        status=banded_status(value, OPTIMAL_AT, MODERATE_AT),
        sub_metrics=sub,
    )
