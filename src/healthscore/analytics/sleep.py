"""Sleep score.

With a reconstructed session the score is a weighted sum of five
component scores (each 0-100), minus a WASO penalty:

    duration        40%   peaks between 8.5 and 9.5 h
    efficiency      25%   100 at >= 90%
    REM share       15%   optimal 20-25% of sleep
    deep share      15%   optimal 15-20% of sleep
    fragmentation    5%   100 - 10 per wake event/hour

Without a session, a basic banded formula over whatever scalar inputs are
available (duration, efficiency, wake events) is used instead.
"""

from __future__ import annotations

import numpy as np

from healthscore.analytics.scoring import (
    ScoreCategory,
    ScoreResult,
    banded_status,
    clamp,
    unavailable,
)
from healthscore.analytics.sessions import SleepSession


# ---------------------------------------------------------------------------
# Component curves (piecewise-linear, flat beyond the end points)
# ---------------------------------------------------------------------------

DURATION_CURVE = ([0.0, 5.5, 6.5, 7.5, 8.5, 9.5, 10.5, 12.0],
                  [0.0, 50.0, 70.0, 85.0, 100.0, 100.0, 85.0, 50.0])
EFFICIENCY_CURVE = ([0.5, 0.65, 0.75, 0.85, 0.90],
                    [0.0, 40.0, 60.0, 85.0, 100.0])
REM_CURVE = ([0.0, 10.0, 20.0, 25.0, 35.0, 50.0],
             [0.0, 50.0, 100.0, 100.0, 60.0, 20.0])
DEEP_CURVE = ([0.0, 5.0, 15.0, 20.0, 30.0, 45.0],
              [0.0, 40.0, 100.0, 100.0, 70.0, 30.0])

W_DURATION = 0.40
W_EFFICIENCY = 0.25
W_REM = 0.15
W_DEEP = 0.15
W_FRAGMENTATION = 0.05

# (max WASO minutes, penalty points)
WASO_PENALTIES = [(0.0, 0.0), (10.0, 2.0), (20.0, 5.0), (30.0, 10.0)]
WASO_PENALTY_MAX = 15.0

OPTIMAL_AT = 80.0
MODERATE_AT = 60.0

BASE_SCORE = 50.0


def _curve(x: float, curve: tuple[list[float], list[float]]) -> float:
    xs, ys = curve
    return float(np.interp(x, xs, ys))


def _waso_penalty(waso_min: float) -> float:
    for limit, penalty in WASO_PENALTIES:
        if waso_min <= limit:
            return penalty
    return WASO_PENALTY_MAX


def _comprehensive(session: SleepSession) -> ScoreResult:
    hours = session.duration_hours
    fi = session.metrics.fragmentation_index
    waso_min = session.metrics.waso.total_seconds() / 60.0

    components = {
        "duration": _curve(hours, DURATION_CURVE),
        "efficiency": _curve(session.efficiency, EFFICIENCY_CURVE),
        "rem": _curve(session.stages.rem_pct, REM_CURVE),
        "deep": _curve(session.stages.deep_pct, DEEP_CURVE),
        "fragmentation": max(0.0, 100.0 - fi * 10.0),
    }
    weighted = (
        W_DURATION * components["duration"]
        + W_EFFICIENCY * components["efficiency"]
        + W_REM * components["rem"]
        + W_DEEP * components["deep"]
        + W_FRAGMENTATION * components["fragmentation"]
    )
    penalty = _waso_penalty(waso_min)
    value = round(clamp(weighted - penalty), 1)

    sub = {f"{k}_score": round(v, 1) for k, v in components.items()}
    sub.update(
        duration_hours=round(hours, 2),
        efficiency=round(session.efficiency, 3),
        rem_pct=round(session.stages.rem_pct, 1),
        deep_pct=round(session.stages.deep_pct, 1),
        waso_min=round(waso_min, 1),
        waso_penalty=penalty,
        source=session.source.value,
        method="comprehensive",
    )
    return ScoreResult(
        category=ScoreCategory.SLEEP,
        value=value,
        status=banded_status(value, OPTIMAL_AT, MODERATE_AT),
        sub_metrics=sub,
    )


def _basic(
    duration_hours: float | None,
    efficiency: float | None,
    wake_events: int | None,
) -> ScoreResult:
    score = BASE_SCORE
    sub: dict = {"method": "basic"}

    if duration_hours is not None:
        if duration_hours >= 8:
            points = 20.0
        elif duration_hours >= 7:
            points = 12.0
        elif duration_hours >= 6:
            points = 5.0
        elif duration_hours < 5:
            points = -20.0
        else:
            points = -10.0
        score += points
        sub.update(duration_hours=duration_hours, duration_points=points)

    if efficiency is not None:
        if efficiency >= 0.9:
            points = 20.0
        elif efficiency >= 0.85:
            points = 12.0
        elif efficiency >= 0.8:
            points = 5.0
        elif efficiency < 0.75:
            points = -20.0
        else:
            points = -10.0
        score += points
        sub.update(efficiency=efficiency, efficiency_points=points)

    if wake_events is not None:
        if wake_events == 0:
            points = 10.0
        elif wake_events <= 2:
            points = 5.0
        elif wake_events > 5:
            points = -10.0
        else:
            points = 0.0
        score += points
        sub.update(wake_events=wake_events, wake_points=points)

    value = round(clamp(score), 1)
    return ScoreResult(
        category=ScoreCategory.SLEEP,
        value=value,
        status=banded_status(value, OPTIMAL_AT, MODERATE_AT),
        sub_metrics=sub,
    )


def score_sleep(
    session: SleepSession | None = None,
    *,
    duration_hours: float | None = None,
    efficiency: float | None = None,
    wake_events: int | None = None,
) -> ScoreResult:
    """Score one night of sleep.

    Args:
        session: Primary session of the night; enables the full score.
        duration_hours: Fallback total sleep (hours) when no session.
        efficiency: Fallback efficiency (0-1).
        wake_events: Fallback wake event count.

    Returns:
        ScoreResult; unavailable when neither a session nor any fallback
        input is provided.
    """
    if session is not None:
        return _comprehensive(session)
    if duration_hours is None and efficiency is None and wake_events is None:
        return unavailable(ScoreCategory.SLEEP, "No sleep data")
    return _basic(duration_hours, efficiency, wake_events)
