"""Analytics engine: sleep sessions, baselines, validity and daily scores.

Modules:
    sessions  -- Sleep session reconstruction from interval samples
    summary   -- Daily sleep aggregation
    baseline  -- Rolling personal baselines and static priors
    validity  -- Valid / stale / missing classification per metric
    scoring   -- Shared score types
    recovery  -- HRV + RHR + efficiency recovery score
    sleep     -- Weighted sleep score (with basic fallback)
    strain    -- Steps + active energy strain score
    stress    -- HRV-vs-baseline stress score
    pipeline  -- All four scores in one call, trends
"""

from healthscore.analytics.sessions import (
    build_sessions,
    with_derived_metrics,
    SleepSession,
    SleepStages,
    SleepMetrics,
    SourceQuality,
)
from healthscore.analytics.summary import build_daily_summary, day_bounds, DailySleepSummary
from healthscore.analytics.baseline import (
    compute_baseline,
    trailing_average,
    BaselineCache,
    BaselineStats,
    STATIC_PRIORS,
)
from healthscore.analytics.validity import (
    classify,
    MetricTracker,
    MetricState,
    Valid,
    Stale,
    Missing,
    RECENCY_POLICY,
)
from healthscore.analytics.scoring import (
    ScoreCategory,
    ScoreStatus,
    ScoreResult,
    ScoreState,
    Pending,
    Unavailable,
    Computed,
)
from healthscore.analytics.recovery import score_recovery, hrv_status, rhr_status, vo2max_status
from healthscore.analytics.sleep import score_sleep
from healthscore.analytics.strain import score_strain
from healthscore.analytics.stress import score_stress
from healthscore.analytics.pipeline import (
    compute_scores,
    score_trend,
    Baselines,
    DailyMetrics,
    DailyScores,
)

__all__ = [
    # sessions
    "build_sessions",
    "with_derived_metrics",
    "SleepSession",
    "SleepStages",
    "SleepMetrics",
    "SourceQuality",
    # summary
    "build_daily_summary",
    "day_bounds",
    "DailySleepSummary",
    # baseline
    "compute_baseline",
    "trailing_average",
    "BaselineCache",
    "BaselineStats",
    "STATIC_PRIORS",
    # validity
    "classify",
    "MetricTracker",
    "MetricState",
    "Valid",
    "Stale",
    "Missing",
    "RECENCY_POLICY",
    # scoring
    "ScoreCategory",
    "ScoreStatus",
    "ScoreResult",
    "ScoreState",
    "Pending",
    "Unavailable",
    "Computed",
    # recovery
    "score_recovery",
    "hrv_status",
    "rhr_status",
    "vo2max_status",
    # sleep
    "score_sleep",
    # strain
    "score_strain",
    # stress
    "score_stress",
    # pipeline
    "compute_scores",
    "score_trend",
    "Baselines",
    "DailyMetrics",
    "DailyScores",
]
