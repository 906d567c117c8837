"""Tests for healthscore.analytics.pipeline -- all scores in one call."""

import json
from datetime import date

from healthscore.analytics.baseline import BaselineStats
from healthscore.analytics.pipeline import (
    Baselines,
    DailyMetrics,
    compute_scores,
    score_trend,
)
from healthscore.analytics.scoring import ScoreCategory, ScoreStatus
from healthscore.analytics.sessions import build_sessions

from tests.conftest import NOW, make_staged_night, ts

DAY = date(2026, 2, 13)


class TestComputeScores:
    def test_empty_metrics_all_unavailable(self):
        scores = compute_scores(DAY, DailyMetrics())
        for category in ScoreCategory:
            assert scores.get(category).status is ScoreStatus.UNAVAILABLE

    def test_full_day(self):
        session = build_sessions(make_staged_night(ts(23, 0, day=12)), ts(0, 0, day=12), NOW, now=NOW)[0]
        metrics = DailyMetrics(
            hrv=45.0,
            resting_hr=55.0,
            sleep_session=session,
            steps=8000,
            active_energy=400,
        )
        scores = compute_scores(DAY, metrics)
        # efficiency comes from the session (0.98 -> +15)
        assert scores.recovery.value == 93.0
        assert scores.sleep.sub_metrics["method"] == "comprehensive"
        assert scores.strain.value == 67.0
        assert scores.stress.value == 50.0

    def test_basic_sleep_without_session(self):
        scores = compute_scores(DAY, DailyMetrics(sleep_duration_hours=7.2, wake_events=1))
        assert scores.sleep.sub_metrics["method"] == "basic"
        assert scores.sleep.value == 67.0

    def test_explicit_efficiency_feeds_recovery(self):
        scores = compute_scores(DAY, DailyMetrics(sleep_efficiency=0.6))
        assert scores.recovery.value == 38.0

    def test_baselines_passed_through(self):
        baselines = Baselines(hrv=BaselineStats(mean=60.0, std_dev=8.0, count=30))
        scores = compute_scores(DAY, DailyMetrics(hrv=42.0), baselines)
        # ratio 0.7: stress +25, recovery -10
        assert scores.stress.value == 75.0
        assert scores.recovery.value == 50.0 + 8.0 - 10.0

    def test_to_json(self):
        scores = compute_scores(DAY, DailyMetrics(hrv=45.0, resting_hr=55.0))
        data = json.loads(scores.to_json())
        assert data["date"] == "2026-02-13"
        assert data["recovery"]["value"] == 78.0
        assert data["recovery"]["status"] == "optimal"
        assert data["strain"]["value"] is None
        assert data["strain"]["status"] == "unavailable"

    def test_repr(self):
        scores = compute_scores(DAY, DailyMetrics(hrv=45.0, resting_hr=55.0))
        assert "recovery=78" in repr(scores)
        assert "strain=-" in repr(scores)


class TestScoreTrend:
    def _history(self, hrvs):
        return [
            compute_scores(date(2026, 2, i + 1), DailyMetrics(hrv=h, resting_hr=60.0))
            for i, h in enumerate(hrvs)
        ]

    def test_last_n_days(self):
        history = self._history([15.0, 25.0, 35.0, 55.0, 75.0])
        assert score_trend(history, ScoreCategory.RECOVERY, days=3) == [66.0, 73.0, 78.0]

    def test_accepts_string_category(self):
        history = self._history([35.0, 55.0])
        assert score_trend(history, "stress") == [50.0, 50.0]

    def test_unavailable_days_left_out(self):
        history = self._history([35.0, 55.0])
        assert score_trend(history, ScoreCategory.STRAIN) == []

    def test_zero_days(self):
        assert score_trend(self._history([35.0]), ScoreCategory.RECOVERY, days=0) == []
