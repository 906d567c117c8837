"""Tests for healthscore.orchestrator -- gating, debouncing and snapshots."""

import asyncio
from datetime import timedelta

import pytest

from healthscore.analytics.scoring import Computed, Pending, ScoreCategory, ScoreStatus, Unavailable
from healthscore.analytics.validity import Missing, Stale, Valid
from healthscore.config import EngineConfig
from healthscore.exceptions import SampleSourceError
from healthscore.orchestrator import DailySnapshot, ScoreOrchestrator, gate_reason
from healthscore.samples import MetricType, StaticSampleSource

from tests.conftest import NOW, daily_series, make_night, make_source, make_staged_night, ts


class FlakySource(StaticSampleSource):
    """StaticSampleSource whose fetches can be made to fail."""

    fail = False

    async def fetch_latest(self, metric):
        if self.fail:
            raise RuntimeError("health store unavailable")
        return await super().fetch_latest(metric)


def recovery_source(hrv=45.0, rhr=55.0, age=timedelta(hours=2)):
    source = FlakySource()
    if hrv is not None:
        source.add_quantity(MetricType.HRV, NOW - age, hrv)
    if rhr is not None:
        source.add_quantity(MetricType.RESTING_HR, NOW - age, rhr)
    return source


def refresh_and_flush(orchestrator, day=None):
    async def scenario():
        await orchestrator.refresh(day)
        orchestrator.flush()

    asyncio.run(scenario())


def flush_now(orchestrator, action):
    """Run *action* then flush, inside an event loop."""
    async def scenario():
        action()
        orchestrator.flush()

    asyncio.run(scenario())


class TestInitialState:
    def test_all_scores_pending(self, clock):
        orch = ScoreOrchestrator(make_source(), clock=clock)
        assert all(s == Pending() for s in orch.score_states().values())

    def test_metrics_missing_before_refresh(self, clock):
        orch = ScoreOrchestrator(make_source(), clock=clock)
        assert orch.metric_state(MetricType.HRV) == Missing()
        assert orch.sessions == ()
        assert orch.daily_summary is None


class TestRecoveryPipeline:
    def test_valid_inputs_compute_optimal(self, clock):
        orch = ScoreOrchestrator(recovery_source(), clock=clock)
        refresh_and_flush(orch)
        state = orch.score_state(ScoreCategory.RECOVERY)
        assert state == Computed(78.0, ScoreStatus.OPTIMAL)

    def test_missing_hrv(self, clock):
        orch = ScoreOrchestrator(recovery_source(hrv=None), clock=clock)
        refresh_and_flush(orch)
        assert orch.metric_state(MetricType.HRV) == Missing()
        assert orch.score_state(ScoreCategory.RECOVERY) == Unavailable("No HRV data")
        assert orch.score_state(ScoreCategory.STRESS) == Unavailable("No HRV data")

    def test_stale_hrv(self, clock):
        orch = ScoreOrchestrator(recovery_source(age=timedelta(days=8)), clock=clock)
        refresh_and_flush(orch)
        assert isinstance(orch.metric_state(MetricType.HRV), Stale)
        assert orch.score_state(ScoreCategory.RECOVERY) == Unavailable("HRV data is stale")

    def test_missing_reported_before_stale(self, clock):
        source = recovery_source(rhr=None, age=timedelta(days=8))
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        assert orch.score_state(ScoreCategory.RECOVERY) == Unavailable("No RHR data")

    def test_sleep_efficiency_read_from_summary(self, clock):
        source = recovery_source()
        source.intervals.extend(make_staged_night(ts(23, 0, day=12)))
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        # 78 + 15 for 98% efficiency
        assert orch.score_state(ScoreCategory.RECOVERY) == Computed(93.0, ScoreStatus.OPTIMAL)

    def test_personal_baseline_applied(self, clock):
        source = make_source(
            hrv=daily_series([60.0] * 19 + [45.0]),
            resting_hr=daily_series([55.0] * 20),
        )
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        assert orch.baseline(MetricType.HRV).is_personal
        # HRV 45 vs ~59.25 mean: ratio < 0.8 -> -10
        assert orch.score_state(ScoreCategory.RECOVERY).value == 68.0
        assert orch.score_state(ScoreCategory.STRESS).value == 75.0


class TestOtherPipelines:
    def test_sleep_computed_from_session(self, clock):
        source = make_source(make_night(ts(23, 0, day=12), ts(6, 30), awake=[(ts(2, 0), ts(2, 10))]))
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        assert len(orch.sessions) == 1
        assert orch.daily_summary.has_data
        assert isinstance(orch.metric_state(MetricType.SLEEP_DURATION), Valid)
        assert orch.metric_state(MetricType.SLEEP_DURATION).value == pytest.approx(7.5)
        assert isinstance(orch.score_state(ScoreCategory.SLEEP), Computed)

    def test_sleep_unavailable_without_session(self, clock):
        orch = ScoreOrchestrator(make_source(), clock=clock)
        refresh_and_flush(orch)
        assert orch.score_state(ScoreCategory.SLEEP) == Unavailable("No sleep data")

    def test_sleep_from_ingested_duration(self, clock):
        orch = ScoreOrchestrator(make_source(), clock=clock)
        refresh_and_flush(orch)
        flush_now(orch, lambda: orch.ingest(MetricType.SLEEP_DURATION, 8.0, NOW - timedelta(hours=5)))
        assert orch.score_state(ScoreCategory.SLEEP) == Computed(70.0, ScoreStatus.MODERATE)

    def test_low_activity_strain_is_zero(self, clock):
        source = make_source(
            steps=[(NOW - timedelta(hours=1), 500.0)],
            active_energy=[(NOW - timedelta(hours=1), 100.0)],
        )
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        assert orch.score_state(ScoreCategory.STRAIN) == Computed(0.0, ScoreStatus.POOR)

    def test_strain_needs_both_inputs(self, clock):
        source = make_source(steps=[(NOW - timedelta(hours=1), 9000.0)])
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        assert orch.score_state(ScoreCategory.STRAIN) == Unavailable("No active energy data")


class TestRefresh:
    def test_source_failure_wrapped_and_state_kept(self, clock):
        source = recovery_source()
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        before = orch.score_states()

        source.fail = True
        with pytest.raises(SampleSourceError) as excinfo:
            refresh_and_flush(orch)
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert orch.score_states() == before

    def test_failure_on_first_refresh_leaves_pending(self, clock):
        source = recovery_source()
        source.fail = True
        orch = ScoreOrchestrator(source, clock=clock)
        with pytest.raises(SampleSourceError):
            refresh_and_flush(orch)
        assert orch.score_state(ScoreCategory.RECOVERY) == Pending()
        assert orch.metric_state(MetricType.HRV) == Missing()

    def test_data_availability(self, clock):
        orch = ScoreOrchestrator(recovery_source(), clock=clock)
        refresh_and_flush(orch)
        availability = orch.data_availability()
        assert not availability.is_complete
        assert set(availability.missing) == {
            MetricType.SLEEP_DURATION,
            MetricType.STEPS,
            MetricType.ACTIVE_ENERGY,
        }
        assert availability.stale == ()
        assert availability.last_refresh == NOW

    def test_trailing_average(self, clock):
        source = make_source(hrv=daily_series([100.0] * 10 + [40.0] * 7))
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        assert orch.trailing_average(MetricType.HRV, 7) == pytest.approx(47.5)
        assert orch.trailing_average(MetricType.STEPS) is None

    def test_metric_subscription(self, clock):
        orch = ScoreOrchestrator(recovery_source(), clock=clock)
        seen = []
        orch.subscribe_metric(MetricType.HRV, seen.append)
        refresh_and_flush(orch)
        assert seen == [Valid(45.0, NOW - timedelta(hours=2))]

    def test_score_subscription(self, clock):
        orch = ScoreOrchestrator(recovery_source(), clock=clock)
        seen = []
        orch.subscribe_score(ScoreCategory.RECOVERY, seen.append, replay=True)
        refresh_and_flush(orch)
        assert seen == [Pending(), Computed(78.0, ScoreStatus.OPTIMAL)]


class TestIngestAndReevaluate:
    def test_ingest_fills_missing_input(self, clock):
        orch = ScoreOrchestrator(recovery_source(hrv=None), clock=clock)
        refresh_and_flush(orch)
        flush_now(orch, lambda: orch.ingest(MetricType.HRV, 45.0, NOW))
        assert orch.score_state(ScoreCategory.RECOVERY) == Computed(78.0, ScoreStatus.OPTIMAL)

    def test_older_observation_ignored(self, clock):
        orch = ScoreOrchestrator(recovery_source(), clock=clock)
        refresh_and_flush(orch)
        assert not orch.ingest(MetricType.HRV, 10.0, NOW - timedelta(days=1))
        assert orch.metric_state(MetricType.HRV).value == 45.0

    def test_reevaluate_marks_stale(self, clock):
        orch = ScoreOrchestrator(recovery_source(), clock=clock)
        refresh_and_flush(orch)
        clock.advance(days=7)
        flush_now(orch, orch.reevaluate)
        assert orch.score_state(ScoreCategory.RECOVERY) == Unavailable("HRV data is stale")

    def test_reevaluate_without_change_keeps_state(self, clock):
        orch = ScoreOrchestrator(recovery_source(), clock=clock)
        refresh_and_flush(orch)
        clock.advance(hours=1)
        orch.reevaluate()
        assert not any(d.pending for d in orch._debouncers.values())

    def test_close_stops_reacting(self, clock):
        orch = ScoreOrchestrator(recovery_source(hrv=None), clock=clock)
        refresh_and_flush(orch)
        orch.close()
        flush_now(orch, lambda: orch.ingest(MetricType.HRV, 45.0, NOW))
        assert orch.score_state(ScoreCategory.RECOVERY) == Unavailable("No HRV data")

    def test_ingest_reclassifies_other_inputs(self, clock):
        taken = []
        source = recovery_source(age=timedelta(days=6, hours=23))
        orch = ScoreOrchestrator(source, clock=clock, on_snapshot=taken.append)
        refresh_and_flush(orch)
        assert orch.score_state(ScoreCategory.RECOVERY) == Computed(78.0, ScoreStatus.OPTIMAL)

        clock.advance(hours=2)
        flush_now(orch, lambda: orch.ingest(MetricType.HRV, 50.0, clock.now))
        assert isinstance(orch.metric_state(MetricType.RESTING_HR), Stale)
        assert orch.score_state(ScoreCategory.RECOVERY) == Unavailable("RHR data is stale")
        assert len(taken) == 1

    def test_stale_sleep_efficiency_not_used(self, clock):
        source = recovery_source()
        source.intervals.extend(make_staged_night(ts(23, 0, day=12)))
        orch = ScoreOrchestrator(source, clock=clock)
        refresh_and_flush(orch)
        assert orch.score_state(ScoreCategory.RECOVERY).value == 93.0

        clock.advance(hours=25)

        def fresh_readings():
            orch.ingest(MetricType.HRV, 45.0, clock.now)
            orch.ingest(MetricType.RESTING_HR, 55.0, clock.now)

        flush_now(orch, fresh_readings)
        assert isinstance(orch.metric_state(MetricType.SLEEP_DURATION), Stale)
        assert orch.score_state(ScoreCategory.RECOVERY) == Computed(78.0, ScoreStatus.OPTIMAL)


class TestDebounce:
    def test_pipelines_run_after_delay(self, clock):
        config = EngineConfig(debounce_seconds=0.01)
        orch = ScoreOrchestrator(recovery_source(), clock=clock, config=config)

        async def scenario():
            await orch.refresh()
            assert orch.score_state(ScoreCategory.RECOVERY) == Pending()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert orch.score_state(ScoreCategory.RECOVERY) == Computed(78.0, ScoreStatus.OPTIMAL)

    def test_burst_of_updates_computes_once(self, clock):
        config = EngineConfig(debounce_seconds=0.02)
        orch = ScoreOrchestrator(recovery_source(), clock=clock, config=config)
        runs = []
        original = orch._run_pipeline
        orch._run_pipeline = lambda c: (runs.append(c), original(c))

        async def scenario():
            await orch.refresh()
            for i in range(5):
                orch.ingest(MetricType.HRV, 45.0 + i, NOW + timedelta(seconds=i))
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        assert runs.count(ScoreCategory.RECOVERY) == 1
        assert orch.score_state(ScoreCategory.RECOVERY).value == 78.0


class TestSnapshots:
    def test_first_computed_recovery_snapshotted(self, clock):
        taken = []
        orch = ScoreOrchestrator(recovery_source(), clock=clock, on_snapshot=taken.append)
        refresh_and_flush(orch)
        assert len(taken) == 1
        snap = taken[0]
        assert isinstance(snap, DailySnapshot)
        assert snap.day == NOW.date()
        assert snap.hrv == 45.0
        assert snap.resting_hr == 55.0
        assert snap.recovery == Computed(78.0, ScoreStatus.OPTIMAL)
        assert orch.snapshots == (snap,)
        assert snap.to_dict()["recovery"] == 78.0

    def test_once_per_day(self, clock):
        taken = []
        orch = ScoreOrchestrator(recovery_source(), clock=clock, on_snapshot=taken.append)
        refresh_and_flush(orch)
        flush_now(orch, lambda: orch.ingest(MetricType.HRV, 60.0, NOW + timedelta(minutes=5)))
        assert orch.score_state(ScoreCategory.RECOVERY).value == 85.0
        assert len(taken) == 1

    def test_next_day_takes_new_snapshot(self, clock):
        taken = []
        orch = ScoreOrchestrator(recovery_source(), clock=clock, on_snapshot=taken.append)
        refresh_and_flush(orch)
        clock.advance(days=1)
        flush_now(orch, lambda: orch.ingest(MetricType.HRV, 60.0, clock.now))
        assert [s.day for s in taken] == [NOW.date(), NOW.date() + timedelta(days=1)]
        assert orch.recovery_trend(7) == [78.0, 85.0]
        assert orch.recovery_trend(1) == [85.0]

    def test_no_snapshot_when_unavailable(self, clock):
        taken = []
        orch = ScoreOrchestrator(recovery_source(hrv=None), clock=clock, on_snapshot=taken.append)
        refresh_and_flush(orch)
        assert taken == []
        assert orch.recovery_trend() == []

    def test_sink_failure_propagates(self, clock):
        def sink(snapshot):
            raise ValueError("disk full")

        orch = ScoreOrchestrator(recovery_source(), clock=clock, on_snapshot=sink)

        async def scenario():
            await orch.refresh()
            with pytest.raises(ValueError):
                orch.flush()

        asyncio.run(scenario())
        assert orch.snapshots == ()


class TestGateReason:
    def test_all_valid(self):
        states = {MetricType.HRV: Valid(45.0, NOW), MetricType.RESTING_HR: Valid(55.0, NOW)}
        assert gate_reason(states, (MetricType.HRV, MetricType.RESTING_HR)) is None

    def test_first_missing_in_order(self):
        states = {MetricType.HRV: Missing(), MetricType.RESTING_HR: Missing()}
        assert gate_reason(states, (MetricType.HRV, MetricType.RESTING_HR)) == "No HRV data"

    def test_absent_counts_as_missing(self):
        assert gate_reason({}, (MetricType.STEPS,)) == "No steps data"
