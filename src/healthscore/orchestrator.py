"""Reactive score orchestration.

The orchestrator owns the published state of the engine: one observable
validity state per metric, one observable score state per category, plus
the reconstructed sessions and today's sleep summary.  Each score category
runs as its own pipeline:

    recovery  <- HRV, resting HR      (reads sleep efficiency when it runs)
    sleep     <- sleep duration, daily summary
    strain    <- steps, active energy
    stress    <- HRV

A pipeline is re-run (debounced, 1 s by default) whenever one of its input
states changes.  Before scoring, every input must be Valid; otherwise the
category is published as Unavailable with a reason naming the first
missing (or else stale) input.

Once per day, the first Computed recovery is recorded as a DailySnapshot
and handed to the ``on_snapshot`` sink.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable

from healthscore.analytics.baseline import BaselineCache, BaselineStats, trailing_average
from healthscore.analytics.recovery import score_recovery
from healthscore.analytics.scoring import (
    Computed,
    Pending,
    ScoreCategory,
    ScoreResult,
    ScoreState,
    Unavailable,
    state_from_result,
)
from healthscore.analytics.sessions import SleepSession, build_sessions
from healthscore.analytics.sleep import score_sleep
from healthscore.analytics.strain import score_strain
from healthscore.analytics.stress import score_stress
from healthscore.analytics.summary import DailySleepSummary, build_daily_summary, day_bounds
from healthscore.analytics.validity import MetricState, MetricTracker, Missing, Stale, Valid
from healthscore.config import DEFAULT_CONFIG, EngineConfig
from healthscore.events import Debouncer, Observable
from healthscore.exceptions import SampleSourceError
from healthscore.samples import SLEEP_CATEGORIES, MetricType, QuantityPoint, SampleSource

logger = logging.getLogger(__name__)

# Inputs that must all be Valid before a category is scored, in reason order
READY_SETS: dict[ScoreCategory, tuple[MetricType, ...]] = {
    ScoreCategory.RECOVERY: (MetricType.HRV, MetricType.RESTING_HR),
    ScoreCategory.SLEEP: (MetricType.SLEEP_DURATION,),
    ScoreCategory.STRAIN: (MetricType.STEPS, MetricType.ACTIVE_ENERGY),
    ScoreCategory.STRESS: (MetricType.HRV,),
}

SCORED_METRICS = (
    MetricType.HRV,
    MetricType.RESTING_HR,
    MetricType.SLEEP_DURATION,
    MetricType.STEPS,
    MetricType.ACTIVE_ENERGY,
)

BASELINE_METRICS = (
    MetricType.HRV,
    MetricType.RESTING_HR,
    MetricType.STEPS,
    MetricType.ACTIVE_ENERGY,
)

BASELINE_HISTORY = timedelta(days=30)


@dataclass(frozen=True)
class DailySnapshot:
    """The day's first computed recovery and the readings behind it."""

    day: date
    taken_at: datetime
    hrv: float | None
    resting_hr: float | None
    recovery: Computed

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "taken_at": self.taken_at.isoformat(),
            "hrv": self.hrv,
            "resting_hr": self.resting_hr,
            "recovery": self.recovery.value,
            "status": self.recovery.status.value,
        }


@dataclass(frozen=True)
class DataAvailability:
    """Which scored inputs are currently unusable."""

    missing: tuple[MetricType, ...] = ()
    stale: tuple[MetricType, ...] = ()
    last_refresh: datetime | None = None

    @property
    def is_complete(self) -> bool:
        return not self.missing and not self.stale


def gate_reason(states: dict[MetricType, MetricState], required: tuple[MetricType, ...]) -> str | None:
    """Reason the required inputs are not all Valid, or None if they are."""
    for metric in required:
        if not isinstance(states.get(metric), (Valid, Stale)):
            return f"No {metric.label} data"
    for metric in required:
        if isinstance(states[metric], Stale):
            return f"{metric.label} data is stale"
    return None


class ScoreOrchestrator:
    """Fetches samples, tracks validity and publishes the four scores.

    Args:
        source: Where samples come from.
        config: Engine tunables.
        clock: Returns "now"; defaults to :meth:`datetime.now`.
        on_snapshot: Called with each new DailySnapshot.  Exceptions it
            raises propagate and leave the day without a snapshot.
    """

    def __init__(
        self,
        source: SampleSource,
        *,
        config: EngineConfig = DEFAULT_CONFIG,
        clock: Callable[[], datetime] | None = None,
        on_snapshot: Callable[[DailySnapshot], None] | None = None,
    ) -> None:
        self.source = source
        self.config = config
        self._clock = clock or datetime.now
        self._on_snapshot = on_snapshot

        self._tracker = MetricTracker()
        self._baselines = BaselineCache(
            ttl=config.baseline_ttl,
            min_points=config.baseline_min_points,
            window=config.baseline_window,
            floor_ratio=config.std_floor_ratio,
        )
        self._series: dict[MetricType, list[QuantityPoint]] = {}
        self._snapshots: list[DailySnapshot] = []
        self._last_snapshot_day: date | None = None
        self._last_refresh: datetime | None = None
        self._closed = False

        # None until first classified, so the first state always publishes
        self._metric_obs: dict[MetricType, Observable[MetricState | None]] = {
            m: Observable(None, name=m.value) for m in self._tracker.policy
        }
        self._score_obs: dict[ScoreCategory, Observable[ScoreState]] = {
            c: Observable(Pending(), name=c.value) for c in ScoreCategory
        }
        self._sessions_obs: Observable[tuple[SleepSession, ...]] = Observable((), name="sessions")
        self._summary_obs: Observable[DailySleepSummary | None] = Observable(None, name="summary")

        self._debouncers = {
            c: Debouncer(config.debounce_seconds, self._pipeline(c), name=c.value)
            for c in ScoreCategory
        }

        self._unsubscribers: list[Callable[[], None]] = []
        for category, inputs in READY_SETS.items():
            for metric in inputs:
                self._unsubscribers.append(
                    self._metric_obs[metric].subscribe(self._trigger(category))
                )
        self._unsubscribers.append(
            self._summary_obs.subscribe(self._trigger(ScoreCategory.SLEEP))
        )

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    async def refresh(self, day: date | None = None) -> None:
        """Fetch everything from the source and republish.

        All fetches complete before any state changes; if one fails, the
        error is raised as SampleSourceError and published state is kept.
        """
        now = self._clock()
        day = day or now.date()
        day_start, _ = day_bounds(day, now.tzinfo)
        sleep_start = day_start - self.config.sleep_lookback

        try:
            latest: dict[MetricType, tuple[float, datetime] | None] = {}
            for metric in self._tracker.policy:
                if metric is MetricType.SLEEP_DURATION:
                    continue
                latest[metric] = await self.source.fetch_latest(metric)
            series: dict[MetricType, list[QuantityPoint]] = {}
            for metric in BASELINE_METRICS:
                series[metric] = list(
                    await self.source.fetch_quantity_series(metric, now - BASELINE_HISTORY, now)
                )
            intervals = await self.source.fetch_interval_samples(SLEEP_CATEGORIES, sleep_start, now)
        except Exception as exc:
            logger.warning("Sample source failed during refresh: %s", exc)
            raise SampleSourceError(f"refresh failed: {exc}") from exc

        sessions = build_sessions(
            intervals,
            sleep_start,
            now,
            now=now,
            max_gap=self.config.max_gap,
            min_duration=self.config.min_session,
        )
        summary = build_daily_summary(day, sessions)

        for metric, reading in latest.items():
            if reading is not None:
                value, ts = reading
                self._tracker.observe(metric, value, ts)
        if summary.has_data:
            self._tracker.observe(
                MetricType.SLEEP_DURATION, summary.duration_hours, summary.primary_session.end
            )

        for metric, points in series.items():
            self._series[metric] = points
            self._baselines.update(metric, points, now)

        self._last_refresh = now
        self._sessions_obs.publish(tuple(sessions))
        self._summary_obs.publish(summary)
        self._publish_states(now)

        logger.info(
            "Refreshed %s: %d session(s), %.1fh sleep, %d sample(s)",
            day.isoformat(), len(sessions), summary.duration_hours, len(intervals),
        )

    def ingest(self, metric: MetricType, value: float, timestamp: datetime) -> bool:
        """Push a single new observation; returns True if it was newer.

        Every tracked metric is reclassified against the clock, not just
        *metric*, so inputs that aged out since the last update go stale.
        """
        metric = MetricType(metric)
        if not self._tracker.observe(metric, value, timestamp):
            return False
        self._publish_states(self._clock())
        return True

    def reevaluate(self) -> None:
        """Reclassify every metric against the current clock."""
        self._publish_states(self._clock())

    def flush(self) -> None:
        """Run any pending pipelines immediately."""
        for category in ScoreCategory:
            self._debouncers[category].flush()

    def close(self) -> None:
        """Cancel pending pipelines and stop reacting to changes."""
        self._closed = True
        for debouncer in self._debouncers.values():
            debouncer.cancel()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    def metric_state(self, metric: MetricType) -> MetricState:
        state = self._metric_obs[MetricType(metric)].value
        return state if state is not None else Missing()

    def metric_states(self) -> dict[MetricType, MetricState]:
        return {m: self.metric_state(m) for m in self._metric_obs}

    def score_state(self, category: ScoreCategory) -> ScoreState:
        return self._score_obs[ScoreCategory(category)].value

    def score_states(self) -> dict[ScoreCategory, ScoreState]:
        return {c: obs.value for c, obs in self._score_obs.items()}

    @property
    def sessions(self) -> tuple[SleepSession, ...]:
        return self._sessions_obs.value

    @property
    def daily_summary(self) -> DailySleepSummary | None:
        return self._summary_obs.value

    @property
    def snapshots(self) -> tuple[DailySnapshot, ...]:
        return tuple(self._snapshots)

    def baseline(self, metric: MetricType) -> BaselineStats | None:
        return self._baselines.get(metric)

    def recovery_trend(self, days: int = 7) -> list[float]:
        """Recovery values of the last *days* snapshots, oldest first."""
        if days <= 0:
            return []
        return [s.recovery.value for s in self._snapshots[-days:]]

    def trailing_average(self, metric: MetricType, days: int = 7) -> float | None:
        series = self._series.get(MetricType(metric), [])
        return trailing_average(series, days, now=self._clock())

    def data_availability(self) -> DataAvailability:
        states = self.metric_states()
        return DataAvailability(
            missing=tuple(m for m in SCORED_METRICS if isinstance(states[m], Missing)),
            stale=tuple(m for m in SCORED_METRICS if isinstance(states[m], Stale)),
            last_refresh=self._last_refresh,
        )

    def subscribe_metric(
        self,
        metric: MetricType,
        callback: Callable[[MetricState | None], None],
        *,
        replay: bool = False,
    ) -> Callable[[], None]:
        return self._metric_obs[MetricType(metric)].subscribe(callback, replay=replay)

    def subscribe_score(
        self,
        category: ScoreCategory,
        callback: Callable[[ScoreState], None],
        *,
        replay: bool = False,
    ) -> Callable[[], None]:
        return self._score_obs[ScoreCategory(category)].subscribe(callback, replay=replay)

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    def _publish_states(self, now: datetime) -> None:
        for metric, obs in self._metric_obs.items():
            obs.publish(self._tracker.state(metric, now))

    def _trigger(self, category: ScoreCategory) -> Callable[[Any], None]:
        def on_change(_value: Any) -> None:
            if not self._closed:
                self._debouncers[category].trigger()
        return on_change

    def _pipeline(self, category: ScoreCategory) -> Callable[[], None]:
        return lambda: self._run_pipeline(category)

    def _run_pipeline(self, category: ScoreCategory) -> None:
        now = self._clock()
        # gate on states as of now, not as last published
        self._publish_states(now)
        states = self.metric_states()
        reason = gate_reason(states, READY_SETS[category])

        if reason is not None:
            state: ScoreState = Unavailable(reason)
        else:
            state = state_from_result(self._score(category, states))

        logger.debug("Pipeline %s -> %r", category.value, state)
        self._score_obs[category].publish(state)

        if category is ScoreCategory.RECOVERY:
            self._maybe_snapshot(now, states, state)

    def _score(self, category: ScoreCategory, states: dict[MetricType, MetricState]) -> ScoreResult:
        def value(metric: MetricType) -> float | None:
            state = states.get(metric)
            return state.value if isinstance(state, Valid) else None

        summary = self.daily_summary
        has_sleep = summary is not None and summary.has_data
        fresh_sleep = has_sleep and isinstance(states.get(MetricType.SLEEP_DURATION), Valid)

        if category is ScoreCategory.RECOVERY:
            return score_recovery(
                hrv=value(MetricType.HRV),
                resting_hr=value(MetricType.RESTING_HR),
                sleep_efficiency=summary.primary_session.efficiency if fresh_sleep else None,
                hrv_baseline=self._baselines.get(MetricType.HRV),
                rhr_baseline=self._baselines.get(MetricType.RESTING_HR),
            )
        if category is ScoreCategory.SLEEP:
            if has_sleep:
                return score_sleep(summary.primary_session)
            return score_sleep(duration_hours=value(MetricType.SLEEP_DURATION))
        if category is ScoreCategory.STRAIN:
            return score_strain(
                steps=value(MetricType.STEPS),
                active_energy=value(MetricType.ACTIVE_ENERGY),
                steps_baseline=self._baselines.get(MetricType.STEPS),
                energy_baseline=self._baselines.get(MetricType.ACTIVE_ENERGY),
            )
        return score_stress(
            hrv=value(MetricType.HRV),
            hrv_baseline=self._baselines.get(MetricType.HRV),
        )

    def _maybe_snapshot(
        self,
        now: datetime,
        states: dict[MetricType, MetricState],
        state: ScoreState,
    ) -> None:
        if not isinstance(state, Computed):
            return
        today = now.date()
        if self._last_snapshot_day == today:
            return

        hrv = states.get(MetricType.HRV)
        rhr = states.get(MetricType.RESTING_HR)
        snapshot = DailySnapshot(
            day=today,
            taken_at=now,
            hrv=hrv.value if isinstance(hrv, Valid) else None,
            resting_hr=rhr.value if isinstance(rhr, Valid) else None,
            recovery=state,
        )
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)
        self._snapshots.append(snapshot)
        self._last_snapshot_day = today
        logger.info("Daily snapshot %s: recovery %.1f", today.isoformat(), state.value)
