"""Engine configuration.

Every tunable lives here as a module-level default; :class:`EngineConfig`
bundles them so the orchestrator and CLI can override a few at once.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

# Sleep session reconstruction
MAX_GAP_BETWEEN_SAMPLES = timedelta(minutes=30)
MIN_SESSION_DURATION = timedelta(minutes=90)  # shorter intervals are naps
SLEEP_LOOKBACK = timedelta(hours=12)  # fetch window before the day start

# Baselines
BASELINE_MIN_POINTS = 14
BASELINE_WINDOW = 30  # points
BASELINE_TTL = timedelta(hours=24)
STD_FLOOR_RATIO = 0.05  # effective std >= 5% of the mean

# Orchestration
DEBOUNCE_SECONDS = 1.0

ENV_PREFIX = "HEALTHSCORE_"


@dataclass(frozen=True)
class EngineConfig:
    """Tunables shared by the session builder, baselines and orchestrator."""

    max_gap: timedelta = MAX_GAP_BETWEEN_SAMPLES
    min_session: timedelta = MIN_SESSION_DURATION
    sleep_lookback: timedelta = SLEEP_LOOKBACK
    baseline_min_points: int = BASELINE_MIN_POINTS
    baseline_window: int = BASELINE_WINDOW
    baseline_ttl: timedelta = BASELINE_TTL
    std_floor_ratio: float = STD_FLOOR_RATIO
    debounce_seconds: float = DEBOUNCE_SECONDS

    def replace(self, **overrides) -> EngineConfig:
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> EngineConfig:
        """Build a config from ``HEALTHSCORE_*`` environment variables.

        Recognised variables (all optional):
            HEALTHSCORE_MAX_GAP_MIN, HEALTHSCORE_MIN_SESSION_MIN,
            HEALTHSCORE_BASELINE_MIN_POINTS, HEALTHSCORE_BASELINE_WINDOW,
            HEALTHSCORE_DEBOUNCE_SECONDS.

        Raises:
            ValueError: if a variable is set but not numeric.
        """
        env = os.environ if environ is None else environ
        overrides: dict = {}

        for name, (field_name, convert) in _ENV_FIELDS.items():
            raw = env.get(ENV_PREFIX + name, "").strip()
            if raw:
                overrides[field_name] = convert(raw)

        return cls(**overrides)


def _minutes(raw: str) -> timedelta:
    return timedelta(minutes=float(raw))


# env suffix -> (EngineConfig field, converter)
_ENV_FIELDS = {
    "MAX_GAP_MIN": ("max_gap", _minutes),
    "MIN_SESSION_MIN": ("min_session", _minutes),
    "BASELINE_MIN_POINTS": ("baseline_min_points", int),
    "BASELINE_WINDOW": ("baseline_window", int),
    "DEBOUNCE_SECONDS": ("debounce_seconds", float),
}


DEFAULT_CONFIG = EngineConfig()
