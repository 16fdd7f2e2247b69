from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Final, Optional, Tuple

# (minimum smoothed average, percentile estimate), highest threshold first.
# Hand-tuned heuristic, not a measured population percentile.
DEFAULT_PERCENTILE_STEPS: Final[Tuple[Tuple[float, float], ...]] = (
    (4.5, 95.0),
    (4.2, 90.0),
    (4.0, 80.0),
    (3.8, 70.0),
    (3.5, 60.0),
    (3.2, 50.0),
    (3.0, 40.0),
    (2.5, 20.0),
    (2.0, 10.0),
)
DEFAULT_PERCENTILE_FLOOR: Final = 5.0


@dataclass(frozen=True)
class RatingsConfig:
    # Confidence reaches 1.0 at this many votes
    min_votes_threshold: int = 10
    # Weight of the global prior, in virtual votes
    confidence_constant: float = 25.0
    # Prior used until the first successful refresh
    default_global_mean: float = 3.0

    percentile_steps: Tuple[Tuple[float, float], ...] = DEFAULT_PERCENTILE_STEPS
    percentile_floor: float = DEFAULT_PERCENTILE_FLOOR

    high_confidence: float = 0.95
    reliable_confidence: float = 0.8


@dataclass(frozen=True)
class GlobalPrior:
    """Immutable snapshot of the estimator's shrinkage target and smoothing knobs."""

    global_mean: float
    min_votes_threshold: int
    confidence_constant: float

    @classmethod
    def from_config(cls, config: RatingsConfig, global_mean: Optional[float] = None) -> "GlobalPrior":
        return cls(
            global_mean=float(config.default_global_mean if global_mean is None else global_mean),
            min_votes_threshold=int(config.min_votes_threshold),
            confidence_constant=float(config.confidence_constant),
        )

    def with_mean(self, global_mean: float) -> "GlobalPrior":
        return replace(self, global_mean=float(global_mean))


DEFAULT_RATINGS_CONFIG: Final = RatingsConfig()
