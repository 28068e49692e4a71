from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple


class RandomSource(Protocol):
    def uniform(self, a: float, b: float) -> float:  # pragma: no cover - structural contract
        ...


@dataclass(frozen=True, slots=True)
class RetryConfig:
    max_retries: int
    base_delay: float
    max_delay: float
    backoff_multiplier: float
    jitter_range: Tuple[float, float]

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.backoff_multiplier <= 1.0:
            raise ValueError("backoff_multiplier must be > 1.0")
        low, high = self.jitter_range
        if not (0.0 <= low <= high < 1.0):
            raise ValueError("jitter_range must be a sub-range of [0, 1)")


DEFAULT_RETRY = RetryConfig(
    max_retries=3,
    base_delay=1.0,
    max_delay=30.0,
    backoff_multiplier=2.0,
    jitter_range=(0.1, 0.3),
)
AGGRESSIVE_RETRY = RetryConfig(
    max_retries=5,
    base_delay=0.5,
    max_delay=60.0,
    backoff_multiplier=1.5,
    jitter_range=(0.05, 0.15),
)
CONSERVATIVE_RETRY = RetryConfig(
    max_retries=2,
    base_delay=2.0,
    max_delay=15.0,
    backoff_multiplier=3.0,
    jitter_range=(0.2, 0.4),
)

RETRY_PRESETS = {
    "default": DEFAULT_RETRY,
    "aggressive": AGGRESSIVE_RETRY,
    "conservative": CONSERVATIVE_RETRY,
}


def compute_delay(attempt: int, config: RetryConfig, rng: Optional[RandomSource] = None) -> float:
    """Seconds to wait after the zero-based ``attempt`` failed."""
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    source = rng or random
    try:
        exponential = config.base_delay * config.backoff_multiplier ** attempt
    except OverflowError:
        exponential = config.max_delay
    capped = min(exponential, config.max_delay)
    low, high = config.jitter_range
    jitter = source.uniform(low, high)
    return capped * (1.0 + jitter)
