import random

import pytest

from qrcache.resilience.backoff import (
    AGGRESSIVE_RETRY,
    CONSERVATIVE_RETRY,
    DEFAULT_RETRY,
    RETRY_PRESETS,
    RetryConfig,
    compute_delay,
)


class FixedRandom:
    def __init__(self, pick: str) -> None:
        self.pick = pick

    def uniform(self, a: float, b: float) -> float:
        return a if self.pick == "low" else b


def test_delay_grows_until_cap():
    rng = FixedRandom("low")
    delays = [compute_delay(attempt, DEFAULT_RETRY, rng) for attempt in range(10)]
    assert delays[0] == pytest.approx(1.0 * 1.1)
    assert delays[1] == pytest.approx(2.0 * 1.1)
    assert delays[2] == pytest.approx(4.0 * 1.1)
    assert all(later >= earlier for earlier, later in zip(delays, delays[1:]))
    assert delays[-1] == pytest.approx(30.0 * 1.1)
    assert delays[-2] == delays[-1]


@pytest.mark.parametrize("name", sorted(RETRY_PRESETS))
def test_delay_stays_within_bounds(name):
    config = RETRY_PRESETS[name]
    rng = random.Random(1234)
    upper = config.max_delay * (1 + config.jitter_range[1])
    for attempt in range(40):
        delay = compute_delay(attempt, config, rng)
        assert config.base_delay <= delay <= upper


def test_huge_attempt_is_capped():
    delay = compute_delay(5000, AGGRESSIVE_RETRY, FixedRandom("high"))
    assert delay == pytest.approx(60.0 * 1.15)


def test_presets_differ_only_in_parameters():
    assert DEFAULT_RETRY.max_retries == 3
    assert AGGRESSIVE_RETRY.max_retries == 5
    assert CONSERVATIVE_RETRY.max_retries == 2
    assert CONSERVATIVE_RETRY.jitter_range == (0.2, 0.4)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retries": -1},
        {"backoff_multiplier": 1.0},
        {"jitter_range": (0.5, 1.0)},
        {"jitter_range": (0.3, 0.1)},
        {"max_delay": 0.5},
    ],
)
def test_invalid_config_rejected(kwargs):
    values = dict(max_retries=3, base_delay=1.0, max_delay=30.0, backoff_multiplier=2.0, jitter_range=(0.1, 0.3))
    values.update(kwargs)
    with pytest.raises(ValueError):
        RetryConfig(**values)


def test_negative_attempt_rejected():
    with pytest.raises(ValueError):
        compute_delay(-1, DEFAULT_RETRY)
