"""Flat-interval retry policy with bounded jitter.

Every reconciliation tick is followed by one delay drawn around a fixed
base interval:

    delay = max(MIN_FLOOR_SECONDS, base_interval + uniform(-jitter_range, +jitter_range))

The attempt number never stretches the delay, so operators get a predictable
"check every ~5 minutes" cadence. An optional one-time startup jitter spreads
the first tick of many independently deployed copies.

Usage:
    policy = RetryPolicy(base_interval=300, jitter_range=120)
    delay = compute_delay(policy)
"""

import random
from dataclasses import dataclass
from typing import Protocol

# Not configurable: guards against a misconfiguration turning into a busy loop
MIN_FLOOR_SECONDS = 60.0


class RandomSource(Protocol):
    """Anything with random() -> float in [0, 1)."""

    def random(self) -> float: ...


@dataclass(frozen=True)
class RetryPolicy:
    """Retry cadence. All durations are in seconds."""

    base_interval: float = 300.0  # 5 minutes
    jitter_range: float = 120.0  # +/- 2 minutes
    startup_jitter_ceiling: float = 0.0  # 0 disables startup jitter

    def __post_init__(self):
        if self.base_interval < 0:
            raise ValueError("base_interval must be >= 0")
        if self.jitter_range < 0:
            raise ValueError("jitter_range must be >= 0")
        if self.startup_jitter_ceiling < 0:
            raise ValueError("startup_jitter_ceiling must be >= 0")

    @classmethod
    def from_milliseconds(
        cls,
        base_interval_ms: int,
        jitter_range_ms: int,
        startup_jitter_ms: int = 0,
    ) -> "RetryPolicy":
        """Build a policy from millisecond settings."""
        return cls(
            base_interval=base_interval_ms / 1000,
            jitter_range=jitter_range_ms / 1000,
            startup_jitter_ceiling=startup_jitter_ms / 1000,
        )

    @property
    def bounds(self) -> tuple[float, float]:
        """Smallest and largest delay compute_delay can return."""
        low = max(MIN_FLOOR_SECONDS, self.base_interval - self.jitter_range)
        high = max(MIN_FLOOR_SECONDS, self.base_interval + self.jitter_range)
        return low, high


def compute_delay(policy: RetryPolicy, rng: RandomSource | None = None) -> float:
    """Compute the delay before the next tick.

    Args:
        policy: Retry policy.
        rng: Random source; defaults to the module-level generator.

    Returns:
        Delay in seconds, never below MIN_FLOOR_SECONDS.
    """
    r = (rng or random).random()
    jitter = (2 * r - 1) * policy.jitter_range
    return max(MIN_FLOOR_SECONDS, policy.base_interval + jitter)


def compute_startup_delay(policy: RetryPolicy, rng: RandomSource | None = None) -> float:
    """Compute the one-time delay before the first tick.

    Returns:
        Delay in [0, startup_jitter_ceiling] seconds; 0 when disabled.
    """
    if policy.startup_jitter_ceiling <= 0:
        return 0.0
    return (rng or random).random() * policy.startup_jitter_ceiling
