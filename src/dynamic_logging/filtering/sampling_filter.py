"""
Probabilistic sampling of log calls
"""

import random
from typing import Any, Callable, Dict, Optional

from ..models import LogConfig
from .base import FilterResult, LogFilter

# Must draw uniformly from the half-open interval [0, 1)
RandomSource = Callable[[], float]


def should_proceed(rate: float, random_source: RandomSource = random.random) -> bool:
    """
    Decide whether a call passes the sampling gate.

    ``rate <= 0`` never passes and ``rate >= 1`` always passes. In between
    the call passes iff ``random_source() < rate``, so a draw exactly equal
    to the rate is dropped.
    """
    if rate <= 0:
        return False
    if rate >= 1:
        return True
    return random_source() < rate


class SamplingFilter(LogFilter):
    """Sample log calls using the rate from their configuration"""

    def __init__(self, random_source: Optional[RandomSource] = None):
        self.random_source = random_source or random.random

    def should_proceed(self, rate: float) -> bool:
        return should_proceed(rate, self.random_source)

    def should_log(self, config: LogConfig, context: Dict[str, Any]) -> FilterResult:
        rate = config.sampling_rate
        passed = self.should_proceed(rate)
        return FilterResult(
            should_log=passed,
            reason=f"random_sampling: {rate * 100}% rate",
            metadata={"sampling_rate": rate},
        )
