from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import psutil

MemorySampleFn = Callable[[], float]

_MIB = 1024 * 1024


def process_rss_mb() -> float:
    return psutil.Process().memory_info().rss / _MIB


@dataclass
class ResourceGuard:
    """
    Coarse memory watchdog for long crawls.

    Memory is sampled every `sample_every` iterations; once usage exceeds
    `limit_mb` the crawl stops with what it has and the result is marked partial.
    """

    limit_mb: float = 1500.0
    sample_every: int = 10
    sample_fn: MemorySampleFn | None = None
    last_sample_mb: float | None = None

    def __post_init__(self) -> None:
        if self.limit_mb <= 0:
            raise ValueError("limit_mb must be positive")
        if self.sample_every <= 0:
            raise ValueError("sample_every must be positive")

    def due(self, iteration: int) -> bool:
        return iteration > 0 and iteration % self.sample_every == 0

    def check(self, iteration: int) -> bool:
        """True when the memory limit is exceeded at a sampling iteration."""
        if not self.due(iteration):
            return False
        sampler = self.sample_fn or process_rss_mb
        self.last_sample_mb = float(sampler())
        return self.last_sample_mb > self.limit_mb
