from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Hashable, Literal

StopReason = Literal["max_iterations", "stalled", "boundary", "max_posts", "memory_limit", "session_error"]


@dataclass
class TerminationPolicy:
    """
    Decides when a scroll crawl has collected enough.

    Stops on the first of:
    - `max_iterations` observations (bounded runtime),
    - `stall_limit` consecutive observations with zero net-new posts,
    - a position marker equal to the two previous ones once past `position_warmup`.

    This is a heuristic and not exhaustive: a feed that renders new posts only after
    a longer delay than the settle interval can be under-collected.
    """

    max_iterations: int = 50
    stall_limit: int = 3
    position_warmup: int = 5
    _stalls: int = 0
    _positions: Deque[Hashable] = field(default_factory=lambda: deque(maxlen=3))

    def __post_init__(self) -> None:
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive")
        if self.stall_limit <= 0:
            raise ValueError("stall_limit must be positive")
        if self.position_warmup < 0:
            raise ValueError("position_warmup must be non-negative")

    @property
    def stall_count(self) -> int:
        return self._stalls

    @property
    def last_position(self) -> Hashable | None:
        if not self._positions:
            return None
        return self._positions[-1]

    def record_progress(self, net_new: int) -> bool:
        """Track one iteration's net-new count; True once the stall limit is hit."""
        if int(net_new) > 0:
            self._stalls = 0
        else:
            self._stalls += 1
        return self._stalls >= self.stall_limit

    def record_position(self, iteration: int, position: Hashable | None) -> bool:
        """Track one position reading; True when the view sits at a boundary."""
        if position is None:
            return False
        self._positions.append(position)
        if iteration <= self.position_warmup or len(self._positions) < 3:
            return False
        first = self._positions[0]
        return all(p == first for p in self._positions)

    def observe(self, iteration: int, net_new: int, position: Hashable | None = None) -> StopReason | None:
        """
        Feed one iteration (0-based) and return why the crawl must stop, if it must.
        """
        if self.record_progress(net_new):
            return "stalled"
        if self.record_position(iteration, position):
            return "boundary"
        if iteration + 1 >= self.max_iterations:
            return "max_iterations"
        return None
