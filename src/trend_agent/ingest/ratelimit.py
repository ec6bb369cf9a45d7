"""Sliding-window limiter that sheds excess ticks at the ingestion edge."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable


class RateLimiter:
    """Accept at most ``limit`` events per trailing ``window_s`` seconds.

    Only accepted events occupy the window, so the earliest events inside a
    burst win and the trailing excess is dropped.
    """

    def __init__(
        self,
        limit: int = 60,
        window_s: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_s <= 0:
            raise ValueError("window_s must be > 0")
        self.limit = limit
        self.window_s = window_s
        self._clock = clock
        self._accepted: deque[float] = deque()

    def try_acquire(self) -> bool:
        now = self._clock()
        while self._accepted and now - self._accepted[0] > self.window_s:
            self._accepted.popleft()
        if len(self._accepted) >= self.limit:
            return False
        self._accepted.append(now)
        return True

    def __len__(self) -> int:
        return len(self._accepted)
