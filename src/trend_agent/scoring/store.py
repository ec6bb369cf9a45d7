"""Latest decision set published to the dashboard."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from trend_agent.core.types import Decision


class DecisionStore:
    """Holds an immutable snapshot that each scoring cycle fully replaces."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._decisions: tuple[Decision, ...] = ()
        self._cycles = 0

    def replace(self, decisions: Iterable[Decision]) -> None:
        snapshot = tuple(decisions)
        with self._lock:
            self._decisions = snapshot
            self._cycles += 1

    def snapshot(self) -> tuple[Decision, ...]:
        with self._lock:
            return self._decisions

    @property
    def cycles(self) -> int:
        with self._lock:
            return self._cycles
