"""Bounded per-instrument trade rings shared by ingestion and scoring."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Mapping

from trend_agent.core.types import Trade


class TradeBuffer:
    """Ring of the most recent trades for one instrument, oldest first."""

    def __init__(self, max_size: int = 500) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._items: deque[Trade] = deque(maxlen=max_size)

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def append(self, trade: Trade) -> None:
        self._items.append(trade)

    def items(self) -> tuple[Trade, ...]:
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)


class TradeStore:
    """Lock-guarded map of instrument -> TradeBuffer.

    Writers and readers hold the lock only for a single append or copy, so the
    scoring cycle can aggregate a snapshot without blocking ingestion.
    """

    def __init__(self, capacity: int = 500) -> None:
        self.capacity = capacity
        self._buffers: dict[str, TradeBuffer] = {}
        self._lock = threading.Lock()

    def append(self, symbol: str, trade: Trade) -> None:
        with self._lock:
            buffer = self._buffers.get(symbol)
            if buffer is None:
                buffer = TradeBuffer(self.capacity)
                self._buffers[symbol] = buffer
            buffer.append(trade)

    def extend(self, symbol: str, trades: Iterable[Trade]) -> None:
        for trade in trades:
            self.append(symbol, trade)

    def snapshot(self) -> Mapping[str, tuple[Trade, ...]]:
        """Copy every buffer into immutable tuples."""
        with self._lock:
            return {symbol: buffer.items() for symbol, buffer in self._buffers.items()}

    def symbols(self) -> list[str]:
        with self._lock:
            return sorted(self._buffers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffers)
