"""Canonical domain types shared across ingestion, aggregation and scoring."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Direction = Literal["buy", "sell"]

BUY: Direction = "buy"
SELL: Direction = "sell"


@dataclass(slots=True, frozen=True)
class Tick:
    """One decoded ticker update accepted from the market stream."""

    symbol: str
    price: float
    volume: float
    received_at: int


@dataclass(slots=True, frozen=True)
class Trade:
    """Price/volume observation recorded for an instrument.

    Attributes:
        price:     Mark price at receipt.
        volume:    24h volume reported with the tick.
        timestamp: Unix timestamp (seconds, UTC) at which the tick was received.
    """

    price: float
    volume: float
    timestamp: int


@dataclass(slots=True, frozen=True)
class Candle:
    """A single OHLCV bar; ``timestamp`` is the bucket start in unix seconds."""

    open: float
    high: float
    low: float
    close: float
    volume: float
    timestamp: int


@dataclass(slots=True, frozen=True)
class TimeframeSignal:
    """Crossover outcome for one timeframe of one instrument."""

    label: str
    seconds: int
    signal: Direction | None
    volume: float
    candles: int


@dataclass(slots=True, frozen=True)
class Decision:
    """Audit-friendly directional call produced by the scoring engine."""

    instrument: str
    timeframe: str
    direction: Direction
    strength: int
    volume: float
    timestamp: int
    points: int = 0
    volume_boost: int = 0
    macd_boost: int = 0

    def describe(self) -> str:
        """Free-text summary used for notifications and logs."""
        return (
            f"{self.direction} (strength: {self.strength} points, "
            f"volume boost: {self.volume_boost}, macd boost: {self.macd_boost})"
        )
