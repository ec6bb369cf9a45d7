"""EMA and MACD crossover detection over closing prices."""

from __future__ import annotations

from collections.abc import Sequence

from trend_agent.core.types import BUY, SELL, Direction

FAST_PERIOD = 12
SLOW_PERIOD = 26
SIGNAL_PERIOD = 9

EMA_MIN_POINTS = SLOW_PERIOD
MACD_MIN_POINTS = SLOW_PERIOD + SIGNAL_PERIOD


class InvalidInputError(ValueError):
    """Raised when an indicator receives input it cannot be computed on."""


def ema(values: Sequence[float], period: int) -> list[float]:
    """Exponential moving average seeded with the first value.

    Raises:
        InvalidInputError: If ``values`` is empty or ``period`` is below 1.
    """
    if not values:
        raise InvalidInputError("ema requires at least one value")
    if period < 1:
        raise InvalidInputError(f"ema period must be >= 1, got {period}")

    k = 2.0 / (period + 1.0)
    previous = float(values[0])
    series = [previous]
    for value in values[1:]:
        previous = value * k + previous * (1.0 - k)
        series.append(previous)
    return series


def crossover(prev_fast: float, prev_slow: float, last_fast: float, last_slow: float) -> Direction | None:
    """Classify a crossing between the last two samples; equality is never a signal."""
    if prev_fast < prev_slow and last_fast > last_slow:
        return BUY
    if prev_fast > prev_slow and last_fast < last_slow:
        return SELL
    return None


def ema_crossover_signal(closes: Sequence[float]) -> Direction | None:
    if len(closes) < EMA_MIN_POINTS:
        return None
    fast = ema(closes, FAST_PERIOD)
    slow = ema(closes, SLOW_PERIOD)
    return crossover(fast[-2], slow[-2], fast[-1], slow[-1])


def macd_line(closes: Sequence[float]) -> list[float]:
    fast = ema(closes, FAST_PERIOD)
    slow = ema(closes, SLOW_PERIOD)
    return [f - s for f, s in zip(fast, slow)]


def macd_crossover_signal(closes: Sequence[float]) -> Direction | None:
    if len(closes) < MACD_MIN_POINTS:
        return None
    macd = macd_line(closes)
    signal = ema(macd, SIGNAL_PERIOD)
    return crossover(macd[-2], signal[-2], macd[-1], signal[-1])
