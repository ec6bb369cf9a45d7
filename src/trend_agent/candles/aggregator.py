"""Trade tape -> OHLCV candle aggregation."""

from __future__ import annotations

from collections.abc import Sequence

from trend_agent.core.types import Candle, Trade


def aggregate_candles(trades: Sequence[Trade], timeframe_s: int) -> list[Candle]:
    """Bucket ``trades`` into candles of ``timeframe_s`` seconds.

    Open and close follow input order inside a bucket, not timestamp order.
    Candles are returned in ascending bucket order.
    """
    if timeframe_s <= 0:
        raise ValueError(f"timeframe_s must be positive, got {timeframe_s}")

    buckets: dict[int, list[Trade]] = {}
    for trade in trades:
        key = trade.timestamp - (trade.timestamp % timeframe_s)
        buckets.setdefault(key, []).append(trade)

    candles: list[Candle] = []
    for key in sorted(buckets):
        entries = buckets[key]
        prices = [entry.price for entry in entries]
        candles.append(
            Candle(
                open=entries[0].price,
                high=max(prices),
                low=min(prices),
                close=entries[-1].price,
                volume=sum(entry.volume for entry in entries),
                timestamp=key,
            )
        )
    return candles


def closes(candles: Sequence[Candle]) -> list[float]:
    return [candle.close for candle in candles]


def total_volume(candles: Sequence[Candle]) -> float:
    return sum(candle.volume for candle in candles)
