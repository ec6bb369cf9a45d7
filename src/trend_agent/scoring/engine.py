"""Points-based multi-timeframe scoring of EMA crossovers."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence

from trend_agent.candles.aggregator import aggregate_candles, closes, total_volume
from trend_agent.core.config import TIMEFRAMES, ScoringWeights
from trend_agent.core.types import BUY, SELL, Decision, Direction, TimeframeSignal, Trade
from trend_agent.signals.ema import ema_crossover_signal, macd_crossover_signal

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ScoringEngine:
    """Fuses per-timeframe crossovers, volume and MACD momentum into one call.

    The first timeframe is the base: its volume drives the volume boost and its
    closes feed the MACD confirmation. The engine is stateless, so scoring the
    same snapshot twice yields the same decisions.
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        timeframes: Sequence[tuple[str, int]] = TIMEFRAMES,
    ) -> None:
        if not timeframes:
            raise ValueError("at least one timeframe is required")
        self.weights = weights or ScoringWeights()
        self.timeframes = tuple(timeframes)

    @property
    def base_timeframe(self) -> tuple[str, int]:
        return self.timeframes[0]

    @property
    def max_strength(self) -> int:
        return self.weights.max_strength(len(self.timeframes))

    def timeframe_signals(self, trades: Sequence[Trade]) -> list[TimeframeSignal]:
        signals: list[TimeframeSignal] = []
        for label, seconds in self.timeframes:
            candles = aggregate_candles(trades, seconds)
            signals.append(
                TimeframeSignal(
                    label=label,
                    seconds=seconds,
                    signal=ema_crossover_signal(closes(candles)),
                    volume=total_volume(candles),
                    candles=len(candles),
                )
            )
        return signals

    def score_instrument(self, symbol: str, trades: Sequence[Trade]) -> Decision | None:
        if not trades:
            return None
        weights = self.weights
        per_timeframe = self.timeframe_signals(trades)

        buy_count = sum(1 for item in per_timeframe if item.signal == BUY)
        sell_count = sum(1 for item in per_timeframe if item.signal == SELL)
        buy_points = buy_count * weights.points_per_timeframe
        sell_points = sell_count * weights.points_per_timeframe

        base = per_timeframe[0]
        max_volume = max(item.volume for item in per_timeframe)
        volume_boost = 0
        if max_volume > 0:
            volume_boost = _round_half_up((base.volume / max_volume) * weights.volume_boost_max)

        direction: Direction | None = None
        points = 0
        if buy_count >= weights.min_agreeing_timeframes and buy_points >= weights.min_points:
            direction, points = BUY, buy_points
        elif sell_count >= weights.min_agreeing_timeframes and sell_points >= weights.min_points:
            direction, points = SELL, sell_points
        if direction is None:
            return None

        base_closes = closes(aggregate_candles(trades, self.base_timeframe[1]))
        macd_boost = weights.macd_boost if macd_crossover_signal(base_closes) == direction else 0

        strength = max(0, min(self.max_strength, points + volume_boost + macd_boost))
        decision = Decision(
            instrument=symbol,
            timeframe=base.label,
            direction=direction,
            strength=strength,
            volume=base.volume,
            timestamp=max(trade.timestamp for trade in trades),
            points=points,
            volume_boost=volume_boost,
            macd_boost=macd_boost,
        )
        logger.info(
            "signal symbol=%s direction=%s strength=%d volume_boost=%d macd_boost=%d",
            symbol,
            direction,
            strength,
            volume_boost,
            macd_boost,
        )
        return decision

    def run_cycle(self, snapshot: Mapping[str, Sequence[Trade]]) -> list[Decision]:
        """Score every instrument independently; decisions are ordered by symbol."""
        decisions: list[Decision] = []
        for symbol in sorted(snapshot):
            decision = self.score_instrument(symbol, snapshot[symbol])
            if decision is not None:
                decisions.append(decision)
        return decisions
