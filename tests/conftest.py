from __future__ import annotations

from collections.abc import Callable

import pytest

from trend_agent.core.types import Trade

# 1_699_920_000 is a whole number of days, so every test timeframe aligns with it.
ALIGNED_BASE_TS = 1_699_920_000

TradeFactory = Callable[..., list[Trade]]


def build_reversal_trades(
    *,
    count: int,
    step_s: int,
    direction: str = "buy",
    start_price: float = 1000.0,
    volume: float = 10.0,
    base_ts: int = ALIGNED_BASE_TS,
) -> list[Trade]:
    """Linear trend over ``count - 1`` trades followed by one sharp reversal trade."""
    slope = -1.0 if direction == "buy" else 1.0
    trades = [
        Trade(price=start_price + slope * i, volume=volume, timestamp=base_ts + step_s * i)
        for i in range(count - 1)
    ]
    spike = start_price * 2 if direction == "buy" else 0.0
    trades.append(Trade(price=spike, volume=volume, timestamp=base_ts + step_s * (count - 1)))
    return trades


@pytest.fixture
def reversal_trades() -> TradeFactory:
    return build_reversal_trades
