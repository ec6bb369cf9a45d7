from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

from trend_agent.core.types import Tick, Trade
from trend_agent.ingest.buffer import TradeStore
from trend_agent.ingest.stream import ConnectionState, StreamIngestor, StreamStats
from trend_agent.notify.telegram import NotificationError
from trend_agent.runtime import AgentRuntime
from trend_agent.scoring.store import DecisionStore

TradeFactory = Callable[..., list[Trade]]


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = fail

    async def send_signal(self, market: str, timeframe: str, signal: str) -> None:
        self.sent.append((market, timeframe, signal))
        if self.fail:
            raise NotificationError("Telegram delivery failed (status=502, body='bad gateway')")


class ScriptedIngestor:
    """Emits a fixed batch of ticks, then idles until stopped."""

    def __init__(self, ticks: list[Tick]) -> None:
        self.ticks = ticks
        self.state = ConnectionState.STOPPED
        self.stats = StreamStats()
        self._stop = asyncio.Event()

    def resume(self) -> None:
        self._stop.clear()

    def stop(self) -> None:
        self._stop.set()

    async def stream(self, symbols: Iterable[str], on_tick: Callable[[Tick], None]) -> None:
        self.state = ConnectionState.STREAMING
        for tick in self.ticks:
            on_tick(tick)
            self.stats.accepted += 1
        try:
            await self._stop.wait()
        finally:
            self.state = ConnectionState.STOPPED


def _runtime(trades: TradeStore, notifier: RecordingNotifier | None = None, **kwargs: object) -> AgentRuntime:
    return AgentRuntime(
        symbols=sorted(trades.symbols()) or ["BTCUSD"],
        ingestor=StreamIngestor("wss://unused.test"),
        notifier=notifier,
        trades=trades,
        **kwargs,  # type: ignore[arg-type]
    )


def test_scoring_cycle_notifies_then_publishes(reversal_trades: TradeFactory) -> None:
    trades = TradeStore()
    trades.extend("BTCUSD", reversal_trades(count=100, step_s=300, direction="buy"))
    trades.extend("DULLUSD", [Trade(price=10.0, volume=1.0, timestamp=1_699_920_000 + 60 * i) for i in range(50)])
    notifier = RecordingNotifier()
    runtime = _runtime(trades, notifier)

    decisions = asyncio.run(runtime.run_scoring_cycle())

    assert [decision.instrument for decision in decisions] == ["BTCUSD"]
    assert runtime.decisions.snapshot() == tuple(decisions)
    assert runtime.decisions.cycles == 1
    assert runtime.last_cycle_at is not None
    assert notifier.sent == [
        ("BTCUSD", "5m", "buy (strength: 80 points, volume boost: 20, macd boost: 20)"),
    ]


def test_notification_failure_does_not_abort_cycle(reversal_trades: TradeFactory) -> None:
    trades = TradeStore()
    trades.extend("BTCUSD", reversal_trades(count=100, step_s=300, direction="buy"))
    trades.extend("ETHUSD", reversal_trades(count=100, step_s=300, direction="sell"))
    notifier = RecordingNotifier(fail=True)
    runtime = _runtime(trades, notifier)

    decisions = asyncio.run(runtime.run_scoring_cycle())

    assert [(d.instrument, d.direction) for d in decisions] == [("BTCUSD", "buy"), ("ETHUSD", "sell")]
    assert len(notifier.sent) == 2
    assert len(runtime.decisions.snapshot()) == 2


def test_each_cycle_replaces_previous_decisions(reversal_trades: TradeFactory) -> None:
    trades = TradeStore()
    trades.extend("BTCUSD", reversal_trades(count=100, step_s=300, direction="buy"))
    decisions = DecisionStore()
    runtime = AgentRuntime(
        symbols=["BTCUSD"],
        ingestor=StreamIngestor("wss://unused.test"),
        trades=trades,
        decisions=decisions,
    )

    asyncio.run(runtime.run_scoring_cycle())
    assert len(decisions.snapshot()) == 1

    runtime.trades = TradeStore()
    asyncio.run(runtime.run_scoring_cycle())
    assert decisions.snapshot() == ()
    assert decisions.cycles == 2


def test_start_consumes_ticks_into_trade_store_and_stop_cancels_tasks() -> None:
    ticks = [
        Tick(symbol="BTCUSD", price=65_000.0, volume=10.0, received_at=1_700_000_000),
        Tick(symbol="BTCUSD", price=65_010.0, volume=10.0, received_at=1_700_000_001),
        Tick(symbol="ETHUSD", price=3_100.0, volume=5.0, received_at=1_700_000_001),
    ]
    ingestor = ScriptedIngestor(ticks)
    runtime = AgentRuntime(
        symbols=["BTCUSD", "ETHUSD"],
        ingestor=ingestor,  # type: ignore[arg-type]
        scoring_interval_s=3600,
    )

    async def scenario() -> dict[str, object]:
        await runtime.start()
        for _ in range(20):
            await asyncio.sleep(0)
        health = runtime.health()
        await runtime.stop()
        return health

    health = asyncio.run(scenario())

    snapshot = runtime.trades.snapshot()
    assert [trade.price for trade in snapshot["BTCUSD"]] == [65_000.0, 65_010.0]
    assert snapshot["ETHUSD"] == (Trade(price=3_100.0, volume=5.0, timestamp=1_700_000_001),)
    assert health["runtime_running"] is True
    assert health["instruments"] == 2
    assert health["buffered_instruments"] == 2
    assert health["stream_state"] == "streaming"
    assert runtime.running is False
    assert ingestor.state is ConnectionState.STOPPED


def test_full_tick_queue_drops_instead_of_blocking() -> None:
    runtime = AgentRuntime(
        symbols=["BTCUSD"],
        ingestor=ScriptedIngestor([]),  # type: ignore[arg-type]
        scoring_interval_s=3600,
        tick_queue_size=1,
    )
    tick = Tick(symbol="BTCUSD", price=1.0, volume=1.0, received_at=1)

    async def scenario() -> None:
        await runtime.start()
        runtime.enqueue_tick(tick)
        runtime.enqueue_tick(tick)
        await runtime.stop()

    asyncio.run(scenario())

    assert runtime.dropped_ticks == 1


class CrashingIngestor(ScriptedIngestor):
    async def stream(self, symbols: Iterable[str], on_tick: Callable[[Tick], None]) -> None:
        raise OverflowError("int too large to convert to float")


def test_failed_background_task_is_logged_and_reported(caplog) -> None:
    runtime = AgentRuntime(
        symbols=["BTCUSD"],
        ingestor=CrashingIngestor([]),  # type: ignore[arg-type]
        scoring_interval_s=3600,
    )

    async def scenario() -> dict[str, object]:
        await runtime.start()
        for _ in range(5):
            await asyncio.sleep(0)
        health = runtime.health()
        await runtime.stop()
        return health

    with caplog.at_level("ERROR", logger="trend_agent.runtime"):
        health = asyncio.run(scenario())

    assert health["runtime_running"] is False
    assert health["failed_task"] == "ingest"
    assert "runtime_task_failed task=ingest" in caplog.text
    assert "int too large" in caplog.text
