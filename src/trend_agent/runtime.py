"""Task wiring for ingestion, tick consumption and periodic scoring."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from trend_agent.core.types import Decision, Tick, Trade
from trend_agent.ingest.buffer import TradeStore
from trend_agent.ingest.stream import StreamIngestor
from trend_agent.notify.telegram import NotificationError, Notifier
from trend_agent.scoring.engine import ScoringEngine
from trend_agent.scoring.store import DecisionStore

logger = logging.getLogger(__name__)


class AgentRuntime:
    """Owns the shared stores and the three long-lived tasks.

    The tasks never signal each other directly: ticks flow through a bounded
    queue into the trade store, and the scoring loop publishes into the
    decision store read by the dashboard.
    """

    def __init__(
        self,
        *,
        symbols: Sequence[str],
        ingestor: StreamIngestor,
        engine: ScoringEngine | None = None,
        notifier: Notifier | None = None,
        trades: TradeStore | None = None,
        decisions: DecisionStore | None = None,
        scoring_interval_s: float = 300.0,
        tick_queue_size: int = 1000,
    ) -> None:
        self.symbols = list(symbols)
        self.ingestor = ingestor
        self.engine = engine or ScoringEngine()
        self.notifier = notifier
        self.trades = trades or TradeStore()
        self.decisions = decisions or DecisionStore()
        self.scoring_interval_s = scoring_interval_s
        self.tick_queue_size = tick_queue_size
        self.running = False
        self.dropped_ticks = 0
        self.last_cycle_at: datetime | None = None
        self.failed_task: str | None = None
        self._queue: asyncio.Queue[Tick] | None = None
        self._tasks: list[asyncio.Task[None]] = []

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.failed_task = None
        queue: asyncio.Queue[Tick] = asyncio.Queue(maxsize=self.tick_queue_size)
        self._queue = queue
        self.ingestor.resume()
        self._tasks = [
            asyncio.create_task(self.ingestor.stream(self.symbols, self.enqueue_tick), name="ingest"),
            asyncio.create_task(self._consume_ticks(queue), name="consume"),
            asyncio.create_task(self._scoring_loop(), name="scoring"),
        ]
        for task in self._tasks:
            task.add_done_callback(self._on_task_done)
        logger.info("runtime_started symbols=%d interval_s=%s", len(self.symbols), self.scoring_interval_s)

    async def stop(self) -> None:
        self.running = False
        self.ingestor.stop()
        tasks, self._tasks = self._tasks, []
        pending = [task for task in tasks if task is not asyncio.current_task() and not task.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("runtime_stopped")

    def enqueue_tick(self, tick: Tick) -> None:
        """Non-blocking sink handed to the ingestor; drops when the queue is full."""
        if self._queue is None:
            return
        try:
            self._queue.put_nowait(tick)
        except asyncio.QueueFull:
            self.dropped_ticks += 1
            logger.warning("tick_queue_full dropping symbol=%s", tick.symbol)

    def record_tick(self, tick: Tick) -> None:
        self.trades.append(tick.symbol, Trade(price=tick.price, volume=tick.volume, timestamp=tick.received_at))

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self.running = False
        self.failed_task = task.get_name()
        logger.error("runtime_task_failed task=%s error=%s", task.get_name(), exc, exc_info=exc)

    async def _consume_ticks(self, queue: asyncio.Queue[Tick]) -> None:
        while True:
            tick = await queue.get()
            self.record_tick(tick)
            queue.task_done()

    async def _scoring_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.scoring_interval_s)
            try:
                await self.run_scoring_cycle()
            except Exception:  # noqa: BLE001
                logger.exception("scoring_cycle_failed")

    async def run_scoring_cycle(self) -> list[Decision]:
        """Score the current trade snapshot, notify, then publish the new set."""
        snapshot = self.trades.snapshot()
        decisions = self.engine.run_cycle(snapshot)
        for decision in decisions:
            await self._notify(decision)
        self.decisions.replace(decisions)
        self.last_cycle_at = datetime.now(UTC)
        logger.info("scoring_cycle_done instruments=%d decisions=%d", len(snapshot), len(decisions))
        return decisions

    async def _notify(self, decision: Decision) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.send_signal(decision.instrument, decision.timeframe, decision.describe())
        except NotificationError as exc:
            logger.warning("notification_failed symbol=%s error=%s", decision.instrument, exc)

    def health(self) -> dict[str, Any]:
        return {
            "runtime_running": self.running,
            "failed_task": self.failed_task,
            "instruments": len(self.symbols),
            "buffered_instruments": len(self.trades),
            "stream_state": self.ingestor.state.value,
            "stream": self.ingestor.stats.as_dict(),
            "dropped_ticks": self.dropped_ticks,
            "cycles": self.decisions.cycles,
            "last_cycle_at": self.last_cycle_at.isoformat() if self.last_cycle_at else None,
        }
