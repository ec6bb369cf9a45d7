"""Resilient websocket ingestion of ticker updates.

The ingestor keeps one long-lived connection to the market stream, subscribes
every instrument to the ticker channel, validates each inbound frame and hands
accepted ticks to a synchronous sink. Connection failures never escape the
loop: they move the state machine to ``connect_error``/``disconnected`` and the
next attempt waits on an exponential backoff.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from collections.abc import Awaitable, Callable, Iterable
from contextlib import AbstractAsyncContextManager
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

import websockets
from jsonschema import Draft202012Validator
from websockets.exceptions import WebSocketException

from trend_agent.core.types import Tick
from trend_agent.ingest.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

TickSink = Callable[[Tick], None]
Connector = Callable[[str], AbstractAsyncContextManager[Any]]

TICKER_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["data"],
    "properties": {
        "data": {
            "type": "object",
            "required": ["symbol", "mark_price", "volume_24h"],
            "properties": {
                "symbol": {"type": "string", "minLength": 1},
                "mark_price": {"type": ["number", "string"]},
                "volume_24h": {"type": ["number", "string"]},
            },
        }
    },
}

_TICKER_VALIDATOR = Draft202012Validator(TICKER_SCHEMA)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    DISCONNECTED = "disconnected"
    CONNECT_ERROR = "connect_error"
    STOPPED = "stopped"


@dataclass(slots=True)
class StreamStats:
    received: int = 0
    accepted: int = 0
    rate_limited: int = 0
    ignored: int = 0
    reconnects: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class Backoff:
    """Doubling reconnect delay capped at ``maximum`` seconds."""

    def __init__(self, initial: float = 1.0, maximum: float = 32.0) -> None:
        if initial <= 0 or maximum < initial:
            raise ValueError("backoff requires 0 < initial <= maximum")
        self.initial = initial
        self.maximum = maximum
        self._current = initial

    @property
    def current(self) -> float:
        return self._current

    def next_delay(self) -> float:
        delay = self._current
        self._current = min(self._current * 2, self.maximum)
        return delay

    def reset(self) -> None:
        self._current = self.initial


def decode_tick(raw: str | bytes, *, received_at: int) -> Tick | None:
    """Decode one stream frame; return ``None`` for anything that is not a full tick."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    if not _TICKER_VALIDATOR.is_valid(payload):
        return None

    data = payload["data"]
    try:
        price = float(data["mark_price"])
        volume = float(data["volume_24h"])
    except (ValueError, OverflowError):
        return None
    if not (math.isfinite(price) and math.isfinite(volume)):
        return None
    return Tick(symbol=data["symbol"], price=price, volume=volume, received_at=received_at)


def subscription_message(channel: str, symbol: str) -> dict[str, Any]:
    return {
        "type": "subscribe",
        "payload": {"channels": [{"name": channel, "symbols": [symbol]}]},
    }


def _default_connect(url: str) -> AbstractAsyncContextManager[Any]:
    return websockets.connect(url, ping_interval=20, ping_timeout=10, max_size=2**24)


class StreamIngestor:
    """Long-lived ticker stream client with rate limiting and reconnect backoff."""

    def __init__(
        self,
        url: str,
        *,
        channel: str = "v2/ticker",
        rate_limiter: RateLimiter | None = None,
        backoff: Backoff | None = None,
        stable_after_s: float = 60.0,
        connect: Connector | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.url = url
        self.channel = channel
        self.rate_limiter = rate_limiter or RateLimiter()
        self.backoff = backoff or Backoff()
        self.stable_after_s = stable_after_s
        self.state = ConnectionState.STOPPED
        self.stats = StreamStats()
        self._connect = connect or _default_connect
        self._sleep = sleep or self._wait_or_stop
        self._clock = clock
        self._wall_clock = wall_clock
        self._stop = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def resume(self) -> None:
        """Re-arm a stopped ingestor so :meth:`stream` can run again."""
        self._stop.clear()

    def stop(self) -> None:
        """Ask the reconnect loop to finish; wakes a pending backoff wait or an idle read."""
        self._stop.set()

    async def stream(self, symbols: Iterable[str], on_tick: TickSink) -> None:
        """Stream ticks for ``symbols`` into ``on_tick`` until :meth:`stop` is called."""
        symbols = list(symbols)
        try:
            while not self._stop.is_set():
                self._set_state(ConnectionState.CONNECTING)
                session_started: float | None = None
                try:
                    async with self._connect(self.url) as ws:
                        session_started = self._clock()
                        self._set_state(ConnectionState.STREAMING)
                        await self._subscribe(ws, symbols)
                        await self._read_until_stopped(ws, on_tick)
                    if self._stop.is_set():
                        break
                    self._set_state(ConnectionState.DISCONNECTED)
                except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
                    if session_started is None:
                        self._set_state(ConnectionState.CONNECT_ERROR)
                        logger.warning("stream_connect_error url=%s error=%s", self.url, exc)
                    else:
                        self._set_state(ConnectionState.DISCONNECTED)
                        logger.warning("stream_dropped url=%s error=%s", self.url, exc)

                if session_started is not None and self._clock() - session_started >= self.stable_after_s:
                    self.backoff.reset()
                delay = self.backoff.next_delay()
                self.stats.reconnects += 1
                logger.info("stream_reconnect_scheduled delay_s=%s attempt=%d", delay, self.stats.reconnects)
                await self._sleep(delay)
        finally:
            self._set_state(ConnectionState.STOPPED)

    async def _subscribe(self, ws: Any, symbols: list[str]) -> None:
        for symbol in symbols:
            await ws.send(json.dumps(subscription_message(self.channel, symbol)))
        logger.info("stream_subscribed channel=%s symbols=%d", self.channel, len(symbols))

    async def _read_until_stopped(self, ws: Any, on_tick: TickSink) -> None:
        """Read frames until the peer closes or :meth:`stop` is called, whichever comes first."""
        reader = asyncio.create_task(self._read(ws, on_tick))
        stopper = asyncio.create_task(self._stop.wait())
        try:
            await asyncio.wait({reader, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            reader.cancel()
            stopper.cancel()
            await asyncio.gather(reader, stopper, return_exceptions=True)
        if not reader.cancelled():
            reader.result()

    async def _read(self, ws: Any, on_tick: TickSink) -> None:
        async for message in ws:
            self._handle_message(message, on_tick)
            if self._stop.is_set():
                return

    def _handle_message(self, message: str | bytes, on_tick: TickSink) -> None:
        self.stats.received += 1
        tick = decode_tick(message, received_at=int(self._wall_clock()))
        if tick is None:
            self.stats.ignored += 1
            logger.debug("stream_message_ignored")
            return
        if not self.rate_limiter.try_acquire():
            self.stats.rate_limited += 1
            return
        self.stats.accepted += 1
        on_tick(tick)

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self.state:
            logger.info("stream_state from=%s to=%s", self.state.value, state.value)
            self.state = state

    async def _wait_or_stop(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
