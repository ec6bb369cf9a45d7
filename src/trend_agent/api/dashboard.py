"""FastAPI dashboard serving the latest decision set.

Handlers only read the immutable snapshot held by :class:`DecisionStore`, so
serving never waits on a scoring cycle.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from trend_agent import __version__
from trend_agent.core.config import TIMEFRAMES
from trend_agent.core.types import Decision
from trend_agent.runtime import AgentRuntime
from trend_agent.scoring.store import DecisionStore


class SignalOut(BaseModel):
    """Dashboard row for one decision."""

    coin: str
    timeframe: str
    signal: str
    strength: int
    volume: float
    timestamp: str

    @classmethod
    def from_decision(cls, decision: Decision) -> "SignalOut":
        return cls(
            coin=decision.instrument,
            timeframe=decision.timeframe,
            signal=decision.direction,
            strength=decision.strength,
            volume=decision.volume,
            timestamp=datetime.fromtimestamp(decision.timestamp, tz=UTC).strftime("%H:%M:%S"),
        )


def create_app(
    decisions: DecisionStore,
    *,
    runtime: AgentRuntime | None = None,
    instrument_count: int | None = None,
) -> FastAPI:
    """Build the dashboard app; when ``runtime`` is given its lifecycle follows the app."""
    app = FastAPI(title="Trend Agent Dashboard", version=__version__)
    app.state.decisions = decisions
    app.state.runtime = runtime
    if instrument_count is None:
        instrument_count = len(runtime.symbols) if runtime is not None else 0
    page = render_dashboard(instrument_count)

    if runtime is not None:

        @app.on_event("startup")
        async def _start_runtime() -> None:
            await runtime.start()

        @app.on_event("shutdown")
        async def _stop_runtime() -> None:
            await runtime.stop()

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return page

    @app.get("/api/signals", response_model=list[SignalOut])
    async def api_signals() -> list[SignalOut]:
        return [SignalOut.from_decision(decision) for decision in decisions.snapshot()]

    @app.get("/api/health")
    async def api_health() -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": "ok",
            "time": datetime.now(UTC).isoformat(),
            "version": __version__,
            "signals": len(decisions.snapshot()),
        }
        if runtime is not None:
            payload.update(runtime.health())
        else:
            payload["runtime_running"] = False
        return payload

    return app


def render_dashboard(instrument_count: int) -> str:
    labels = ", ".join(label for label, _ in TIMEFRAMES)
    return (
        _DASHBOARD_HTML.replace("{{instrument_count}}", str(instrument_count))
        .replace("{{timeframe_count}}", str(len(TIMEFRAMES)))
        .replace("{{timeframes}}", labels)
    )


_DASHBOARD_HTML = """<!DOCTYPE html>
<html lang='en'>
<head>
    <meta charset='UTF-8'>
    <meta name='viewport' content='width=device-width, initial-scale=1.0'>
    <title>Trend Agent Dashboard</title>
    <style>
        body { font-family: 'Segoe UI', Arial, sans-serif; background: #181818; color: #f5f5f5; margin: 0; }
        header { background: #222; padding: 0.5rem; text-align: center; font-size: 1.2rem; color: #ffd700; }
        .container { max-width: 900px; margin: 1rem auto; padding: 1rem; background: #222; border-radius: 8px; }
        h2 { color: #ffd700; font-size: 1rem; margin-bottom: 0.5rem; }
        table { width: 100%; border-collapse: collapse; margin-top: 1rem; font-size: 0.85rem; }
        th, td { padding: 0.3rem 0.4rem; border-bottom: 1px solid #444; text-align: left; }
        th { background: #333; color: #ffd700; }
        .buy { color: #00ff99; font-weight: bold; }
        .sell { color: #ff4d4d; font-weight: bold; }
        .bar { display: inline-block; height: 10px; border-radius: 3px; margin-right: 4px; }
        .low { width: 20px; background: #ff4d4d; }
        .med { width: 40px; background: #ffd700; }
        .high { width: 60px; background: #00ff99; }
    </style>
    <script>
        async function fetchSignals() {
            const res = await fetch('/api/signals');
            const data = await res.json();
            const tbody = document.getElementById('signals-body');
            tbody.innerHTML = '';
            for (const s of data) {
                let bar = 'low';
                if (s.strength >= 80) bar = 'high';
                else if (s.strength >= 60) bar = 'med';
                tbody.innerHTML += `<tr>
                    <td>${s.coin}</td>
                    <td>${s.timeframe}</td>
                    <td class='${s.signal}'>${s.signal.toUpperCase()}</td>
                    <td><span class='bar ${bar}'></span>${s.strength}</td>
                    <td>${Math.round(s.volume / 1000)}k</td>
                    <td>${s.timestamp}</td>
                </tr>`;
            }
        }
        setInterval(fetchSignals, 5000);
        window.onload = fetchSignals;
    </script>
</head>
<body>
    <header>Trend Agent Dashboard</header>
    <div class='container'>
        <h2>Summary</h2>
        <p>Monitoring <b>{{instrument_count}}</b> instruments across {{timeframe_count}} timeframes
        ({{timeframes}}) using EMA 12/26 crossovers with MACD confirmation.</p>
        <h2>Latest Signals</h2>
        <table>
            <thead>
                <tr><th>Coin</th><th>TF</th><th>Signal</th><th>Strength</th><th>Vol</th><th>Time</th></tr>
            </thead>
            <tbody id='signals-body'></tbody>
        </table>
    </div>
</body>
</html>
"""
