"""CLI entrypoint for the trend agent."""

from __future__ import annotations

import argparse
import asyncio
import csv
import json
import logging
from dataclasses import asdict
from pathlib import Path

from pydantic import ValidationError

from trend_agent.api.dashboard import create_app
from trend_agent.core.config import ConfigurationError, Settings
from trend_agent.core.types import Trade
from trend_agent.exchange.delta import DeltaRestClient, MarketListingError
from trend_agent.ingest.buffer import TradeStore
from trend_agent.ingest.ratelimit import RateLimiter
from trend_agent.ingest.stream import Backoff, StreamIngestor
from trend_agent.notify.telegram import TelegramNotifier
from trend_agent.runtime import AgentRuntime
from trend_agent.scoring.engine import ScoringEngine

logger = logging.getLogger("trend_agent")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Multi-timeframe trend agent")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Stream markets, score every period and serve the dashboard")
    run.add_argument("--host", default=None, help="Dashboard bind host (defaults to settings)")
    run.add_argument("--port", type=int, default=None, help="Dashboard port (defaults to settings)")

    replay = sub.add_parser("replay", help="Score trades from CSV once and print decisions")
    replay.add_argument("--csv", required=True, help="CSV with trades: symbol,price,volume,timestamp")

    sub.add_parser("markets", help="Print the tradable instruments of the configured contract type")
    return parser


class TradeTapeError(ValueError):
    """Raised when a replay CSV row is missing a column or holds a non-numeric value."""


def load_trades_csv(csv_path: Path, store: TradeStore) -> int:
    count = 0
    with csv_path.open("r", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        for row in reader:
            try:
                symbol = str(row["symbol"])
                trade = Trade(price=float(row["price"]), volume=float(row["volume"]), timestamp=int(row["timestamp"]))
            except (KeyError, TypeError, ValueError) as exc:
                raise TradeTapeError(f"Invalid trade row at line {reader.line_num}: {exc!r}") from exc
            store.append(symbol, trade)
            count += 1
    return count


def replay(csv_path: Path, settings: Settings) -> list[dict[str, object]]:
    store = TradeStore(capacity=settings.buffer_capacity)
    load_trades_csv(csv_path, store)
    decisions = ScoringEngine().run_cycle(store.snapshot())
    return [asdict(decision) for decision in decisions]


async def fetch_markets(settings: Settings) -> list[str]:
    client = DeltaRestClient(
        api_key=settings.delta_api_key,
        api_secret=settings.delta_api_secret,
        products_url=settings.products_url,
        timeout_s=settings.http_timeout_s,
    )
    markets = await client.fetch_markets(settings.contract_type)
    if not markets:
        raise MarketListingError(f"No instruments with contract_type={settings.contract_type!r}")
    return markets


def build_runtime(settings: Settings, symbols: list[str]) -> AgentRuntime:
    ingestor = StreamIngestor(
        settings.ws_url,
        channel=settings.ticker_channel,
        rate_limiter=RateLimiter(settings.rate_limit, settings.rate_window_s),
        backoff=Backoff(settings.backoff_initial_s, settings.backoff_max_s),
        stable_after_s=settings.stable_after_s,
    )
    notifier = TelegramNotifier(
        token=settings.telegram_bot_token,
        chat_id=settings.telegram_chat_id,
        api_base=settings.telegram_api_base,
        timeout_s=settings.http_timeout_s,
    )
    return AgentRuntime(
        symbols=symbols,
        ingestor=ingestor,
        notifier=notifier,
        trades=TradeStore(capacity=settings.buffer_capacity),
        scoring_interval_s=settings.scoring_interval_s,
        tick_queue_size=settings.tick_queue_size,
    )


def run(settings: Settings, host: str | None, port: int | None) -> int:
    settings.require_credentials()
    markets = asyncio.run(fetch_markets(settings))
    logger.info("markets_loaded count=%d contract_type=%s", len(markets), settings.contract_type)

    import uvicorn

    runtime = build_runtime(settings, markets)
    app = create_app(runtime.decisions, runtime=runtime)
    uvicorn.run(
        app,
        host=host or settings.dashboard_host,
        port=port or settings.dashboard_port,
        log_level=settings.log_level.lower(),
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = Settings()
    except ValidationError as exc:
        configure_logging("INFO")
        logger.error("invalid_settings errors=%d detail=%s", exc.error_count(), exc)
        return 1
    configure_logging(settings.log_level)

    try:
        if args.command == "run":
            return run(settings, args.host, args.port)

        if args.command == "replay":
            try:
                decisions = replay(Path(args.csv), settings)
            except (TradeTapeError, OSError) as exc:
                logger.error("replay_failed csv=%s error=%s", args.csv, exc)
                return 1
            print(json.dumps({"decisions": decisions}, ensure_ascii=False, indent=2))
            return 0

        if args.command == "markets":
            markets = asyncio.run(fetch_markets(settings))
            print(json.dumps({"markets": markets, "count": len(markets)}, ensure_ascii=False, indent=2))
            return 0
    except (ConfigurationError, MarketListingError) as exc:
        logger.error("startup_failed error=%s", exc)
        return 1

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
