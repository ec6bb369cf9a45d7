"""Telegram Bot API notifier for emitted decisions."""

from __future__ import annotations

import re
from typing import Protocol

import httpx


class NotificationError(Exception):
    """Raised when a notification could not be delivered."""


class Notifier(Protocol):
    async def send_signal(self, market: str, timeframe: str, signal: str) -> None: ...


def format_signal(market: str, timeframe: str, signal: str) -> str:
    return f"{market} {timeframe}: {signal} signal"


class TelegramNotifier:
    """Posts one ``sendMessage`` per signal; no retry, callers decide what to log."""

    def __init__(
        self,
        *,
        token: str,
        chat_id: str,
        api_base: str = "https://api.telegram.org",
        timeout_s: float = 10.0,
    ) -> None:
        self._token = token.strip()
        self._chat_id = chat_id.strip()
        self._api_base = api_base.rstrip("/")
        self._timeout_s = timeout_s

    @property
    def url(self) -> str:
        return f"{self._api_base}/bot{self._token}/sendMessage"

    async def send_signal(self, market: str, timeframe: str, signal: str) -> None:
        if not self._token or not self._chat_id:
            raise NotificationError("Telegram token or chat id is not configured")

        form = {"chat_id": self._chat_id, "text": format_signal(market, timeframe, signal)}
        try:
            timeout = httpx.Timeout(self._timeout_s)
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(self.url, data=form)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body_excerpt = _extract_response_excerpt(exc.response.text, limit=300)
            raise NotificationError(
                f"Telegram delivery failed (status={exc.response.status_code}, body={body_excerpt!r})"
            ) from exc
        except httpx.HTTPError as exc:
            raise NotificationError(f"Telegram delivery failed: {exc.__class__.__name__}") from exc


def _extract_response_excerpt(raw_text: str, *, limit: int) -> str:
    compact = re.sub(r"\s+", " ", raw_text).strip()
    if not compact:
        return "<empty>"
    return compact[:limit]
