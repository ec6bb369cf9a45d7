from __future__ import annotations

import asyncio

import httpx
import pytest

from trend_agent.exchange.delta import DeltaRestClient, MarketListingError

PRODUCTS_URL = "https://api.delta.exchange/v2/products"


def _products_response(payload: object, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("GET", PRODUCTS_URL), json=payload)


def test_fetch_markets_filters_contract_type_and_sends_api_key(monkeypatch) -> None:
    seen_headers: list[dict[str, str]] = []

    async def fake_get(self, url, *, headers):  # type: ignore[no-untyped-def]
        del self
        assert url == PRODUCTS_URL
        seen_headers.append(headers)
        return _products_response(
            {
                "success": True,
                "result": [
                    {"symbol": "ETHUSD", "contract_type": "perpetual_futures"},
                    {"symbol": "BTCUSD", "contract_type": "perpetual_futures"},
                    {"symbol": "C-BTC-70000-281124", "contract_type": "call_options"},
                    {"symbol": "BTCUSD", "contract_type": "perpetual_futures"},
                    {"contract_type": "perpetual_futures"},
                    "garbage",
                ],
            }
        )

    monkeypatch.setattr("httpx.AsyncClient.get", fake_get)

    markets = asyncio.run(DeltaRestClient(api_key="key-123").fetch_markets())

    assert markets == ["BTCUSD", "ETHUSD"]
    assert seen_headers == [{"api-key": "key-123"}]


def test_fetch_markets_honours_contract_type_argument(monkeypatch) -> None:
    async def fake_get(self, url, *, headers):  # type: ignore[no-untyped-def]
        del self, url, headers
        return _products_response(
            {"result": [{"symbol": "BTCUSD", "contract_type": "perpetual_futures"}, {"symbol": "BTCFUT", "contract_type": "futures"}]}
        )

    monkeypatch.setattr("httpx.AsyncClient.get", fake_get)

    assert asyncio.run(DeltaRestClient(api_key="").fetch_markets("futures")) == ["BTCFUT"]


def test_fetch_markets_reports_http_status(monkeypatch) -> None:
    async def fake_get(self, url, *, headers):  # type: ignore[no-untyped-def]
        del self, url, headers
        return _products_response({"error": "unauthorized"}, status_code=401)

    monkeypatch.setattr("httpx.AsyncClient.get", fake_get)

    with pytest.raises(MarketListingError, match=r"status=401"):
        asyncio.run(DeltaRestClient(api_key="bad").fetch_markets())


def test_fetch_markets_rejects_body_without_result_list(monkeypatch) -> None:
    async def fake_get(self, url, *, headers):  # type: ignore[no-untyped-def]
        del self, url, headers
        return _products_response({"success": False, "result": None})

    monkeypatch.setattr("httpx.AsyncClient.get", fake_get)

    with pytest.raises(MarketListingError, match="without result list"):
        asyncio.run(DeltaRestClient(api_key="key").fetch_markets())


def test_fetch_markets_wraps_transport_errors(monkeypatch) -> None:
    async def fake_get(self, url, *, headers):  # type: ignore[no-untyped-def]
        del self, url, headers
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("httpx.AsyncClient.get", fake_get)

    with pytest.raises(MarketListingError, match="connection refused"):
        asyncio.run(DeltaRestClient(api_key="key").fetch_markets())
