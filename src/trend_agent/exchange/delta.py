"""Delta Exchange REST catalog client used to discover tradable instruments."""

from __future__ import annotations

import httpx


class MarketListingError(Exception):
    """Raised when the product catalog cannot be fetched or parsed."""


class DeltaRestClient:
    """Async product-catalog client; only attaches the API key, no signing."""

    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str = "",
        products_url: str = "https://api.delta.exchange/v2/products",
        timeout_s: float = 10.0,
    ) -> None:
        self._api_key = api_key.strip()
        self._api_secret = api_secret.strip()
        self._products_url = products_url
        self._timeout_s = timeout_s

    async def fetch_markets(self, contract_type: str = "perpetual_futures") -> list[str]:
        """Return the sorted symbols of every product with ``contract_type``."""
        headers = {"api-key": self._api_key} if self._api_key else {}
        try:
            timeout = httpx.Timeout(self._timeout_s)
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.get(self._products_url, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise MarketListingError(
                f"Product listing failed (status={exc.response.status_code})"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise MarketListingError(f"Product listing failed: {exc}") from exc

        products = body.get("result") if isinstance(body, dict) else None
        if not isinstance(products, list):
            raise MarketListingError("Product listing response without result list")

        symbols: set[str] = set()
        for product in products:
            if not isinstance(product, dict) or product.get("contract_type") != contract_type:
                continue
            symbol = product.get("symbol")
            if isinstance(symbol, str) and symbol.strip():
                symbols.add(symbol.strip())
        return sorted(symbols)
