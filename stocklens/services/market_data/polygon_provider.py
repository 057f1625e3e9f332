"""Polygon REST market data provider adapter."""

from dataclasses import dataclass
from datetime import date
from typing import Any
from urllib.parse import quote

import httpx

from stocklens.config import settings
from stocklens.exceptions import MarketDataError
from stocklens.services.market_data.provider import MarketDataProvider, validate_symbol
from stocklens.utils.logging import get_logger
from stocklens.utils.retry import retry_with_backoff

log = get_logger(__name__)

AGGREGATES_LIMIT = 5000


@dataclass
class ProviderConfig:
    """Connection settings for a Polygon-compatible REST API."""
    api_base: str = "https://api.polygon.io"
    api_key: str = ""
    timeout: float = 10.0               # Seconds per request

    @classmethod
    def from_settings(cls) -> "ProviderConfig":
        return cls(
            api_base=settings.market_data.api_base,
            api_key=settings.market_data.api_key,
            timeout=settings.market_data.timeout_seconds,
        )


class PolygonProvider(MarketDataProvider):
    """Market data provider using the Polygon REST API."""

    def __init__(self, config: ProviderConfig | None = None, client: httpx.AsyncClient | None = None):
        self.config = config or ProviderConfig.from_settings()
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_base,
                timeout=self.config.timeout,
            )
        return self._client

    @property
    def name(self) -> str:
        return "polygon"

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @retry_with_backoff()
    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET a Polygon endpoint and return the decoded JSON body.

        Raises:
            MarketDataError: on HTTP error status, undecodable body, or an
                ``{"status": "ERROR"}`` payload
        """
        query = {**(params or {}), "apiKey": self.config.api_key}
        response = await self.client.get(path, params=query)

        if response.status_code >= 400:
            log.warning("polygon_http_error", path=path, status_code=response.status_code)
            raise MarketDataError(
                f"Polygon request failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise MarketDataError(f"Polygon returned invalid JSON for {path}") from e

        if isinstance(body, dict) and body.get("status") == "ERROR":
            message = body.get("error") or body.get("message") or "Polygon returned an error"
            log.warning("polygon_error_payload", path=path, error=message)
            raise MarketDataError(str(message), status_code=response.status_code)

        return body

    async def get_aggregates(self, ticker: str, start: date, end: date) -> Any:
        symbol = quote(validate_symbol(ticker), safe="")
        path = f"/v2/aggs/ticker/{symbol}/range/1/day/{start.isoformat()}/{end.isoformat()}"
        return await self._get(
            path,
            {"adjusted": "true", "sort": "asc", "limit": AGGREGATES_LIMIT},
        )

    async def get_details(self, ticker: str) -> Any:
        symbol = quote(validate_symbol(ticker), safe="")
        return await self._get(f"/v3/reference/tickers/{symbol}")

    async def get_news(self, ticker: str, limit: int = 10) -> Any:
        symbol = validate_symbol(ticker)
        return await self._get(
            "/v2/reference/news",
            {"ticker": symbol, "limit": limit, "order": "desc"},
        )

    async def get_previous_day(self, ticker: str) -> Any:
        symbol = quote(validate_symbol(ticker), safe="")
        return await self._get(f"/v2/aggs/ticker/{symbol}/prev", {"adjusted": "true"})
