"""yfinance market data provider adapter.

yfinance is synchronous, so every call runs in a worker thread. Records are
emitted in the long-key bar form (``timestamp``/``open``/...) and with
Polygon-shaped details and news, so the same normalizer handles both
providers.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Any

import yfinance as yf

from stocklens.exceptions import MarketDataError
from stocklens.services.market_data.provider import MarketDataProvider, validate_symbol
from stocklens.utils.logging import get_logger
from stocklens.utils.retry import retry_with_backoff

log = get_logger(__name__)


def _history_records(df) -> list[dict[str, Any]]:
    """Convert a yfinance history DataFrame into long-key bar records."""
    records = []
    # Use index iteration instead of iterrows() for better performance
    for idx in df.index:
        row = df.loc[idx]
        records.append({
            "timestamp": int(idx.to_pydatetime().timestamp() * 1000),
            "open": float(row["Open"]),
            "high": float(row["High"]),
            "low": float(row["Low"]),
            "close": float(row["Close"]),
            "volume": float(row["Volume"]),
        })
    return records


def _news_record(item: dict[str, Any]) -> dict[str, Any]:
    """
    Map a yfinance news item to the Polygon news shape.

    Newer yfinance releases nest the article under ``content``; older ones
    return flat records with ``providerPublishTime`` as epoch seconds.
    """
    content = item.get("content")
    if isinstance(content, dict):
        provider = content.get("provider") or {}
        url = (content.get("canonicalUrl") or {}).get("url") or (content.get("clickThroughUrl") or {}).get("url")
        return {
            "id": item.get("id") or content.get("id"),
            "title": content.get("title"),
            "published_utc": content.get("pubDate"),
            "publisher": {"name": provider.get("displayName")},
            "article_url": url,
        }

    published = item.get("providerPublishTime")
    if isinstance(published, (int, float)):
        published = datetime.fromtimestamp(published, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        "uuid": item.get("uuid"),
        "title": item.get("title"),
        "published_utc": published,
        "source": item.get("publisher"),
        "url": item.get("link"),
    }


class YFinanceProvider(MarketDataProvider):
    """Market data provider using yfinance."""

    @property
    def name(self) -> str:
        return "yfinance"

    @retry_with_backoff()
    async def get_aggregates(self, ticker: str, start: date, end: date) -> Any:
        symbol = validate_symbol(ticker)

        def _fetch():
            # yfinance treats ``end`` as exclusive
            df = yf.Ticker(symbol).history(start=start, end=end + timedelta(days=1), interval="1d")
            return {"results": [] if df.empty else _history_records(df)}

        return await asyncio.to_thread(_fetch)

    @retry_with_backoff()
    async def get_details(self, ticker: str) -> Any:
        symbol = validate_symbol(ticker)

        def _fetch():
            info = yf.Ticker(symbol).info or {}
            currency = info.get("currency")
            return {
                "results": {
                    "ticker": symbol,
                    "name": info.get("longName") or info.get("shortName"),
                    "market_cap": info.get("marketCap"),
                    "currency_name": currency.lower() if isinstance(currency, str) else None,
                    "primary_exchange": info.get("exchange"),
                    "industry": info.get("industry"),
                    "homepage_url": info.get("website"),
                }
            }

        return await asyncio.to_thread(_fetch)

    @retry_with_backoff()
    async def get_news(self, ticker: str, limit: int = 10) -> Any:
        symbol = validate_symbol(ticker)

        def _fetch():
            items = yf.Ticker(symbol).news or []
            return {"results": [_news_record(item) for item in items[:limit] if isinstance(item, dict)]}

        return await asyncio.to_thread(_fetch)

    @retry_with_backoff()
    async def get_previous_day(self, ticker: str) -> Any:
        symbol = validate_symbol(ticker)

        def _fetch():
            df = yf.Ticker(symbol).history(period="5d", interval="1d")
            if df.empty:
                raise MarketDataError(f"No recent session data available for {symbol}")
            return {"results": _history_records(df.tail(1))}

        return await asyncio.to_thread(_fetch)
