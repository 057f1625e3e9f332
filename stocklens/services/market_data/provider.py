"""Market data provider protocol and data models."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.\-]{1,10}$")


def validate_symbol(symbol: str) -> str:
    """
    Validate and normalize symbol format.

    Args:
        symbol: Stock symbol to validate

    Returns:
        Uppercase, validated symbol

    Raises:
        ValueError: If symbol format is invalid
    """
    if not symbol or not isinstance(symbol, str):
        raise ValueError("Symbol must be a non-empty string")

    symbol = symbol.upper().strip()

    # Share classes and suffixes use dots/dashes (BRK.B, RDS-A)
    if not SYMBOL_PATTERN.match(symbol):
        raise ValueError(f"Invalid symbol format: {symbol}")

    return symbol


# =============================================================================
# DATA CLASSES
# =============================================================================
# These classes are the fixed internal shape of market data.
#
# Providers return raw payloads (Polygon JSON, yfinance-derived dicts) whose
# field names differ between variants. The normalizer translates those payloads
# into these classes; nothing past the normalizer sees a raw payload.
# =============================================================================


@dataclass(frozen=True)
class Bar:
    """
    One daily trading session.

    Any price field may be missing in the upstream record; consumers fall back
    (e.g. high -> close) rather than failing.

    EXAMPLE:
        Bar(timestamp=1704171600000, open=187.15, high=188.44, low=183.89, close=185.64, volume=82488700)
    """
    timestamp: int                  # Session start, ms since epoch
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: int | None = None


@dataclass(frozen=True)
class ClosePoint:
    """(timestamp, close) projection of a Bar; the only input the indicators need."""
    timestamp: int
    close: float


@dataclass
class Quote:
    """
    Latest price snapshot for a ticker, derived from the previous-day bar.

    The session open stands in as the reference price, so ``change`` is
    close - open and ``prev_close`` carries the open.
    """
    symbol: str
    price: float | None = None
    change: float | None = None
    change_pct: float | None = None     # Percent, e.g. 1.25 for +1.25%
    day_high: float | None = None
    day_low: float | None = None
    prev_close: float | None = None
    volume: int | None = None
    currency: str | None = "USD"


@dataclass
class Fundamentals:
    """Company profile fields from the ticker details endpoint."""
    name: str | None = None
    ticker: str | None = None
    market_cap: float | None = None     # In reporting currency
    currency_name: str | None = None
    primary_exchange: str | None = None
    industry: str | None = None
    homepage_url: str | None = None


@dataclass
class NewsItem:
    """A single news article about a ticker."""
    id: str
    title: str | None = None
    published_utc: str | None = None    # ISO-8601 as delivered upstream
    publisher: str | None = None
    article_url: str | None = None


class MarketDataProvider(ABC):
    """Abstract base class for market data providers.

    Methods return the provider's raw payloads; callers run them through
    ``stocklens.services.market_data.normalize``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging."""
        pass

    @abstractmethod
    async def get_aggregates(self, ticker: str, start: date, end: date) -> Any:
        """Get daily bars between start and end (inclusive)."""
        pass

    @abstractmethod
    async def get_details(self, ticker: str) -> Any:
        """Get company details for a ticker."""
        pass

    @abstractmethod
    async def get_news(self, ticker: str, limit: int = 10) -> Any:
        """Get recent news for a ticker, newest first."""
        pass

    @abstractmethod
    async def get_previous_day(self, ticker: str) -> Any:
        """Get the previous session's bar."""
        pass
