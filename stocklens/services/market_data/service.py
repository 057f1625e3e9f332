"""Market data service with provider fallback logic."""

from datetime import date, timedelta

from stocklens.config import settings
from stocklens.services.market_data.normalize import (
    normalize_bars,
    normalize_details,
    normalize_news,
    normalize_previous_day,
    quote_from_bar,
)
from stocklens.services.market_data.polygon_provider import PolygonProvider
from stocklens.services.market_data.provider import (
    Bar,
    Fundamentals,
    MarketDataProvider,
    NewsItem,
    Quote,
    validate_symbol,
)
from stocklens.services.market_data.yfinance_provider import YFinanceProvider
from stocklens.utils.logging import get_logger

log = get_logger(__name__)


class MarketDataService:
    """
    Market data service with automatic provider fallback.

    Uses Polygon as primary provider, falls back to yfinance on failure.
    Every fetch returns normalized shapes; raw payloads never leave here.
    """

    def __init__(
        self,
        primary: MarketDataProvider | None = None,
        fallback: MarketDataProvider | None = None,
        fallback_enabled: bool | None = None,
    ):
        self._primary = primary
        self._fallback = fallback
        self.fallback_enabled = (
            settings.market_data.fallback_enabled if fallback_enabled is None else fallback_enabled
        )

    @property
    def primary(self) -> MarketDataProvider:
        """Lazy initialization of primary provider."""
        if self._primary is None:
            if settings.market_data.api_key:
                self._primary = PolygonProvider()
            else:
                log.warning("polygon_not_configured", message="Using yfinance as primary")
                self._primary = YFinanceProvider()
        return self._primary

    @property
    def fallback(self) -> MarketDataProvider | None:
        """Lazy initialization of fallback provider; None when disabled or redundant."""
        if not self.fallback_enabled:
            return None
        if self._fallback is None:
            if isinstance(self.primary, YFinanceProvider):
                return None
            self._fallback = YFinanceProvider()
        return self._fallback

    async def fetch_bars(self, symbol: str, days: int | None = None, end: date | None = None) -> list[Bar]:
        """Get daily bars covering the last ``days`` calendar days, oldest first."""
        symbol = validate_symbol(symbol)
        days = settings.analysis.history_days if days is None else days
        end = end or date.today()
        start = end - timedelta(days=days)
        raw = await self._with_fallback(
            lambda p: p.get_aggregates(symbol, start, end),
            f"get_aggregates({symbol}, {start}, {end})",
        )
        return normalize_bars(raw)

    async def fetch_fundamentals(self, symbol: str) -> Fundamentals:
        """Get company details with fallback."""
        symbol = validate_symbol(symbol)
        raw = await self._with_fallback(
            lambda p: p.get_details(symbol),
            f"get_details({symbol})",
        )
        return normalize_details(raw)

    async def fetch_news(self, symbol: str, limit: int | None = None) -> list[NewsItem]:
        """Get recent news with fallback, newest first."""
        symbol = validate_symbol(symbol)
        limit = settings.market_data.news_limit if limit is None else limit
        raw = await self._with_fallback(
            lambda p: p.get_news(symbol, limit),
            f"get_news({symbol}, {limit})",
        )
        return normalize_news(raw)

    async def fetch_quote(self, symbol: str) -> Quote | None:
        """Get the quote derived from the previous session; None when no bar is available."""
        symbol = validate_symbol(symbol)
        raw = await self._with_fallback(
            lambda p: p.get_previous_day(symbol),
            f"get_previous_day({symbol})",
        )
        return quote_from_bar(symbol, normalize_previous_day(raw))

    async def aclose(self) -> None:
        """Close providers that hold network clients."""
        for provider in (self._primary, self._fallback):
            aclose = getattr(provider, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _with_fallback(self, operation, operation_name: str):
        """Execute operation with fallback on failure."""
        try:
            result = await operation(self.primary)
            log.debug("market_data_success", provider=self.primary.name, operation=operation_name)
            return result
        except Exception as e:
            fallback = self.fallback
            if fallback is None:
                log.error(
                    "market_data_failed",
                    provider=self.primary.name,
                    operation=operation_name,
                    error=str(e),
                )
                raise
            log.warning(
                "market_data_fallback",
                primary=self.primary.name,
                fallback=fallback.name,
                operation=operation_name,
                error=str(e),
            )
            try:
                result = await operation(fallback)
                log.debug("market_data_fallback_success", provider=fallback.name, operation=operation_name)
                return result
            except Exception as fallback_error:
                log.error(
                    "market_data_failed",
                    operation=operation_name,
                    primary_error=str(e),
                    fallback_error=str(fallback_error),
                )
                raise


# Singleton instance
market_data_service = MarketDataService()
