"""Market data service with provider adapters."""

from stocklens.services.market_data.polygon_provider import PolygonProvider, ProviderConfig
from stocklens.services.market_data.provider import (
    Bar,
    ClosePoint,
    Fundamentals,
    MarketDataProvider,
    NewsItem,
    Quote,
    validate_symbol,
)
from stocklens.services.market_data.service import MarketDataService, market_data_service
from stocklens.services.market_data.yfinance_provider import YFinanceProvider

__all__ = [
    "MarketDataProvider",
    "MarketDataService",
    "market_data_service",
    "PolygonProvider",
    "ProviderConfig",
    "YFinanceProvider",
    "Bar",
    "ClosePoint",
    "Quote",
    "Fundamentals",
    "NewsItem",
    "validate_symbol",
]
