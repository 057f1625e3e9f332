"""
Pytest configuration and shared fixtures for the stocklens test suite.

Test Structure:
- tests/unit/ - Fast tests with mocked dependencies (no network, no LLM)

Run all tests:
    pytest
"""

import pytest

from stocklens.services.market_data.provider import Bar, ClosePoint, Fundamentals, NewsItem, Quote

DAY_MS = 86_400_000
START_MS = 1_704_153_600_000    # 2024-01-02T00:00:00Z


@pytest.fixture
def make_bars():
    """Factory for daily bars: open one below close, high/low one either side."""
    def _make(closes: list[float], volume: int | None = 1_000) -> list[Bar]:
        return [
            Bar(
                timestamp=START_MS + i * DAY_MS,
                open=c - 1,
                high=c + 1,
                low=c - 1,
                close=c,
                volume=volume,
            )
            for i, c in enumerate(closes)
        ]
    return _make


@pytest.fixture
def make_chart():
    def _make(closes: list[float]) -> list[ClosePoint]:
        return [ClosePoint(timestamp=START_MS + i * DAY_MS, close=c) for i, c in enumerate(closes)]
    return _make


@pytest.fixture
def quote() -> Quote:
    return Quote(
        symbol="AAPL",
        price=185.64,
        change=-1.51,
        change_pct=-0.8068,
        day_high=188.44,
        day_low=183.89,
        prev_close=187.15,
        volume=82_488_700,
    )


@pytest.fixture
def fundamentals() -> Fundamentals:
    return Fundamentals(
        name="Apple Inc.",
        ticker="AAPL",
        market_cap=2_890_000_000_000.4,
        currency_name="usd",
        primary_exchange="XNAS",
        industry="ELECTRONIC COMPUTERS",
        homepage_url="https://www.apple.com",
    )


@pytest.fixture
def news_items() -> list[NewsItem]:
    return [
        NewsItem(
            id=f"n{i}",
            title=f"Headline {i}",
            published_utc=f"2024-01-{i + 1:02d}T12:00:00Z",
            publisher="Reuters",
            article_url=f"https://example.com/{i}",
        )
        for i in range(12)
    ]
