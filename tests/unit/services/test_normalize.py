"""
Unit tests for raw market data normalization.
"""

import math
from datetime import datetime, timezone

import pytest

from stocklens.analysis.snapshot import is_snapshot_ready
from stocklens.services.market_data.normalize import (
    normalize_bars,
    normalize_details,
    normalize_news,
    normalize_previous_day,
    quote_from_bar,
    to_close_points,
)
from stocklens.services.market_data.provider import Bar, ClosePoint


class TestNormalizeBars:
    """Test aggregate response normalization."""

    def test_wrapped_short_keys(self):
        """Polygon shape: records under ``results`` with short keys."""
        raw = {
            "status": "OK",
            "results": [
                {"t": 1000, "o": 1.0, "h": 2.0, "l": 0.5, "c": 1.5, "v": 300},
                {"t": 2000, "o": 1.5, "h": 2.5, "l": 1.0, "c": 2.0, "v": 400},
            ],
        }

        bars = normalize_bars(raw)

        assert bars == [
            Bar(timestamp=1000, open=1.0, high=2.0, low=0.5, close=1.5, volume=300),
            Bar(timestamp=2000, open=1.5, high=2.5, low=1.0, close=2.0, volume=400),
        ]

    def test_bare_list_long_keys(self):
        """A bare list with long key names is accepted too."""
        raw = [{"timestamp": 1000, "open": 1, "high": 2, "low": 0.5, "close": "1.5", "volume": 10.0}]

        bars = normalize_bars(raw)

        assert bars == [Bar(timestamp=1000, open=1.0, high=2.0, low=0.5, close=1.5, volume=10)]

    def test_short_key_wins_over_long_key(self):
        """Fallback order is short key first."""
        bars = normalize_bars([{"t": 1, "timestamp": 2, "c": 3.0, "close": 4.0}])

        assert bars[0].timestamp == 1
        assert bars[0].close == 3.0

    def test_datetime_timestamp(self):
        """Datetime timestamps are converted to epoch milliseconds."""
        ts = datetime(2024, 1, 2, tzinfo=timezone.utc)

        bars = normalize_bars([{"timestamp": ts, "close": 1.0}])

        assert bars[0].timestamp == 1_704_153_600_000

    def test_empty_results(self):
        """``{results: []}`` is a valid, empty series."""
        assert normalize_bars({"results": []}) == []

    @pytest.mark.parametrize(
        "raw",
        [None, "", "not json", 42, {}, {"status": "ERROR", "error": "bad key"}, {"results": "nope"}],
    )
    def test_malformed_payloads_yield_empty(self, raw):
        """Error payloads and junk never raise."""
        assert normalize_bars(raw) == []

    def test_drops_records_without_timestamp(self):
        """Records with no usable timestamp are skipped, others kept."""
        raw = {"results": [{"c": 1.0}, "junk", {"t": "abc", "c": 2.0}, {"t": 5, "c": 3.0}]}

        assert normalize_bars(raw) == [Bar(timestamp=5, close=3.0)]

    def test_sorts_and_dedupes(self):
        """Output is strictly increasing; the first duplicate wins."""
        raw = [{"t": 3, "c": 3.0}, {"t": 1, "c": 1.0}, {"t": 3, "c": 99.0}, {"t": 2, "c": 2.0}]

        bars = normalize_bars(raw)

        assert [b.timestamp for b in bars] == [1, 2, 3]
        assert bars[-1].close == 3.0

    def test_non_numeric_fields_become_none(self):
        """Bad or non-finite values are dropped to None."""
        bars = normalize_bars([{"t": 1, "o": "x", "h": math.nan, "l": True, "c": None, "v": "n/a"}])

        assert bars == [Bar(timestamp=1)]

    def test_out_of_float_range_integers_become_none(self):
        """Integers too large for a float degrade instead of aborting the series."""
        bars = normalize_bars({"results": [
            {"t": 1, "c": 1.0, "v": 10**400},
            {"t": 10**400, "c": 2.0},
        ]})

        assert bars == [Bar(timestamp=1, close=1.0)]


class TestClosePoints:
    """Test projection onto (timestamp, close)."""

    def test_skips_bars_without_close(self):
        bars = [Bar(timestamp=1, close=1.0), Bar(timestamp=2), Bar(timestamp=3, close=3.0)]

        assert to_close_points(bars) == [ClosePoint(1, 1.0), ClosePoint(3, 3.0)]

    def test_empty_series_defers_snapshot(self, quote):
        """An empty normalized series never satisfies the snapshot precondition."""
        chart = to_close_points(normalize_bars({"results": []}))

        assert chart == []
        assert is_snapshot_ready(chart, quote, None) is False


class TestPreviousDay:
    """Test previous-day bar and quote derivation."""

    def test_results_list(self):
        raw = {"results": [{"T": "AAPL", "t": 10, "o": 100.0, "h": 105.0, "l": 99.0, "c": 102.0, "v": 5000}]}

        bar = normalize_previous_day(raw)

        assert bar == Bar(timestamp=10, open=100.0, high=105.0, low=99.0, close=102.0, volume=5000)

    def test_results_object(self):
        """``results`` may be a single object rather than a list."""
        bar = normalize_previous_day({"results": {"t": 10, "c": 1.0}})

        assert bar == Bar(timestamp=10, close=1.0)

    @pytest.mark.parametrize("raw", [None, {}, {"results": []}, {"resultsCount": 0}])
    def test_missing(self, raw):
        assert normalize_previous_day(raw) is None

    def test_quote_uses_open_as_reference(self):
        """change = close - open; prev_close carries the open."""
        bar = Bar(timestamp=10, open=100.0, high=105.0, low=99.0, close=102.0, volume=5000)

        quote = quote_from_bar("AAPL", bar)

        assert quote.price == 102.0
        assert quote.change == 2.0
        assert quote.change_pct == pytest.approx(2.0)
        assert quote.prev_close == 100.0
        assert quote.day_high == 105.0
        assert quote.day_low == 99.0
        assert quote.volume == 5000
        assert quote.currency == "USD"

    def test_quote_zero_open(self):
        """A zero open leaves change_pct null instead of dividing by zero."""
        quote = quote_from_bar("AAPL", Bar(timestamp=1, open=0.0, close=1.0))

        assert quote.change == 1.0
        assert quote.change_pct is None

    def test_quote_without_bar(self):
        assert quote_from_bar("AAPL", None) is None


class TestDetails:
    """Test ticker details normalization."""

    def test_wrapped_details(self):
        raw = {
            "results": {
                "ticker": "AAPL",
                "name": "Apple Inc.",
                "market_cap": 2.89e12,
                "currency_name": "usd",
                "primary_exchange": "XNAS",
                "sic_description": "ELECTRONIC COMPUTERS",
                "homepage_url": "https://www.apple.com",
            }
        }

        details = normalize_details(raw)

        assert details.name == "Apple Inc."
        assert details.market_cap == 2.89e12
        assert details.primary_exchange == "XNAS"
        assert details.industry == "ELECTRONIC COMPUTERS"

    def test_alternate_keys(self):
        """primary_exchange_symbol and industry are fallbacks/overrides."""
        details = normalize_details({"primary_exchange_symbol": "NYSE", "industry": "Banks", "sic_description": "X"})

        assert details.primary_exchange == "NYSE"
        assert details.industry == "Banks"

    def test_junk(self):
        """Non-mapping payloads give an empty Fundamentals."""
        details = normalize_details(["nope"])

        assert details.name is None
        assert details.market_cap is None

    def test_huge_market_cap(self):
        details = normalize_details({"results": {"name": "Apple Inc.", "market_cap": 10**400}})

        assert details.name == "Apple Inc."
        assert details.market_cap is None


class TestNews:
    """Test news normalization."""

    def test_nested_publisher(self):
        raw = {
            "results": [
                {
                    "id": "abc",
                    "title": "Apple beats",
                    "published_utc": "2024-01-02T12:00:00Z",
                    "publisher": {"name": "Reuters", "homepage_url": "https://reuters.com"},
                    "article_url": "https://example.com/a",
                    "tickers": ["AAPL"],
                }
            ]
        }

        [item] = normalize_news(raw)

        assert item.id == "abc"
        assert item.publisher == "Reuters"
        assert item.article_url == "https://example.com/a"

    def test_flat_variants(self):
        """uuid/source/url stand in for id/publisher/article_url."""
        [item] = normalize_news([{"uuid": "u-1", "title": "T", "source": "Yahoo", "url": "https://x"}])

        assert item.id == "u-1"
        assert item.publisher == "Yahoo"
        assert item.article_url == "https://x"

    def test_plain_string_publisher(self):
        [item] = normalize_news([{"id": 1, "publisher": "Bloomberg"}])

        assert item.id == "1"
        assert item.publisher == "Bloomberg"

    def test_generates_missing_id(self):
        """Items without any id get a unique generated one."""
        items = normalize_news([{"title": "a"}, {"title": "b"}])

        assert items[0].id and items[1].id
        assert items[0].id != items[1].id

    def test_preserves_order_and_skips_junk(self):
        items = normalize_news({"results": [{"id": "1"}, "junk", {"id": "2"}]})

        assert [i.id for i in items] == ["1", "2"]

    @pytest.mark.parametrize("raw", [None, {}, {"results": None}, "text"])
    def test_malformed(self, raw):
        assert normalize_news(raw) == []
