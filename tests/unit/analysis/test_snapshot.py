"""
Unit tests for the snapshot builder.
"""

import json
import math
from datetime import datetime, timezone

import pytest

from stocklens.analysis.indicators import IndicatorSet, MACDValue, summarize_indicators
from stocklens.analysis.snapshot import (
    build_snapshot,
    is_snapshot_ready,
    round_value,
    trim_payload_series,
)
from stocklens.analysis.stats import YearStats

AS_OF = datetime(2024, 6, 3, 14, 30, tzinfo=timezone.utc)

PAYLOAD_KEYS = {"ticker", "as_of", "price", "fundamentals", "stats", "indicators", "series", "news"}
PRICE_KEYS = {"last", "change", "change_pct", "day_high", "day_low", "prev_close", "volume", "currency"}
FUNDAMENTALS_KEYS = {"name", "market_cap", "exchange", "industry", "homepage"}
STATS_KEYS = {"high_52w", "low_52w", "return_1y", "avg_volume_90d"}
INDICATOR_KEYS = {"last_close", "sma_20", "sma_50", "sma_200", "ema_20", "ema_50", "ema_200", "macd", "rsi_14"}


class TestRoundValue:
    """Test the numeric rounding gate."""

    def test_rounds_to_four_decimals(self):
        """Default precision is 4 decimals."""
        assert round_value(185.123456) == 185.1235
        assert round_value(-0.80684) == -0.8068

    def test_half_up(self):
        """Halves round up."""
        assert round_value(2.5, 0) == 3
        assert round_value(0.125, 2) == 0.13

    def test_zero_digits_returns_int(self):
        """Counts are emitted as integers."""
        result = round_value(82_488_700.4, 0)

        assert result == 82_488_700
        assert isinstance(result, int)

    def test_non_finite_and_non_numeric_become_null(self):
        """NaN, infinity, strings, None and bools never reach the payload."""
        for value in (math.nan, math.inf, -math.inf, "12.5", None, True, [1.0]):
            assert round_value(value) is None

    def test_out_of_float_range_integer_becomes_null(self):
        assert round_value(10**400, 0) is None
        assert round_value(-(10**400)) is None

    def test_idempotent(self):
        """Rounding an already rounded value at the same precision is a no-op."""
        for value in (185.123456, -0.80684, 1e-7, 123456.78915, 0.1 + 0.2):
            once = round_value(value)
            assert round_value(once) == once


class TestBuildSnapshot:
    """Test snapshot assembly."""

    def test_full_snapshot(self, make_chart, quote, fundamentals, news_items):
        """Every block is populated and rounded."""
        closes = [100 + i * 0.123456 for i in range(250)]
        indicators = summarize_indicators(closes)

        snapshot = build_snapshot(
            ticker="aapl",
            as_of=AS_OF,
            quote=quote,
            fundamentals=fundamentals,
            year_stats=YearStats(high=199.62, low=164.08),
            trailing_return=12.345678,
            average_volume=55_123_456.7,
            indicators=indicators,
            chart=make_chart(closes),
            news=news_items,
        )

        assert snapshot.ticker == "AAPL"
        assert snapshot.as_of == "2024-06-03T14:30:00+00:00"
        assert snapshot.price.last == 185.64
        assert snapshot.price.currency == "USD"
        assert snapshot.fundamentals.market_cap == 2_890_000_000_000
        assert snapshot.fundamentals.exchange == "XNAS"
        assert snapshot.stats.return_1y == 12.3457
        assert snapshot.stats.avg_volume_90d == 55_123_457
        assert snapshot.indicators.sma_20 == round_value(indicators.sma_20)
        assert snapshot.indicators.macd.hist == round_value(indicators.macd.histogram)
        assert snapshot.series.timeframe == "daily"

    def test_series_bound(self, make_chart, quote):
        """A long series keeps exactly the most recent N points."""
        chart = make_chart([float(i) for i in range(400)])

        snapshot = build_snapshot("AAPL", AS_OF, quote, chart=chart, max_points=180)

        points = snapshot.series.points
        assert len(points) == 180
        assert points[0].t == chart[220].timestamp
        assert points[-1].c == 399.0

    def test_default_series_bound_is_180(self, make_chart, quote):
        """Without an override the configured bound applies."""
        snapshot = build_snapshot("AAPL", AS_OF, quote, chart=make_chart([1.0] * 300))

        assert len(snapshot.series.points) == 180

    def test_short_series_kept_whole(self, make_chart, quote):
        """Fewer points than the bound are all kept."""
        snapshot = build_snapshot("AAPL", AS_OF, quote, chart=make_chart([1.0, 2.0, 3.0]))

        assert [p.c for p in snapshot.series.points] == [1.0, 2.0, 3.0]

    def test_news_bound_preserves_order(self, quote, news_items):
        """Only the first 8 items are kept, in input order."""
        snapshot = build_snapshot("AAPL", AS_OF, quote, news=news_items)

        assert [n.id for n in snapshot.news] == [f"n{i}" for i in range(8)]

    def test_null_safety_with_missing_inputs(self):
        """Nothing but a ticker: every documented key is still present, as null."""
        snapshot = build_snapshot("msft", AS_OF, quote=None)

        payload = snapshot.to_payload()

        assert set(payload) == PAYLOAD_KEYS
        assert set(payload["price"]) == PRICE_KEYS
        assert set(payload["fundamentals"]) == FUNDAMENTALS_KEYS
        assert set(payload["stats"]) == STATS_KEYS
        assert set(payload["indicators"]) == INDICATOR_KEYS
        assert set(payload["indicators"]["macd"]) == {"line", "signal", "hist"}
        assert all(v is None for v in payload["price"].values())
        assert all(v is None for v in payload["stats"].values())
        assert payload["series"] == {"timeframe": "daily", "points": []}
        assert payload["news"] == []

    def test_non_finite_indicators_become_null(self, make_chart, quote):
        """NaN and infinity are mapped to null before crossing the boundary."""
        indicators = IndicatorSet(
            last_close=10.0,
            sma_20=math.nan,
            rsi_14=math.inf,
            macd=MACDValue(line=1.0, signal=None, histogram=None),
        )

        snapshot = build_snapshot("AAPL", AS_OF, quote, indicators=indicators, chart=make_chart([10.0]))

        assert snapshot.indicators.sma_20 is None
        assert snapshot.indicators.rsi_14 is None
        assert snapshot.indicators.macd.line == 1.0

    def test_payload_is_json_serializable(self, make_chart, quote, news_items):
        """to_payload output goes straight into json.dumps."""
        snapshot = build_snapshot("AAPL", AS_OF, quote, chart=make_chart([1.5, 2.5]), news=news_items)

        decoded = json.loads(json.dumps(snapshot.to_payload()))

        assert decoded["series"]["points"][1] == {"t": snapshot.series.points[1].t, "c": 2.5}
        assert decoded["news"][0]["publisher"] == "Reuters"

    def test_deterministic(self, make_chart, quote):
        """The same inputs give the same payload."""
        chart = make_chart([1.0, 2.0])

        first = build_snapshot("AAPL", AS_OF, quote, chart=chart).to_payload()
        second = build_snapshot("AAPL", AS_OF, quote, chart=chart).to_payload()

        assert first == second


class TestSnapshotReadiness:
    """Test the caller-side precondition."""

    def test_ready_with_all_inputs(self, make_chart, quote):
        assert is_snapshot_ready(make_chart([1.0]), quote, IndicatorSet()) is True

    @pytest.mark.parametrize("missing", ["chart", "quote", "indicators"])
    def test_not_ready_when_any_input_missing(self, make_chart, quote, missing):
        """Each of chart, quote and indicators is required."""
        inputs = {"chart": make_chart([1.0]), "quote": quote, "indicators": IndicatorSet()}
        inputs[missing] = [] if missing == "chart" else None

        assert is_snapshot_ready(**inputs) is False


class TestTrimPayloadSeries:
    """Test the series bound re-applied to submitted payloads."""

    def test_trims_to_most_recent_points(self):
        payload = {"ticker": "AAPL", "series": {"timeframe": "daily", "points": [{"t": i, "c": i} for i in range(300)]}}

        result = trim_payload_series(payload, max_points=180)

        assert len(result["series"]["points"]) == 180
        assert result["series"]["points"][0] == {"t": 120, "c": 120}
        assert result["series"]["timeframe"] == "daily"
        assert len(payload["series"]["points"]) == 300

    def test_non_list_points_become_empty(self):
        """A malformed points field is replaced by an empty list."""
        result = trim_payload_series({"series": {"points": "oops"}})

        assert result["series"]["points"] == []

    def test_payload_without_series_passes_through(self):
        assert trim_payload_series({"ticker": "AAPL"}) == {"ticker": "AAPL"}
