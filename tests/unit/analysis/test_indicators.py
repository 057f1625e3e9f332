"""
Unit tests for technical indicators.
"""

import math

import pytest

from stocklens.analysis.indicators import (
    IndicatorSet,
    compute_indicator_series,
    ema,
    last_value,
    macd,
    rsi,
    sma,
    summarize_indicators,
)

ASCENDING_20 = [float(v) for v in range(10, 30)]


class TestSMA:
    """Test simple moving average."""

    def test_full_window_mean(self):
        """Mean of 10..29 over a 20-point window is 19.5."""
        result = sma(ASCENDING_20, 20)

        assert result[19] == 19.5
        assert result[18] is None

    def test_each_point_is_trailing_mean(self):
        """Every defined point equals the mean of its trailing window."""
        values = [3.0, 7.5, 1.25, 9.0, 4.0, 6.5, 2.0, 8.0, 5.5, 0.5]
        period = 4

        result = sma(values, period)

        for i, value in enumerate(result):
            if i < period - 1:
                assert value is None
            else:
                window = values[i - period + 1:i + 1]
                assert value == pytest.approx(sum(window) / period)

    def test_output_is_parallel_to_input(self):
        """One entry per input point."""
        assert len(sma(ASCENDING_20, 5)) == len(ASCENDING_20)

    def test_non_positive_period_is_all_null(self):
        """Pathological periods yield nulls instead of failing."""
        assert sma(ASCENDING_20, 0) == [None] * 20
        assert sma(ASCENDING_20, -3) == [None] * 20

    def test_series_shorter_than_period(self):
        """Nothing is defined until the window fills."""
        assert sma([1.0, 2.0], 5) == [None, None]

    def test_empty_series(self):
        """Empty input gives empty output."""
        assert sma([], 20) == []


class TestEMA:
    """Test exponential moving average."""

    def test_seed_equals_sma(self):
        """The value at the seed index is exactly the SMA at that index."""
        values = [101.3, 99.7, 102.1, 100.05, 98.4, 103.9, 104.2, 101.1, 99.99, 100.0]
        for period in (2, 3, 5, 10):
            assert ema(values, period)[period - 1] == sma(values, period)[period - 1]

    def test_smoothing_step(self):
        """After the seed, next = value * k + prev * (1 - k)."""
        # period 3: k = 0.5, seed = mean(1, 2, 3) = 2
        result = ema([1.0, 2.0, 3.0, 4.0, 5.0], 3)

        assert result == [None, None, 2.0, 3.0, 4.0]

    def test_null_before_seed_index(self):
        """Leading points before period - 1 are null."""
        result = ema(ASCENDING_20, 5)

        assert result[:4] == [None] * 4
        assert all(v is not None for v in result[4:])

    def test_short_series_is_all_null(self):
        """Fewer points than the period gives no values."""
        assert ema([1.0, 2.0, 3.0], 5) == [None, None, None]

    def test_non_positive_period_is_all_null(self):
        """Pathological periods yield nulls instead of failing."""
        assert ema(ASCENDING_20, 0) == [None] * 20


class TestMACD:
    """Test MACD line, signal and histogram."""

    def test_histogram_null_propagation(self):
        """Histogram is null exactly where line or signal is null."""
        closes = [100 + math.sin(i / 3) * 5 + i * 0.2 for i in range(80)]

        result = macd(closes)

        for line, signal, hist in zip(result.line, result.signal, result.histogram):
            if line is None or signal is None:
                assert hist is None
            else:
                assert hist == pytest.approx(line - signal)

    def test_line_defined_once_slow_ema_is(self):
        """The line starts at the slow EMA's seed index (26 - 1)."""
        closes = [float(v) for v in range(1, 61)]

        result = macd(closes)

        assert result.line[24] is None
        assert result.line[25] is not None

    def test_signal_fed_first_defined_line_value(self):
        """Leading gaps are substituted with the first defined line value before smoothing."""
        closes = [float(v) for v in range(1, 61)]

        result = macd(closes)

        # Signal seeds at index 8 over nine copies of line[25]
        assert result.signal[7] is None
        assert result.signal[8] == pytest.approx(result.line[25])
        assert result.histogram[8] is None

    def test_no_line_means_no_signal(self):
        """Too short for the slow EMA: every series is null."""
        closes = [float(v) for v in range(1, 21)]

        result = macd(closes)

        assert result.line == [None] * 20
        assert result.signal == [None] * 20
        assert result.histogram == [None] * 20

    def test_custom_periods(self):
        """Fast/slow/signal periods are parameters."""
        closes = [float(v) for v in range(1, 11)]

        result = macd(closes, fast=2, slow=4, signal=2)

        assert result.line[2] is None
        assert result.line[3] is not None


class TestRSI:
    """Test RSI with Wilder smoothing."""

    def test_monotonic_increase_saturates_at_100(self):
        """Zero average loss resolves to 100, never infinity or NaN."""
        result = rsi(ASCENDING_20)

        assert result[13] is None
        assert all(v == 100.0 for v in result[14:])

    def test_monotonic_decrease_is_zero(self):
        """Zero average gain resolves to 0."""
        result = rsi(list(reversed(ASCENDING_20)))

        assert all(v == 0.0 for v in result[14:])

    def test_flat_series(self):
        """Flat prices have zero average loss and are treated as 100."""
        result = rsi([50.0] * 20)

        assert result[14] == 100.0

    def test_balanced_moves(self):
        """Equal average gain and loss gives 50."""
        result = rsi([1.0, 2.0, 1.0], period=2)

        assert result == [None, None, 50.0]

    def test_wilder_smoothing_step(self):
        """After the seed, averages are smoothed with (prev * (p - 1) + current) / p."""
        # period 2: seed gain 1.0, loss 0.0 -> 100; then a -2 move:
        # gain = (1.0 * 1 + 0) / 2 = 0.5, loss = (0 * 1 + 2) / 2 = 1.0 -> RS 0.5
        result = rsi([1.0, 2.0, 3.0, 1.0], period=2)

        assert result[2] == 100.0
        assert result[3] == pytest.approx(100 - 100 / 1.5)

    def test_values_stay_in_range(self):
        """RSI is bounded to [0, 100]."""
        closes = [100 + math.cos(i) * 10 for i in range(60)]

        for value in rsi(closes):
            if value is not None:
                assert 0.0 <= value <= 100.0

    def test_too_short(self):
        """Fewer than two points, or not more than the period, gives no values."""
        assert rsi([42.0]) == [None]
        assert rsi([float(v) for v in range(14)]) == [None] * 14


class TestSummaries:
    """Test last-value extraction and the IndicatorSet."""

    def test_last_value_skips_trailing_nulls(self):
        """The last defined value is returned."""
        assert last_value([None, 1.0, 2.0, None]) == 2.0
        assert last_value([None, None]) is None
        assert last_value([]) is None

    def test_full_history(self):
        """With 250 points every indicator is defined."""
        closes = [100 + i * 0.5 + math.sin(i) for i in range(250)]

        result = summarize_indicators(closes)

        assert result.last_close == closes[-1]
        assert result.sma_200 == pytest.approx(sum(closes[-200:]) / 200)
        assert result.sma_20 == pytest.approx(sum(closes[-20:]) / 20)
        for value in (result.ema_20, result.ema_50, result.ema_200, result.rsi_14):
            assert value is not None
        assert result.macd.histogram == pytest.approx(result.macd.line - result.macd.signal)

    def test_short_history_leaves_long_indicators_null(self):
        """Indicators needing more points than available stay null."""
        closes = [float(v) for v in range(1, 31)]

        result = summarize_indicators(closes)

        assert result.sma_20 is not None
        assert result.sma_50 is None
        assert result.sma_200 is None
        assert result.ema_200 is None
        assert result.rsi_14 == 100.0
        assert result.macd.line is not None

    def test_empty_series(self):
        """No closes gives an all-null IndicatorSet."""
        assert summarize_indicators([]) == IndicatorSet()

    def test_series_are_parallel(self):
        """Charted series have one entry per close."""
        closes = [float(v) for v in range(1, 41)]

        series = compute_indicator_series(closes)

        assert set(series.sma) == {20, 50, 200}
        assert set(series.ema) == {20, 50, 200}
        assert all(len(v) == 40 for v in series.sma.values())
        assert len(series.macd.histogram) == 40
        assert len(series.rsi) == 40
