"""
Technical indicators over a daily close series.

All functions are pure and operate on a finite, ordered list of closes. Series
functions return one entry per input point, ``None`` where the indicator is
not yet defined, so they can be plotted against the price chart directly.
``summarize_indicators`` reduces them to last values for the snapshot.

INDICATORS:
    SMA (Simple Moving Average):
        Mean of the trailing ``period`` closes. Running sum, O(n).

    EMA (Exponential Moving Average):
        Smoothing factor k = 2 / (period + 1), seeded with the SMA of the first
        ``period`` closes so the early series is not dominated by one value.

    MACD (Moving Average Convergence/Divergence):
        line = EMA(12) - EMA(26); signal = EMA(9) of the line;
        histogram = line - signal.

    RSI (Relative Strength Index):
        Wilder's smoothing over 14 periods, bounded to [0, 100].
"""

from dataclasses import dataclass, field
from math import inf

SMA_PERIODS = (20, 50, 200)
EMA_PERIODS = (20, 50, 200)

MACD_FAST = 12
MACD_SLOW = 26
MACD_SIGNAL = 9
RSI_PERIOD = 14


@dataclass(frozen=True)
class MACDValue:
    line: float | None = None
    signal: float | None = None
    histogram: float | None = None


@dataclass(frozen=True)
class MACDSeries:
    line: list[float | None] = field(default_factory=list)
    signal: list[float | None] = field(default_factory=list)
    histogram: list[float | None] = field(default_factory=list)


@dataclass(frozen=True)
class IndicatorSet:
    """Last-value summary of every indicator; ``None`` when the series is too short."""
    last_close: float | None = None
    sma_20: float | None = None         # ~1 month trend
    sma_50: float | None = None         # ~1 quarter trend
    sma_200: float | None = None        # long-term trend
    ema_20: float | None = None
    ema_50: float | None = None
    ema_200: float | None = None
    macd: MACDValue = field(default_factory=MACDValue)
    rsi_14: float | None = None         # 0-100; <30 oversold, >70 overbought


@dataclass(frozen=True)
class IndicatorSeries:
    """Full per-point indicator series for charting."""
    sma: dict[int, list[float | None]] = field(default_factory=dict)
    ema: dict[int, list[float | None]] = field(default_factory=dict)
    macd: MACDSeries = field(default_factory=MACDSeries)
    rsi: list[float | None] = field(default_factory=list)


def sma(values: list[float], period: int) -> list[float | None]:
    """Simple moving average; index i is defined once i >= period - 1."""
    out: list[float | None] = [None] * len(values)
    if period <= 0:
        return out

    total = 0.0
    for i, value in enumerate(values):
        total += value
        if i >= period:
            total -= values[i - period]
        if i >= period - 1:
            out[i] = total / period
    return out


def ema(values: list[float], period: int) -> list[float | None]:
    """Exponential moving average seeded by the SMA of the first ``period`` values."""
    out: list[float | None] = [None] * len(values)
    if period <= 0 or len(values) < period:
        return out

    k = 2 / (period + 1)
    # Same accumulation order as sma() so the seed matches it exactly
    total = 0.0
    for value in values[:period]:
        total += value
    prev = total / period
    out[period - 1] = prev
    for i in range(period, len(values)):
        prev = values[i] * k + prev * (1 - k)
        out[i] = prev
    return out


def macd(
    values: list[float],
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
    signal: int = MACD_SIGNAL,
) -> MACDSeries:
    """
    MACD line, signal and histogram.

    The line is undefined until both EMAs are. Its leading gap is filled with
    the first defined line value before the signal EMA is taken (no line, no
    signal), so the signal EMA keeps its seeding window without propagating
    undefined values. The histogram is defined only where both line and signal
    are.
    """
    ema_fast = ema(values, fast)
    ema_slow = ema(values, slow)

    line = [
        f - s if f is not None and s is not None else None
        for f, s in zip(ema_fast, ema_slow)
    ]

    first_defined = next((v for v in line if v is not None), None)
    if first_defined is None:
        signal_line: list[float | None] = [None] * len(line)
    else:
        signal_line = ema([first_defined if v is None else v for v in line], signal)

    histogram = [
        v - s if v is not None and s is not None else None
        for v, s in zip(line, signal_line)
    ]

    return MACDSeries(line=line, signal=signal_line, histogram=histogram)


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    rs = inf if avg_loss == 0 else avg_gain / avg_loss
    return 100 - 100 / (1 + rs)


def rsi(values: list[float], period: int = RSI_PERIOD) -> list[float | None]:
    """
    Relative strength index using Wilder's smoothing.

    Averages are seeded from the first ``period`` deltas, then smoothed:
    avg = (prev_avg * (period - 1) + current) / period. A zero average loss
    yields 100. Index i is defined once i >= period.
    """
    out: list[float | None] = [None] * len(values)
    if len(values) < 2 or period <= 0 or len(values) <= period:
        return out

    gain_sum = 0.0
    loss_sum = 0.0
    for i in range(1, period + 1):
        change = values[i] - values[i - 1]
        if change >= 0:
            gain_sum += change
        else:
            loss_sum -= change

    avg_gain = gain_sum / period
    avg_loss = loss_sum / period
    out[period] = _rsi_from_averages(avg_gain, avg_loss)

    for i in range(period + 1, len(values)):
        change = values[i] - values[i - 1]
        avg_gain = (avg_gain * (period - 1) + max(change, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-change, 0.0)) / period
        out[i] = _rsi_from_averages(avg_gain, avg_loss)

    return out


def last_value(series: list[float | None]) -> float | None:
    """Last defined value of a series (None if it never became defined)."""
    for value in reversed(series):
        if value is not None:
            return value
    return None


def compute_indicator_series(closes: list[float]) -> IndicatorSeries:
    """Compute every charted indicator over ``closes``."""
    return IndicatorSeries(
        sma={p: sma(closes, p) for p in SMA_PERIODS},
        ema={p: ema(closes, p) for p in EMA_PERIODS},
        macd=macd(closes),
        rsi=rsi(closes),
    )


def summarize_indicators(closes: list[float]) -> IndicatorSet:
    """Reduce the indicator series to their last values."""
    series = compute_indicator_series(closes)
    return IndicatorSet(
        last_close=closes[-1] if closes else None,
        sma_20=last_value(series.sma[20]),
        sma_50=last_value(series.sma[50]),
        sma_200=last_value(series.sma[200]),
        ema_20=last_value(series.ema[20]),
        ema_50=last_value(series.ema[50]),
        ema_200=last_value(series.ema[200]),
        macd=MACDValue(
            line=last_value(series.macd.line),
            signal=last_value(series.macd.signal),
            histogram=last_value(series.macd.histogram),
        ),
        rsi_14=last_value(series.rsi),
    )
