"""Derived statistics over the fetched daily bar window."""

from dataclasses import dataclass

from stocklens.services.market_data.provider import Bar

AVERAGE_VOLUME_WINDOW = 90


@dataclass(frozen=True)
class YearStats:
    high: float
    low: float


@dataclass(frozen=True)
class BarStats:
    year_stats: YearStats | None = None
    trailing_return: float | None = None    # Percent over the window
    average_volume: float | None = None


def year_high_low(bars: list[Bar]) -> YearStats | None:
    """High/low over the whole window; per-bar high/low fall back to close."""
    highs = [b.high if b.high is not None else b.close for b in bars]
    lows = [b.low if b.low is not None else b.close for b in bars]
    highs = [h for h in highs if h is not None]
    lows = [low for low in lows if low is not None]
    if not highs or not lows:
        return None
    return YearStats(high=max(highs), low=min(lows))


def trailing_return(bars: list[Bar]) -> float | None:
    """
    Percent return from the first to the last bar of the window.

    Uses close, falling back to open, at both ends. None with fewer than two
    bars or when either endpoint price is missing or zero.
    """
    if len(bars) < 2:
        return None

    first, last = bars[0], bars[-1]
    first_price = first.close if first.close is not None else first.open
    last_price = last.close if last.close is not None else last.open
    if not first_price or not last_price:
        return None
    return (last_price - first_price) / first_price * 100


def average_volume(bars: list[Bar], window: int = AVERAGE_VOLUME_WINDOW) -> float | None:
    """Mean volume over the trailing ``window`` bars (or all, if fewer); missing volume counts as 0."""
    if not bars or window <= 0:
        return None
    recent = bars[-window:]
    return sum(b.volume or 0 for b in recent) / len(recent)


def compute_bar_stats(bars: list[Bar], volume_window: int = AVERAGE_VOLUME_WINDOW) -> BarStats:
    return BarStats(
        year_stats=year_high_low(bars),
        trailing_return=trailing_return(bars),
        average_volume=average_volume(bars, volume_window),
    )
