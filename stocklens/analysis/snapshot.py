"""Snapshot builder: the bounded, rounded payload sent to the narrative model.

The snapshot is deterministic for a given input and kept small for token
economy:
- the price series is cut to the most recent ``max_points`` closes
  ({t, c} only, open/high/low/volume dropped);
- news is cut to the first ``max_news`` items, reduced to five fields;
- every numeric leaf goes through ``round_value`` so no NaN, infinity or
  float noise reaches the payload.

Every documented key is always present in the payload; unknown values are
``None`` (``null`` in JSON), never omitted.
"""

import math
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from stocklens.analysis.indicators import IndicatorSet
from stocklens.analysis.stats import YearStats
from stocklens.config import settings
from stocklens.services.market_data.provider import ClosePoint, Fundamentals, NewsItem, Quote

PRICE_DIGITS = 4
COUNT_DIGITS = 0


def round_value(value: Any, digits: int = PRICE_DIGITS) -> float | int | None:
    """
    Round a numeric value half-up to ``digits`` decimals.

    Non-numeric (including bool) and non-finite values become None. With
    ``digits == 0`` the result is an int. Rounding an already rounded value
    at the same precision returns it unchanged.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    if not math.isfinite(value):
        return None

    factor = 10 ** digits
    scaled = value * factor
    if not math.isfinite(scaled):
        return float(value)
    rounded = math.floor(scaled + 0.5) / factor
    return int(rounded) if digits == 0 else rounded


# =============================================================================
# PAYLOAD SCHEMA
# =============================================================================


class _Block(BaseModel):
    model_config = ConfigDict(frozen=True)


class PriceBlock(_Block):
    last: float | None = None
    change: float | None = None
    change_pct: float | None = None
    day_high: float | None = None
    day_low: float | None = None
    prev_close: float | None = None
    volume: int | None = None
    currency: str | None = None


class FundamentalsBlock(_Block):
    name: str | None = None
    market_cap: int | None = None
    exchange: str | None = None
    industry: str | None = None
    homepage: str | None = None


class StatsBlock(_Block):
    high_52w: float | None = None
    low_52w: float | None = None
    return_1y: float | None = None      # Percent, e.g. 12.34
    avg_volume_90d: int | None = None


class MACDBlock(_Block):
    line: float | None = None
    signal: float | None = None
    hist: float | None = None


class IndicatorsBlock(_Block):
    last_close: float | None = None
    sma_20: float | None = None
    sma_50: float | None = None
    sma_200: float | None = None
    ema_20: float | None = None
    ema_50: float | None = None
    ema_200: float | None = None
    macd: MACDBlock = Field(default_factory=MACDBlock)
    rsi_14: float | None = None


class SeriesPoint(_Block):
    t: int
    c: float | None = None


class SeriesBlock(_Block):
    timeframe: Literal["daily"] = "daily"
    points: tuple[SeriesPoint, ...] = ()


class NewsBlock(_Block):
    id: str
    title: str | None = None
    published_utc: str | None = None
    publisher: str | None = None
    article_url: str | None = None


class Snapshot(_Block):
    """Immutable LLM-facing payload for one ticker at one point in time."""

    ticker: str
    as_of: str
    price: PriceBlock = Field(default_factory=PriceBlock)
    fundamentals: FundamentalsBlock = Field(default_factory=FundamentalsBlock)
    stats: StatsBlock = Field(default_factory=StatsBlock)
    indicators: IndicatorsBlock = Field(default_factory=IndicatorsBlock)
    series: SeriesBlock = Field(default_factory=SeriesBlock)
    news: tuple[NewsBlock, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with every documented key present."""
        return self.model_dump(mode="json")


# =============================================================================
# BUILDER
# =============================================================================


def _price_block(quote: Quote | None) -> PriceBlock:
    if quote is None:
        return PriceBlock()
    return PriceBlock(
        last=round_value(quote.price),
        change=round_value(quote.change),
        change_pct=round_value(quote.change_pct),
        day_high=round_value(quote.day_high),
        day_low=round_value(quote.day_low),
        prev_close=round_value(quote.prev_close),
        volume=round_value(quote.volume, COUNT_DIGITS),
        currency=quote.currency,
    )


def _fundamentals_block(fundamentals: Fundamentals | None) -> FundamentalsBlock:
    if fundamentals is None:
        return FundamentalsBlock()
    return FundamentalsBlock(
        name=fundamentals.name,
        market_cap=round_value(fundamentals.market_cap, COUNT_DIGITS),
        exchange=fundamentals.primary_exchange,
        industry=fundamentals.industry,
        homepage=fundamentals.homepage_url,
    )


def _indicators_block(indicators: IndicatorSet | None) -> IndicatorsBlock:
    if indicators is None:
        return IndicatorsBlock()
    return IndicatorsBlock(
        last_close=round_value(indicators.last_close),
        sma_20=round_value(indicators.sma_20),
        sma_50=round_value(indicators.sma_50),
        sma_200=round_value(indicators.sma_200),
        ema_20=round_value(indicators.ema_20),
        ema_50=round_value(indicators.ema_50),
        ema_200=round_value(indicators.ema_200),
        macd=MACDBlock(
            line=round_value(indicators.macd.line),
            signal=round_value(indicators.macd.signal),
            hist=round_value(indicators.macd.histogram),
        ),
        rsi_14=round_value(indicators.rsi_14),
    )


def build_snapshot(
    ticker: str,
    as_of: datetime | str,
    quote: Quote | None,
    fundamentals: Fundamentals | None = None,
    year_stats: YearStats | None = None,
    trailing_return: float | None = None,
    average_volume: float | None = None,
    indicators: IndicatorSet | None = None,
    chart: list[ClosePoint] | tuple[ClosePoint, ...] = (),
    news: list[NewsItem] | None = None,
    max_points: int | None = None,
    max_news: int | None = None,
) -> Snapshot:
    """
    Assemble a Snapshot from whatever inputs are available.

    Missing inputs yield null leaves; the builder itself never fails. Callers
    only invoke it once chart data, a quote and indicators all exist (see
    ``is_snapshot_ready``).
    """
    max_points = settings.analysis.max_series_points if max_points is None else max_points
    max_news = settings.analysis.max_news_items if max_news is None else max_news

    recent = list(chart)[-max_points:] if max_points > 0 else []
    points = tuple(SeriesPoint(t=p.timestamp, c=round_value(p.close)) for p in recent)

    news_blocks = tuple(
        NewsBlock(
            id=item.id,
            title=item.title,
            published_utc=item.published_utc,
            publisher=item.publisher,
            article_url=item.article_url,
        )
        for item in (news or [])[:max(max_news, 0)]
    )

    return Snapshot(
        ticker=ticker.upper(),
        as_of=as_of.isoformat() if isinstance(as_of, datetime) else as_of,
        price=_price_block(quote),
        fundamentals=_fundamentals_block(fundamentals),
        stats=StatsBlock(
            high_52w=round_value(year_stats.high if year_stats else None),
            low_52w=round_value(year_stats.low if year_stats else None),
            return_1y=round_value(trailing_return),
            avg_volume_90d=round_value(average_volume, COUNT_DIGITS),
        ),
        indicators=_indicators_block(indicators),
        series=SeriesBlock(points=points),
        news=news_blocks,
    )


def is_snapshot_ready(
    chart: list[ClosePoint] | tuple[ClosePoint, ...],
    quote: Quote | None,
    indicators: IndicatorSet | None,
) -> bool:
    """Caller-side precondition for building a snapshot."""
    return bool(chart) and quote is not None and indicators is not None


def trim_payload_series(payload: dict[str, Any], max_points: int | None = None) -> dict[str, Any]:
    """
    Re-apply the series bound to an externally submitted snapshot payload.

    Returns a shallow copy; payloads without a ``series`` mapping pass through.
    """
    max_points = settings.analysis.max_series_points if max_points is None else max_points
    series = payload.get("series")
    if not isinstance(series, dict):
        return dict(payload)

    points = series.get("points")
    points = list(points)[-max_points:] if isinstance(points, list) and max_points > 0 else []
    return {**payload, "series": {**series, "points": points}}
