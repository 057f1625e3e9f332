"""Normalization of raw provider payloads into the internal market data shapes.

Upstream records arrive in several variants: bars keyed ``t``/``o``/``c`` or
``timestamp``/``open``/``close``, lists wrapped under ``results`` or bare,
publishers nested under an object or flattened to ``source``. Every function
here performs ordered fallback lookups and returns a fixed shape. None of them
raise on malformed input; they degrade to empty/None instead.
"""

import math
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from stocklens.services.market_data.provider import (
    Bar,
    ClosePoint,
    Fundamentals,
    NewsItem,
    Quote,
)
from stocklens.utils.logging import get_logger

log = get_logger(__name__)

_MISSING = object()


def _first(record: Mapping[str, Any], *keys: str) -> Any:
    """Return the first non-None value among ``keys`` (``a ?? b ?? c``)."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return int(round(number)) if number is not None else None


def _as_timestamp(value: Any) -> int | None:
    """Milliseconds since epoch from an int/float/numeric string or a datetime."""
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return _as_int(value)


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _unwrap_results(raw: Any, default: Any = _MISSING) -> Any:
    """Return ``raw["results"]`` for wrapped payloads, ``raw`` otherwise."""
    if isinstance(raw, Mapping):
        results = raw.get("results")
        if results is not None:
            return results
        return raw if default is _MISSING else default
    return raw


# =============================================================================
# BARS
# =============================================================================


def normalize_bar(record: Any) -> Bar | None:
    """Convert one raw bar record, or None when it has no usable timestamp."""
    if not isinstance(record, Mapping):
        return None

    timestamp = _as_timestamp(_first(record, "t", "timestamp"))
    if timestamp is None:
        return None

    return Bar(
        timestamp=timestamp,
        open=_as_float(_first(record, "o", "open")),
        high=_as_float(_first(record, "h", "high")),
        low=_as_float(_first(record, "l", "low")),
        close=_as_float(_first(record, "c", "close")),
        volume=_as_int(_first(record, "v", "volume")),
    )


def normalize_bars(raw: Any) -> list[Bar]:
    """
    Convert an aggregates response into an ordered list of Bars.

    Accepts a bare list of records or a mapping holding the list under
    ``results``. Error payloads, empty responses and anything else yield an
    empty list. The result is sorted by timestamp with duplicates dropped
    (first occurrence wins), so timestamps are strictly increasing.
    """
    records = _unwrap_results(raw, default=None)
    if not isinstance(records, list):
        if raw is not None:
            log.debug("bars_payload_unrecognized", payload_type=type(raw).__name__)
        return []

    bars: dict[int, Bar] = {}
    dropped = 0
    for record in records:
        bar = normalize_bar(record)
        if bar is None:
            dropped += 1
            continue
        bars.setdefault(bar.timestamp, bar)

    if dropped:
        log.debug("bars_dropped", dropped=dropped, kept=len(bars))

    return [bars[ts] for ts in sorted(bars)]


def to_close_points(bars: Iterable[Bar]) -> list[ClosePoint]:
    """Project bars onto (timestamp, close), skipping bars without a close."""
    return [
        ClosePoint(timestamp=bar.timestamp, close=bar.close)
        for bar in bars
        if bar.close is not None
    ]


def normalize_previous_day(raw: Any) -> Bar | None:
    """Extract the previous-day bar; ``results`` may be a list or a single object."""
    results = _unwrap_results(raw, default=None)
    if isinstance(results, Mapping):
        results = [results]
    if not isinstance(results, list) or not results:
        return None
    return normalize_bar(results[0])


def quote_from_bar(symbol: str, bar: Bar | None, currency: str = "USD") -> Quote | None:
    """Derive a Quote from the previous-day bar (open is the reference price)."""
    if bar is None:
        return None

    change = None
    change_pct = None
    if bar.close is not None and bar.open is not None:
        change = bar.close - bar.open
        if bar.open != 0:
            change_pct = change / bar.open * 100

    return Quote(
        symbol=symbol,
        price=bar.close,
        change=change,
        change_pct=change_pct,
        day_high=bar.high,
        day_low=bar.low,
        prev_close=bar.open,
        volume=bar.volume,
        currency=currency,
    )


# =============================================================================
# DETAILS & NEWS
# =============================================================================


def normalize_details(raw: Any) -> Fundamentals:
    """Convert a ticker-details response (wrapped or bare) into Fundamentals."""
    record = _unwrap_results(raw)
    if not isinstance(record, Mapping):
        return Fundamentals()

    return Fundamentals(
        name=_as_str(record.get("name")),
        ticker=_as_str(record.get("ticker")),
        market_cap=_as_float(record.get("market_cap")),
        currency_name=_as_str(record.get("currency_name")),
        primary_exchange=_as_str(_first(record, "primary_exchange", "primary_exchange_symbol")),
        industry=_as_str(_first(record, "industry", "sic_description")),
        homepage_url=_as_str(record.get("homepage_url")),
    )


def _publisher_name(record: Mapping[str, Any]) -> str | None:
    publisher = record.get("publisher")
    if isinstance(publisher, Mapping):
        publisher = publisher.get("name")
    return _as_str(publisher if publisher is not None else record.get("source"))


def normalize_news_item(record: Mapping[str, Any]) -> NewsItem:
    return NewsItem(
        id=_as_str(_first(record, "id", "uuid")) or str(uuid.uuid4()),
        title=_as_str(record.get("title")),
        published_utc=_as_str(record.get("published_utc")),
        publisher=_publisher_name(record),
        article_url=_as_str(_first(record, "article_url", "url")),
    )


def normalize_news(raw: Any) -> list[NewsItem]:
    """Convert a news response into a flat list of NewsItems, preserving order."""
    records = _unwrap_results(raw, default=None)
    if not isinstance(records, list):
        return []
    return [normalize_news_item(r) for r in records if isinstance(r, Mapping)]
