"""Indicator, statistics and snapshot computation over daily price series."""

from stocklens.analysis.indicators import IndicatorSeries, IndicatorSet, MACDValue, compute_indicator_series, summarize_indicators
from stocklens.analysis.snapshot import Snapshot, build_snapshot, is_snapshot_ready, round_value, trim_payload_series
from stocklens.analysis.stats import BarStats, YearStats, compute_bar_stats

__all__ = [
    "IndicatorSeries",
    "IndicatorSet",
    "MACDValue",
    "compute_indicator_series",
    "summarize_indicators",
    "Snapshot",
    "build_snapshot",
    "is_snapshot_ready",
    "round_value",
    "trim_payload_series",
    "BarStats",
    "YearStats",
    "compute_bar_stats",
]
