"""
Dashboard session: orchestrates everything shown for one submitted ticker.

A session holds at most one committed ticker. Each ``submit`` bumps a
generation tag; fetch and narrative results are applied only if the tag and
ticker are still the committed ones when they arrive. Superseded work is not
cancelled, its results are just dropped.

Flow for one submission:
    1. Fetch bars, details, news and the previous-day bar concurrently
    2. Derive chart, stats and indicators from the bars
    3. Build the snapshot once chart, quote and indicators all exist
    4. Request the narrative when the snapshot series is long enough
"""

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from stocklens.analysis.indicators import (
    IndicatorSeries,
    IndicatorSet,
    compute_indicator_series,
    summarize_indicators,
)
from stocklens.analysis.snapshot import Snapshot, build_snapshot, is_snapshot_ready
from stocklens.analysis.stats import BarStats, compute_bar_stats
from stocklens.config import AnalysisSettings, settings
from stocklens.narrative.generator import NarrativeGenerator
from stocklens.narrative.models import AnalysisResult
from stocklens.services.market_data import (
    Bar,
    ClosePoint,
    Fundamentals,
    MarketDataService,
    NewsItem,
    Quote,
    market_data_service,
    validate_symbol,
)
from stocklens.services.market_data.normalize import to_close_points
from stocklens.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class DashboardState:
    """Everything derived for one ticker submission."""
    ticker: str
    generation: int
    bars: list[Bar] = field(default_factory=list)
    chart: list[ClosePoint] = field(default_factory=list)
    stats: BarStats | None = None
    indicators: IndicatorSet | None = None
    quote: Quote | None = None
    fundamentals: Fundamentals | None = None
    news: list[NewsItem] = field(default_factory=list)
    snapshot: Snapshot | None = None
    analysis: AnalysisResult | None = None
    errors: dict[str, str] = field(default_factory=dict)    # Fetch name -> error message

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "quote": asdict(self.quote) if self.quote else None,
            "fundamentals": asdict(self.fundamentals) if self.fundamentals else None,
            "stats": asdict(self.stats) if self.stats else None,
            "indicators": asdict(self.indicators) if self.indicators else None,
            "chart": [{"t": p.timestamp, "c": p.close} for p in self.chart],
            "news": [asdict(n) for n in self.news],
            "snapshot": self.snapshot.to_payload() if self.snapshot else None,
            "analysis": self.analysis.to_dict() if self.analysis else None,
            "errors": self.errors,
        }


class DashboardSession:
    """
    Loads the dashboard for one ticker at a time.

    Example:
        session = DashboardSession()
        state = await session.submit("aapl")
        if state is not None and state.analysis and state.analysis.ok:
            print(state.analysis.analysis.summary)
    """

    def __init__(
        self,
        market_data: MarketDataService | None = None,
        generator: NarrativeGenerator | None = None,
        config: AnalysisSettings | None = None,
    ):
        self.market_data = market_data or market_data_service
        self.generator = generator or NarrativeGenerator()
        self.config = config or settings.analysis
        self._generation = 0
        self._ticker: str | None = None
        self.state: DashboardState | None = None

    @property
    def ticker(self) -> str | None:
        """Currently committed ticker."""
        return self._ticker

    @property
    def generation(self) -> int:
        return self._generation

    def _is_current(self, generation: int, ticker: str) -> bool:
        return generation == self._generation and ticker == self._ticker

    def _settle(self, state: DashboardState, name: str, result: Any, default: Any) -> Any:
        """Unwrap a gathered result; failures are recorded and degrade to ``default``."""
        if isinstance(result, Exception):
            log.warning(
                "dashboard_fetch_failed",
                ticker=state.ticker,
                fetch=name,
                error=str(result),
                error_type=type(result).__name__,
            )
            state.errors[name] = str(result) or type(result).__name__
            return default
        return result

    async def submit(self, ticker: str, with_narrative: bool = True) -> DashboardState | None:
        """
        Commit ``ticker`` and load its dashboard.

        Returns the final state, or None when another submission superseded
        this one before it finished.

        Raises:
            ValueError: If the ticker symbol is invalid
        """
        symbol = validate_symbol(ticker)
        self._generation += 1
        generation = self._generation
        self._ticker = symbol
        state = DashboardState(ticker=symbol, generation=generation)
        self.state = state

        log.info("dashboard_submit", ticker=symbol, generation=generation)

        results = await asyncio.gather(
            self.market_data.fetch_bars(symbol, days=self.config.history_days),
            self.market_data.fetch_fundamentals(symbol),
            self.market_data.fetch_news(symbol),
            self.market_data.fetch_quote(symbol),
            return_exceptions=True,
        )
        if not self._is_current(generation, symbol):
            log.info("dashboard_stale_discarded", ticker=symbol, generation=generation, stage="fetch")
            return None

        bars, fundamentals, news, quote = results
        state.bars = self._settle(state, "bars", bars, [])
        state.fundamentals = self._settle(state, "fundamentals", fundamentals, None)
        state.news = self._settle(state, "news", news, [])
        state.quote = self._settle(state, "quote", quote, None)

        self._derive(state)

        if not is_snapshot_ready(state.chart, state.quote, state.indicators):
            log.info(
                "dashboard_snapshot_skipped",
                ticker=symbol,
                chart_points=len(state.chart),
                has_quote=state.quote is not None,
            )
            return state

        state.snapshot = build_snapshot(
            ticker=symbol,
            as_of=datetime.now(timezone.utc),
            quote=state.quote,
            fundamentals=state.fundamentals,
            year_stats=state.stats.year_stats,
            trailing_return=state.stats.trailing_return,
            average_volume=state.stats.average_volume,
            indicators=state.indicators,
            chart=state.chart,
            news=state.news,
            max_points=self.config.max_series_points,
            max_news=self.config.max_news_items,
        )

        points = len(state.snapshot.series.points)
        if not with_narrative or points < self.config.min_series_points:
            log.info("dashboard_narrative_skipped", ticker=symbol, series_points=points)
            return state

        analysis = await self.generator.analyze(state.snapshot)
        if not self._is_current(generation, symbol):
            log.info("dashboard_stale_discarded", ticker=symbol, generation=generation, stage="narrative")
            return None

        state.analysis = analysis
        log.info(
            "dashboard_complete",
            ticker=symbol,
            generation=generation,
            narrative_ok=analysis.ok,
            error_kind=analysis.error_kind.value if analysis.error_kind else None,
        )
        return state

    def _derive(self, state: DashboardState) -> None:
        """Chart, stats and indicators from the fetched bars."""
        state.chart = to_close_points(state.bars)
        state.stats = compute_bar_stats(state.bars, volume_window=self.config.volume_window)
        if state.chart:
            state.indicators = summarize_indicators([p.close for p in state.chart])

    async def indicator_series(self, ticker: str) -> tuple[list[ClosePoint], IndicatorSeries]:
        """Full per-point indicator series for charting; does not touch session state."""
        symbol = validate_symbol(ticker)
        bars = await self.market_data.fetch_bars(symbol, days=self.config.history_days)
        chart = to_close_points(bars)
        return chart, compute_indicator_series([p.close for p in chart])
