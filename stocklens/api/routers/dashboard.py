"""Dashboard endpoints."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query

from stocklens.api.dependencies import get_generator, get_market_data
from stocklens.narrative.generator import NarrativeGenerator
from stocklens.services.dashboard import DashboardSession
from stocklens.services.market_data import MarketDataService, validate_symbol
from stocklens.utils.logging import get_logger

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])
log = get_logger(__name__)


def _symbol_or_400(ticker: str) -> str:
    try:
        return validate_symbol(ticker)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{ticker}")
async def get_dashboard(
    ticker: str,
    narrative: bool = Query(True, description="Request the AI narrative when enough data is available"),
    market_data: MarketDataService = Depends(get_market_data),
    generator: NarrativeGenerator = Depends(get_generator),
) -> dict:
    """
    Load the full dashboard for a ticker.

    Upstream fetch failures degrade to null/empty sections (listed under
    ``errors``); the narrative is only requested once chart, quote and
    indicators are all available.
    """
    symbol = _symbol_or_400(ticker)
    session = DashboardSession(market_data=market_data, generator=generator)
    state = await session.submit(symbol, with_narrative=narrative)
    if state is None:
        # A fresh session is never superseded; guard anyway
        raise HTTPException(status_code=409, detail=f"Dashboard load for {symbol} was superseded")
    return state.to_dict()


@router.get("/{ticker}/indicators")
async def get_indicator_series(
    ticker: str,
    market_data: MarketDataService = Depends(get_market_data),
    generator: NarrativeGenerator = Depends(get_generator),
) -> dict:
    """Full per-point indicator series for charting."""
    symbol = _symbol_or_400(ticker)
    session = DashboardSession(market_data=market_data, generator=generator)
    chart, series = await session.indicator_series(symbol)

    log.info("indicator_series_served", ticker=symbol, points=len(chart))
    return {
        "ticker": symbol,
        "points": [{"t": p.timestamp, "c": p.close} for p in chart],
        "sma": {str(period): values for period, values in series.sma.items()},
        "ema": {str(period): values for period, values in series.ema.items()},
        "macd": asdict(series.macd),
        "rsi": series.rsi,
    }
