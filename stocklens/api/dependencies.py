"""Shared dependencies for API endpoints.

Routers resolve their collaborators through these functions so tests can
swap them with ``app.dependency_overrides``.
"""

from functools import lru_cache

from stocklens.narrative.generator import NarrativeGenerator
from stocklens.services.market_data import MarketDataService, market_data_service


def get_market_data() -> MarketDataService:
    return market_data_service


@lru_cache
def get_generator() -> NarrativeGenerator:
    """Process-wide narrative generator (the chat model client is created lazily)."""
    return NarrativeGenerator()
