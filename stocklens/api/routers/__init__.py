"""API routers package."""

from stocklens.api.routers import analysis, dashboard, health

__all__ = ["analysis", "dashboard", "health"]
