"""FastAPI application setup and configuration."""

import argparse
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stocklens.api.exceptions import stocklens_error_handler
from stocklens.api.middleware import RequestLoggingMiddleware
from stocklens.api.routers import analysis, dashboard, health
from stocklens.config import settings
from stocklens.exceptions import StockLensError
from stocklens.services.market_data import market_data_service
from stocklens.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
log = get_logger(__name__)

# OpenAPI tags metadata
tags_metadata = [
    {"name": "Health", "description": "Service health checks"},
    {"name": "Dashboard", "description": "Ticker dashboard: prices, stats, indicators, news and narrative"},
    {"name": "Analysis", "description": "AI narrative analysis of a snapshot (batched or streamed)"},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info(
        "stocklens_starting",
        version=app.version,
        market_data_key=bool(settings.market_data.api_key),
        llm_model=settings.llm.model,
    )

    yield

    # Providers own pooled HTTP clients
    await market_data_service.aclose()
    log.info("stocklens_stopping")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="StockLens",
        description="Ticker dashboard with technical indicators and AI narrative analysis",
        version="0.1.0",
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )

    # Middleware added last runs outermost; CORS wraps request logging
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.add_exception_handler(StockLensError, stocklens_error_handler)

    app.include_router(health.router)
    app.include_router(dashboard.router)
    app.include_router(analysis.router)

    return app


# Create the app instance
app = create_app()


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    parser = argparse.ArgumentParser(description="Run the StockLens API")
    parser.add_argument("--host", default=settings.api.host)
    parser.add_argument("--port", type=int, default=settings.api.port)
    args = parser.parse_args()

    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    run()
