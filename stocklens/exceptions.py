"""Custom exceptions for stocklens."""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories surfaced for a narrative request."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    UPSTREAM = "upstream"
    NOT_CONFIGURED = "not_configured"


class StockLensError(Exception):
    """Base exception for stocklens errors."""
    pass


class MarketDataError(StockLensError):
    """Raised when a market data provider call fails or returns an error payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NarrativeError(StockLensError):
    """Raised when the narrative-generation service cannot produce a response."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.NETWORK):
        super().__init__(message)
        self.kind = kind
