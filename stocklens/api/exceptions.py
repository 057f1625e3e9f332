"""Exception handlers for the HTTP API."""

from fastapi import status
from fastapi.responses import JSONResponse

from stocklens.exceptions import ErrorKind, MarketDataError, NarrativeError, StockLensError

_NARRATIVE_STATUS = {
    ErrorKind.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.NOT_CONFIGURED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for_kind(kind: ErrorKind | None) -> int:
    """HTTP status for a failed narrative request."""
    return _NARRATIVE_STATUS.get(kind, status.HTTP_502_BAD_GATEWAY)


def status_for_error(exc: StockLensError) -> int:
    """Map a stocklens error onto an HTTP status code."""
    if isinstance(exc, NarrativeError):
        return status_for_kind(exc.kind)
    if isinstance(exc, MarketDataError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_400_BAD_REQUEST


async def stocklens_error_handler(request, exc: StockLensError):
    """Convert StockLensError to a JSON error response."""
    return JSONResponse(
        status_code=status_for_error(exc),
        content={"error": str(exc), "type": exc.__class__.__name__}
    )
