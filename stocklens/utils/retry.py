"""
Retry with exponential backoff for market data provider calls.

Transport failures and rate-limit/server-error responses are retried;
everything else (bad symbols, 4xx responses, error payloads) fails fast.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import TypeVar

import httpx

from stocklens.config import settings
from stocklens.exceptions import MarketDataError
from stocklens.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

# Network-level exceptions that should trigger retry
NETWORK_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    OSError,
    httpx.TransportError,
)

# Provider responses worth another attempt
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_retryable(exc: Exception) -> bool:
    """True for transport errors and rate-limited/5xx provider responses."""
    if isinstance(exc, NETWORK_EXCEPTIONS):
        return True
    if isinstance(exc, MarketDataError):
        return exc.status_code in RETRYABLE_STATUS_CODES
    return False


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    backoff_base: float = 1.0       # Seconds before the second attempt
    backoff_max: float = 4.0
    jitter: bool = True             # Adds up to 50% random delay

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            attempts=settings.market_data.max_retries,
            backoff_base=settings.market_data.retry_backoff_base,
            backoff_max=settings.market_data.retry_backoff_max,
        )

    def delay(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt`` failed."""
        delay = min(self.backoff_base * (2 ** attempt), self.backoff_max)
        if self.jitter:
            delay += random.uniform(0, delay * 0.5)
        return delay


def retry_with_backoff(
    policy: RetryPolicy | None = None,
    should_retry: Callable[[Exception], bool] = is_retryable,
):
    """
    Decorator retrying an async call according to ``policy``.

    Args:
        policy: Attempts and backoff (defaults to MARKET_DATA_* settings)
        should_retry: Predicate deciding whether a failure is retried

    Example:
        @retry_with_backoff(RetryPolicy(attempts=2, jitter=False))
        async def fetch():
            ...
    """
    policy = policy or RetryPolicy.from_settings()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not should_retry(e):
                        raise
                    if attempt + 1 >= policy.attempts:
                        log.error(
                            "retry_exhausted",
                            function=func.__name__,
                            attempts=policy.attempts,
                            error=str(e),
                            error_type=type(e).__name__,
                        )
                        raise

                    delay = policy.delay(attempt)
                    attempt += 1
                    log.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt,
                        max_retries=policy.attempts,
                        delay=round(delay, 2),
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
