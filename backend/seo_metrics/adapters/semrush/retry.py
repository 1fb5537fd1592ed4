"""
Optional retry layer around SEMrush calls
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from seo_metrics.config import get_settings
from .base import RateLimitError, RemoteError, RemoteTimeoutError, SEMrushError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Exponential backoff for transient provider failures.

    Retries rate limits (honouring Retry-After, capped at max_delay),
    timeouts, transport errors and 5xx responses. Quota and parsing
    errors are never retried. max_retries=0 means a single attempt.
    """
    max_retries: int = 0
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0  # seconds
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    @classmethod
    def from_settings(cls, settings=None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            max_retries=settings.SEMRUSH_MAX_RETRIES,
            base_delay=settings.SEMRUSH_RETRY_DELAY,
            max_delay=settings.SEMRUSH_MAX_RETRY_DELAY,
        )

    def is_retryable(self, error: SEMrushError) -> bool:
        if isinstance(error, (RateLimitError, RemoteTimeoutError)):
            return True
        if isinstance(error, RemoteError):
            return error.status_code is None or error.status_code >= 500
        return False

    def delay_for(self, error: SEMrushError, attempt: int) -> float:
        if isinstance(error, RateLimitError):
            return min(float(error.retry_after), self.max_delay)
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run `operation`, retrying per policy; the last error propagates"""
        attempt = 0
        while True:
            try:
                return await operation()
            except SEMrushError as e:
                if attempt >= self.max_retries or not self.is_retryable(e):
                    raise
                delay = self.delay_for(e, attempt)
                attempt += 1
                logger.info(
                    f"Retrying SEMrush call after {type(e).__name__} "
                    f"(attempt {attempt}/{self.max_retries}, sleeping {delay:.1f}s)"
                )
                await self.sleep(delay)
