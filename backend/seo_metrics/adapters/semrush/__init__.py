"""
SEMrush adapter - report client, retry policy and error taxonomy
"""

from .base import (
    ReportType,
    BACKLINK_REPORTS,
    NOTHING_FOUND,
    SEMrushError,
    RemoteError,
    RateLimitError,
    QuotaExceededError,
    MalformedResponseError,
    RemoteTimeoutError,
)
from .client import SemrushClient, parse_retry_after
from .retry import RetryPolicy

__all__ = [
    "ReportType",
    "BACKLINK_REPORTS",
    "NOTHING_FOUND",
    # Exceptions
    "SEMrushError",
    "RemoteError",
    "RateLimitError",
    "QuotaExceededError",
    "MalformedResponseError",
    "RemoteTimeoutError",
    # Client
    "SemrushClient",
    "RetryPolicy",
    "parse_retry_after",
]
