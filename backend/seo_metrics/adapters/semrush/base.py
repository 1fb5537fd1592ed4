"""
SEMrush adapter primitives
Report identifiers and the error taxonomy surfaced to callers
"""

from enum import Enum
from typing import Optional


class ReportType(str, Enum):
    """SEMrush report names sent as the `type` parameter"""
    DOMAIN_RANK = "domain_rank"
    PHRASE_THIS = "phrase_this"
    PHRASE_ALL = "phrase_all"
    PHRASE_RELATED = "phrase_related"
    BACKLINKS_OVERVIEW = "backlinks_overview"
    BACKLINKS = "backlinks"
    BACKLINKS_REFDOMAINS = "backlinks_refdomains"
    BACKLINKS_COMPETITORS = "backlinks_competitors"
    SITE_AUDIT = "site_audit"


# Backlink reports live under a different path than the analytics reports
BACKLINK_REPORTS = frozenset({
    ReportType.BACKLINKS_OVERVIEW,
    ReportType.BACKLINKS,
    ReportType.BACKLINKS_REFDOMAINS,
    ReportType.BACKLINKS_COMPETITORS,
})

# In-band error bodies returned with HTTP 200
NOTHING_FOUND = "ERROR 50 :: NOTHING FOUND"
ERROR_PREFIX = "ERROR "
BALANCE_ERROR_MARKERS = ("UNITS BALANCE IS ZERO", "LIMIT EXCEEDED")

DEFAULT_RETRY_AFTER = 60  # seconds


class SEMrushError(Exception):
    """Base exception for SEMrush adapter errors"""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class RemoteError(SEMrushError):
    """Non-2xx response, transport failure or in-band provider error"""
    pass


class RateLimitError(SEMrushError):
    """Rate limited by the provider; try again after `retry_after` seconds"""
    def __init__(self, message: str, retry_after: int = DEFAULT_RETRY_AFTER, endpoint: Optional[str] = None):
        super().__init__(message, 429, endpoint)
        self.retry_after = retry_after


class QuotaExceededError(SEMrushError):
    """Local tier limit or provider credit balance exhausted"""
    def __init__(self, message: str, quota_type: str):
        super().__init__(message, 402, quota_type)
        self.quota_type = quota_type


class MalformedResponseError(SEMrushError):
    """Payload could not be parsed against the report schema"""
    pass


class RemoteTimeoutError(SEMrushError):
    """Call exceeded its deadline and was cancelled"""
    pass
