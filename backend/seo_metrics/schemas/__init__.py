"""
Pydantic Schemas for metric records and pagination
"""

from .metrics import (
    MetricRecord,
    DomainOverview,
    KeywordData,
    RelatedKeyword,
    BacklinkOverview,
    Backlink,
    ReferringDomain,
    BacklinkCompetitor,
    SiteAudit,
    Prospect,
)
from .pagination import PageInfo, PageEnvelope, build_page_response

__all__ = [
    # Metric records
    "MetricRecord",
    "DomainOverview",
    "KeywordData",
    "RelatedKeyword",
    "BacklinkOverview",
    "Backlink",
    "ReferringDomain",
    "BacklinkCompetitor",
    "SiteAudit",
    "Prospect",
    # Pagination
    "PageInfo",
    "PageEnvelope",
    "build_page_response",
]
