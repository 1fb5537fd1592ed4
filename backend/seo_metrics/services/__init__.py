"""
Business Logic Services
"""

from .quota_service import QuotaLedger
from .usage_service import UsageRecorder
from .backlink_gap import BacklinkGapAnalyzer, prospect_value, to_prospect
from .metrics_service import SEOMetricsService

__all__ = [
    "QuotaLedger",
    "UsageRecorder",
    "BacklinkGapAnalyzer",
    "prospect_value",
    "to_prospect",
    "SEOMetricsService",
]
