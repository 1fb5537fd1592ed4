"""
Database Models for the SEO metrics aggregator
"""

from .database import (
    Base,
    # Enums
    SubscriptionTier,
    EndpointCategory,
    UsageStatus,
    CacheDataType,
    # Models
    Tenant,
    TierLimit,
    QuotaPeriod,
    UsageLog,
    CacheEntry,
)

__all__ = [
    "Base",
    # Enums
    "SubscriptionTier",
    "EndpointCategory",
    "UsageStatus",
    "CacheDataType",
    # Models
    "Tenant",
    "TierLimit",
    "QuotaPeriod",
    "UsageLog",
    "CacheEntry",
]
