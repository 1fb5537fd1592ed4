"""
SEO Metrics Database Models
PostgreSQL in production, SQLite in tests - column types stay portable
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import uuid4

from sqlalchemy import (
    Column, String, Text, Integer, DateTime, JSON, Index, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class SubscriptionTier(str, PyEnum):
    FREE = "free"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class EndpointCategory(str, PyEnum):
    KEYWORD_RESEARCH = "keyword_research"
    WEBSITE_AUDIT = "website_audit"
    BACKLINK_ANALYSIS = "backlink_analysis"
    COMPETITOR_ANALYSIS = "competitor_analysis"
    RANK_TRACKING = "rank_tracking"


class UsageStatus(str, PyEnum):
    SUCCESS = "success"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"


class CacheDataType(str, PyEnum):
    KEYWORD = "keyword"
    KEYWORD_RELATED = "keyword_related"
    DOMAIN_OVERVIEW = "domain_overview"
    BACKLINK_OVERVIEW = "backlink_overview"
    BACKLINKS = "backlinks"
    REFERRING_DOMAINS = "referring_domains"
    BACKLINK_COMPETITORS = "backlink_competitors"
    SITE_AUDIT = "site_audit"


# ============================================================================
# TENANTS & TIERS (reference data, read-only to this subsystem)
# ============================================================================

class Tenant(Base):
    """Billing principal whose quota is enforced"""
    __tablename__ = "tenants"

    id = Column(String(64), primary_key=True)
    subscription_tier = Column(String(32), default=SubscriptionTier.FREE.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class TierLimit(Base):
    """Monthly credit limits per subscription tier"""
    __tablename__ = "tier_api_limits"

    tier_name = Column(String(32), primary_key=True)

    keyword_research_limit = Column(Integer, default=0)
    website_audit_limit = Column(Integer, default=0)
    backlink_analysis_limit = Column(Integer, default=0)
    competitor_analysis_limit = Column(Integer, default=0)
    rank_tracking_limit = Column(Integer, default=0)

    # Optional global gate across all categories
    total_credit_limit = Column(Integer, nullable=True)


# ============================================================================
# USAGE ACCOUNTING
# ============================================================================

class QuotaPeriod(Base):
    """Credits consumed by a tenant in one billing month"""
    __tablename__ = "api_quota_usage"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False, index=True)
    billing_month = Column(Integer, nullable=False)
    billing_year = Column(Integer, nullable=False)

    keyword_research_used = Column(Integer, default=0, nullable=False)
    website_audit_used = Column(Integer, default=0, nullable=False)
    backlink_analysis_used = Column(Integer, default=0, nullable=False)
    competitor_analysis_used = Column(Integer, default=0, nullable=False)
    rank_tracking_used = Column(Integer, default=0, nullable=False)
    total_credits_used = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "billing_month", "billing_year", name="uq_quota_period"),
    )


class UsageLog(Base):
    """Append-only audit record of every remote call attempt"""
    __tablename__ = "api_usage_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    tenant_id = Column(String(64), nullable=False)
    api_endpoint = Column(String(64), nullable=False)
    api_provider = Column(String(32), default="semrush", nullable=False)
    request_type = Column(String(64), nullable=False)
    credits_consumed = Column(Integer, default=0, nullable=False)

    target_domain = Column(String(255))
    target_keyword = Column(String(500))

    status = Column(String(32), nullable=False)
    error_message = Column(Text)

    billing_month = Column(Integer, nullable=False)
    billing_year = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_usage_logs_tenant_period", "tenant_id", "billing_year", "billing_month"),
    )


# ============================================================================
# CACHE
# ============================================================================

class CacheEntry(Base):
    """Cached provider payload, one row per (subject, data type, region, page)"""
    __tablename__ = "seo_cache"

    subject = Column(String(500), primary_key=True)
    data_type = Column(String(64), primary_key=True)
    region = Column(String(16), primary_key=True, default="global")
    page = Column(Integer, primary_key=True, default=0)  # 0 = not paginated

    data = Column(JSON, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
