"""
Configuration management for the SEO metrics aggregator
Environment-based settings with secure defaults
"""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "seo-metrics"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./seo_metrics.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_BACKEND: str = "database"  # database, redis
    CACHE_PREFIX: str = "seo_metrics"

    # SEMrush API
    SEMRUSH_API_KEY: Optional[str] = None
    SEMRUSH_BASE_URL: str = "https://api.semrush.com"
    SEMRUSH_REQUEST_TIMEOUT: float = 30.0  # seconds
    SEMRUSH_MAX_RETRIES: int = 0  # single attempt unless configured
    SEMRUSH_RETRY_DELAY: float = 1.0  # seconds
    SEMRUSH_MAX_RETRY_DELAY: float = 60.0  # seconds

    # Cache TTLs (hours)
    CACHE_TTL_KEYWORD: int = 36
    CACHE_TTL_RELATED_KEYWORDS: int = 36
    CACHE_TTL_DOMAIN_OVERVIEW: int = 24
    CACHE_TTL_BACKLINK_OVERVIEW: int = 24
    CACHE_TTL_SITE_AUDIT: int = 24
    CACHE_TTL_BACKLINK_COMPETITORS: int = 6
    CACHE_TTL_BACKLINK_PAGES: int = 12

    # Pagination
    DEFAULT_PAGE_LIMIT: int = 20
    MAX_PAGE_LIMIT: int = 100

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    @field_validator("CACHE_BACKEND", mode="before")
    @classmethod
    def parse_cache_backend(cls, v: str) -> str:
        v = str(v).strip().lower()
        if v not in ("database", "redis"):
            raise ValueError(f"Unsupported cache backend: {v}")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader"""
    return Settings()


# Coarse billing buckets, distinct from the literal SEMrush report names
ENDPOINT_CATEGORIES = (
    "keyword_research",
    "website_audit",
    "backlink_analysis",
    "competitor_analysis",
    "rank_tracking",
)

# Credits charged per successful report call
REPORT_CREDITS = {
    "domain_rank": 2,
    "phrase_this": 1,
    "phrase_all": 1,
    "phrase_related": 1,
    "backlinks_overview": 1,
    "backlinks": 1,
    "backlinks_refdomains": 1,
    "backlinks_competitors": 1,
    "site_audit": 5,
}

GLOBAL_REGION = "global"

# Competition bucketing thresholds (exclusive lower bounds)
COMPETITION_HIGH_THRESHOLD = 0.66
COMPETITION_MEDIUM_THRESHOLD = 0.33

# Prospect value thresholds on domain authority
PROSPECT_HIGH_AUTHORITY = 70
PROSPECT_MEDIUM_AUTHORITY = 50
PROSPECT_DEFAULT_RELEVANCE = 50
