"""
Utility modules for the SEO metrics aggregator
"""

from .database import (
    get_session_maker,
    get_sync_db,
    dialect_insert,
    init_db,
    close_db,
)
from .cache import (
    CacheStore,
    SQLCacheStore,
    RedisCacheStore,
    get_cache_store,
    page_for,
    merge_page,
    get_redis,
    close_redis,
)

__all__ = [
    # Database
    "get_session_maker",
    "get_sync_db",
    "dialect_insert",
    "init_db",
    "close_db",
    # Cache
    "CacheStore",
    "SQLCacheStore",
    "RedisCacheStore",
    "get_cache_store",
    "page_for",
    "merge_page",
    "get_redis",
    "close_redis",
]
