"""
Cache stores for provider payloads
SQL table (default) or Redis, keyed by (subject, data type, region, page)
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from sqlalchemy import select, delete, and_

from seo_metrics.config import get_settings, GLOBAL_REGION
from seo_metrics.models import CacheEntry
from .database import get_session_maker, dialect_insert

logger = logging.getLogger(__name__)

NOT_PAGINATED = 0

# Connection pool
_pool = None


async def get_redis_pool() -> ConnectionPool:
    """Get or create Redis connection pool"""
    global _pool
    if _pool is None:
        settings = get_settings()
        _pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=20,
            decode_responses=True,
        )
    return _pool


async def get_redis() -> redis.Redis:
    """Get Redis client"""
    pool = await get_redis_pool()
    return redis.Redis(connection_pool=pool)


async def close_redis():
    """Close Redis connections"""
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None


def page_for(limit: int, offset: int) -> int:
    """1-based page index of an offset window"""
    return offset // limit + 1


def merge_page(payload: Optional[Dict[Any, List[Any]]], page: int, records: List[Any]) -> Dict[int, List[Any]]:
    """
    Merge one page into a {page: records} view.

    A page already present is replaced rather than appended, so refetching
    it never duplicates records; other pages are kept.
    """
    merged = {int(k): v for k, v in (payload or {}).items() if int(k) != page}
    merged[page] = list(records)
    return dict(sorted(merged.items()))


class CacheStore(ABC):
    """TTL cache over (subject, data_type, region, page)"""

    @abstractmethod
    async def get(
        self,
        subject: str,
        data_type: str,
        region: str = GLOBAL_REGION,
        page: int = NOT_PAGINATED,
    ) -> Optional[Any]:
        """Cached payload, or None when missing or expired"""

    @abstractmethod
    async def set(
        self,
        subject: str,
        data_type: str,
        payload: Any,
        ttl_hours: float,
        region: str = GLOBAL_REGION,
        page: int = NOT_PAGINATED,
    ) -> None:
        """Store payload; last writer wins"""

    @abstractmethod
    async def get_pages(
        self,
        subject: str,
        data_type: str,
        region: str = GLOBAL_REGION,
    ) -> Dict[int, Any]:
        """All unexpired pages of a paginated dataset"""

    @abstractmethod
    async def delete(
        self,
        subject: str,
        data_type: str,
        region: str = GLOBAL_REGION,
        page: Optional[int] = None,
    ) -> int:
        """Drop one page, or every page when page is None"""


class SQLCacheStore(CacheStore):
    """
    Cache rows in the `seo_cache` table.

    Expiry is checked on read; expired rows stay until purge_expired runs.
    """

    def __init__(self, session_factory=None, clock: Callable[[], datetime] = None):
        self.session_factory = session_factory or get_session_maker()
        self.clock = clock or datetime.utcnow

    async def get(self, subject, data_type, region=GLOBAL_REGION, page=NOT_PAGINATED):
        async with self.session_factory() as session:
            result = await session.execute(
                select(CacheEntry).where(
                    and_(
                        CacheEntry.subject == subject,
                        CacheEntry.data_type == data_type,
                        CacheEntry.region == region,
                        CacheEntry.page == page,
                    )
                )
            )
            entry = result.scalar_one_or_none()

        if entry is None or self.clock() >= entry.expires_at:
            return None
        return entry.data

    async def set(self, subject, data_type, payload, ttl_hours, region=GLOBAL_REGION, page=NOT_PAGINATED):
        now = self.clock()
        expires_at = now + timedelta(hours=ttl_hours)
        async with self.session_factory() as session:
            stmt = dialect_insert(session, CacheEntry).values(
                subject=subject,
                data_type=data_type,
                region=region,
                page=page,
                data=payload,
                expires_at=expires_at,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["subject", "data_type", "region", "page"],
                set_={"data": payload, "expires_at": expires_at, "updated_at": now},
            )
            await session.execute(stmt)
            await session.commit()

    async def get_pages(self, subject, data_type, region=GLOBAL_REGION):
        async with self.session_factory() as session:
            result = await session.execute(
                select(CacheEntry)
                .where(
                    and_(
                        CacheEntry.subject == subject,
                        CacheEntry.data_type == data_type,
                        CacheEntry.region == region,
                        CacheEntry.page > NOT_PAGINATED,
                        CacheEntry.expires_at > self.clock(),
                    )
                )
                .order_by(CacheEntry.page.asc())
            )
            return {entry.page: entry.data for entry in result.scalars().all()}

    async def delete(self, subject, data_type, region=GLOBAL_REGION, page=None):
        conditions = [
            CacheEntry.subject == subject,
            CacheEntry.data_type == data_type,
            CacheEntry.region == region,
        ]
        if page is not None:
            conditions.append(CacheEntry.page == page)
        async with self.session_factory() as session:
            result = await session.execute(delete(CacheEntry).where(and_(*conditions)))
            await session.commit()
            return result.rowcount

    async def purge_expired(self) -> int:
        """Delete every expired row, returning how many were removed"""
        async with self.session_factory() as session:
            result = await session.execute(
                delete(CacheEntry).where(CacheEntry.expires_at <= self.clock())
            )
            await session.commit()
            return result.rowcount


class RedisCacheStore(CacheStore):
    """
    Cache entries as Redis strings with native TTL.

    Paginated datasets keep a set of their cached page numbers so the
    pages can be listed without SCAN.
    """

    def __init__(self, client: Optional[redis.Redis] = None, prefix: Optional[str] = None):
        self._client = client
        self.prefix = prefix or get_settings().CACHE_PREFIX

    async def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = await get_redis()
        return self._client

    def _key(self, subject: str, data_type: str, region: str, page: int) -> str:
        return f"{self.prefix}:{data_type}:{region}:{subject}:{page}"

    def _pages_key(self, subject: str, data_type: str, region: str) -> str:
        return f"{self.prefix}:{data_type}:{region}:{subject}:pages"

    async def get(self, subject, data_type, region=GLOBAL_REGION, page=NOT_PAGINATED):
        client = await self._get_client()
        value = await client.get(self._key(subject, data_type, region, page))
        if value is None:
            return None
        return json.loads(value)

    async def set(self, subject, data_type, payload, ttl_hours, region=GLOBAL_REGION, page=NOT_PAGINATED):
        client = await self._get_client()
        ttl = int(ttl_hours * 3600)
        await client.setex(self._key(subject, data_type, region, page), ttl, json.dumps(payload))
        if page != NOT_PAGINATED:
            pages_key = self._pages_key(subject, data_type, region)
            await client.sadd(pages_key, page)
            await client.expire(pages_key, ttl)

    async def get_pages(self, subject, data_type, region=GLOBAL_REGION):
        client = await self._get_client()
        members = await client.smembers(self._pages_key(subject, data_type, region))
        pages = sorted(int(p) for p in members)
        if not pages:
            return {}
        values = await client.mget([self._key(subject, data_type, region, p) for p in pages])
        # pages whose key already expired come back as None
        return {p: json.loads(v) for p, v in zip(pages, values) if v is not None}

    async def delete(self, subject, data_type, region=GLOBAL_REGION, page=None):
        client = await self._get_client()
        pages_key = self._pages_key(subject, data_type, region)
        if page is not None:
            await client.srem(pages_key, page)
            return await client.delete(self._key(subject, data_type, region, page))
        pages = [int(p) for p in await client.smembers(pages_key)]
        keys = [self._key(subject, data_type, region, p) for p in [NOT_PAGINATED, *pages]]
        removed = await client.delete(*keys)
        await client.delete(pages_key)
        return removed


def get_cache_store(session_factory=None) -> CacheStore:
    """Cache store selected by CACHE_BACKEND"""
    if get_settings().CACHE_BACKEND == "redis":
        return RedisCacheStore()
    return SQLCacheStore(session_factory)
