import os
from datetime import datetime, timedelta

os.environ.setdefault("SEMRUSH_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CACHE_BACKEND", "database")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from seo_metrics.models import Base, Tenant, TierLimit
from seo_metrics.adapters.semrush import SemrushClient
from seo_metrics.services import QuotaLedger, UsageRecorder


class FakeClock:
    """Settable stand-in for datetime.utcnow"""

    def __init__(self, now=datetime(2024, 3, 15, 12, 0)):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def make_tenant(session_factory):
    """Create a tenant on its own tier with the given limits"""

    async def _make(tenant_id="tenant-1", tier="starter", total_credit_limit=None, **limits):
        values = {
            "keyword_research_limit": 100,
            "website_audit_limit": 10,
            "backlink_analysis_limit": 100,
            "competitor_analysis_limit": 50,
            "rank_tracking_limit": 0,
        }
        values.update(limits)
        async with session_factory() as session:
            if await session.get(TierLimit, tier) is None:
                session.add(TierLimit(tier_name=tier, total_credit_limit=total_credit_limit, **values))
            session.add(Tenant(id=tenant_id, subscription_tier=tier))
            await session.commit()
        return tenant_id

    return _make


@pytest_asyncio.fixture
async def tenant(make_tenant):
    return await make_tenant()


@pytest.fixture
def ledger(session_factory, clock):
    return QuotaLedger(session_factory, clock=clock)


@pytest.fixture
def recorder(ledger):
    return UsageRecorder(ledger)


@pytest.fixture
def semrush_transport():
    """
    Programmable MockTransport: queue bodies or responses, inspect requests.
    """

    class Transport:
        def __init__(self):
            self.responses = []
            self.requests = []

        def queue(self, body="", status_code=200, headers=None):
            self.responses.append(httpx.Response(status_code, text=body, headers=headers or {}))

        def handler(self, request):
            self.requests.append(request)
            if not self.responses:
                raise AssertionError(f"Unexpected request: {request.url}")
            return self.responses.pop(0)

    return Transport()


@pytest_asyncio.fixture
async def semrush_client(semrush_transport, recorder):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(semrush_transport.handler))
    client = SemrushClient(
        api_key="test-key",
        base_url="https://api.semrush.test",
        timeout=5,
        recorder=recorder,
        http_client=http_client,
    )
    yield client
    await http_client.aclose()
