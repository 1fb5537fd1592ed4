import pytest
from sqlalchemy import select

from seo_metrics.adapters.semrush import QuotaExceededError
from seo_metrics.models import QuotaPeriod


async def _usage(session_factory, tenant_id):
    async with session_factory() as session:
        result = await session.execute(select(QuotaPeriod).where(QuotaPeriod.tenant_id == tenant_id))
        return result.scalars().all()


async def test_check_quota_allows_fresh_period(ledger, tenant):
    assert await ledger.check_quota(tenant, "keyword_research", 1) is True


async def test_exhausted_category_is_denied_every_time(ledger, make_tenant, session_factory):
    tenant_id = await make_tenant(keyword_research_limit=100)
    await ledger.add_usage(tenant_id, "keyword_research", 100)

    for _ in range(3):
        with pytest.raises(QuotaExceededError, match="Used: 100/100") as exc:
            await ledger.check_quota(tenant_id, "keyword_research", 1)
        assert exc.value.quota_type == "keyword_research"

    [usage] = await _usage(session_factory, tenant_id)
    assert usage.keyword_research_used == 100


async def test_total_limit_gates_across_categories(ledger, make_tenant):
    tenant_id = await make_tenant(tier="capped", total_credit_limit=10)
    await ledger.add_usage(tenant_id, "keyword_research", 6)
    await ledger.add_usage(tenant_id, "backlink_analysis", 4)

    with pytest.raises(QuotaExceededError, match="Total credit quota exceeded"):
        await ledger.check_quota(tenant_id, "competitor_analysis", 1)


async def test_unknown_tenant_and_category_fail_closed(ledger, tenant):
    with pytest.raises(QuotaExceededError, match="Tenant not found"):
        await ledger.check_quota("nobody", "keyword_research")
    with pytest.raises(QuotaExceededError, match="Unknown API endpoint"):
        await ledger.check_quota(tenant, "traffic_analytics")


async def test_missing_tier_fails_closed(ledger, session_factory):
    from seo_metrics.models import Tenant

    async with session_factory() as session:
        session.add(Tenant(id="orphan", subscription_tier="legacy"))
        await session.commit()

    with pytest.raises(QuotaExceededError, match="Tier limits not found"):
        await ledger.check_quota("orphan", "keyword_research")


async def test_reserve_stops_at_the_limit(ledger, make_tenant, session_factory):
    tenant_id = await make_tenant(website_audit_limit=10)
    await ledger.reserve(tenant_id, "website_audit", 5)
    await ledger.reserve(tenant_id, "website_audit", 5)

    with pytest.raises(QuotaExceededError, match="website_audit quota exceeded"):
        await ledger.reserve(tenant_id, "website_audit", 5)

    [usage] = await _usage(session_factory, tenant_id)
    assert usage.website_audit_used == 10
    assert usage.total_credits_used == 10


async def test_reserve_respects_total_limit(ledger, make_tenant, session_factory):
    tenant_id = await make_tenant(tier="capped", total_credit_limit=3)
    await ledger.reserve(tenant_id, "keyword_research", 3)

    with pytest.raises(QuotaExceededError, match="Total credit quota exceeded"):
        await ledger.reserve(tenant_id, "backlink_analysis", 1)

    [usage] = await _usage(session_factory, tenant_id)
    assert usage.backlink_analysis_used == 0


async def test_release_refunds_without_going_negative(ledger, tenant, session_factory):
    await ledger.reserve(tenant, "backlink_analysis", 2)
    await ledger.release(tenant, "backlink_analysis", 2)
    await ledger.release(tenant, "backlink_analysis", 5)

    [usage] = await _usage(session_factory, tenant)
    assert usage.backlink_analysis_used == 0
    assert usage.total_credits_used == 0


async def test_new_month_starts_from_zero(ledger, make_tenant, clock, session_factory):
    tenant_id = await make_tenant(keyword_research_limit=5)
    await ledger.add_usage(tenant_id, "keyword_research", 5)
    with pytest.raises(QuotaExceededError):
        await ledger.check_quota(tenant_id, "keyword_research")

    clock.advance(days=20)
    assert await ledger.check_quota(tenant_id, "keyword_research") is True
    await ledger.reserve(tenant_id, "keyword_research", 1)

    periods = {(p.billing_month, p.billing_year): p.keyword_research_used
               for p in await _usage(session_factory, tenant_id)}
    assert periods == {(3, 2024): 5, (4, 2024): 1}


async def test_usage_summary(ledger, make_tenant):
    tenant_id = await make_tenant(tier="capped", total_credit_limit=50)
    await ledger.add_usage(tenant_id, "keyword_research", 7)

    summary = await ledger.get_usage_summary(tenant_id)
    assert summary["tier"] == "capped"
    assert (summary["billing_month"], summary["billing_year"]) == (3, 2024)
    assert summary["categories"]["keyword_research"] == {"used": 7, "limit": 100, "remaining": 93}
    assert summary["categories"]["rank_tracking"]["remaining"] == 0
    assert summary["total"] == {"used": 7, "limit": 50, "remaining": 43}
