import asyncio

import httpx
import pytest
from sqlalchemy import select

from seo_metrics.adapters.semrush import (
    NOTHING_FOUND,
    QuotaExceededError,
    RateLimitError,
    RemoteError,
    RemoteTimeoutError,
    SemrushClient,
    parse_retry_after,
)
from seo_metrics.models import QuotaPeriod, UsageLog

KEYWORD_BODY = "Keyword;Search Volume;CPC;Competition;Keyword Difficulty Index\nwidgets;2400;1.5;0.7;62\n"


async def _logs(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(UsageLog))
        return result.scalars().all()


async def _period(session_factory, tenant_id):
    async with session_factory() as session:
        result = await session.execute(select(QuotaPeriod).where(QuotaPeriod.tenant_id == tenant_id))
        return result.scalar_one_or_none()


@pytest.mark.parametrize("value,seconds", [("30", 30), (None, 60), ("soon", 60), (" 5 ", 5)])
def test_parse_retry_after(value, seconds):
    assert parse_retry_after(value) == seconds


def test_client_requires_api_key(monkeypatch):
    from seo_metrics.config import get_settings

    monkeypatch.setattr(get_settings(), "SEMRUSH_API_KEY", None)
    with pytest.raises(ValueError):
        SemrushClient(api_key=None)


async def test_success_returns_body_and_charges(semrush_client, semrush_transport, tenant, session_factory):
    semrush_transport.queue(KEYWORD_BODY)

    body = await semrush_client.call(
        "phrase_this",
        {"phrase": "widgets", "database": "us", "display_offset": None},
        tenant, "keyword_research", "keyword_overview", 1,
    )

    assert body == KEYWORD_BODY
    [request] = semrush_transport.requests
    assert request.url.path == "/"
    assert request.url.params["type"] == "phrase_this"
    assert request.url.params["key"] == "test-key"
    assert request.url.params["database"] == "us"
    assert "display_offset" not in request.url.params

    [log] = await _logs(session_factory)
    assert (log.status, log.credits_consumed, log.target_keyword) == ("success", 1, "widgets")
    assert (await _period(session_factory, tenant)).keyword_research_used == 1


async def test_backlink_reports_use_analytics_path(semrush_client, semrush_transport, tenant):
    semrush_transport.queue("ascore;total\n1;2\n")
    await semrush_client.call(
        "backlinks_overview", {"target": "example.com"},
        tenant, "backlink_analysis", "backlink_overview",
    )
    assert semrush_transport.requests[0].url.path == "/analytics/v1/"


async def test_rate_limit(semrush_client, semrush_transport, tenant, session_factory):
    semrush_transport.queue(status_code=429, headers={"Retry-After": "30"})

    with pytest.raises(RateLimitError) as exc:
        await semrush_client.call(
            "backlinks", {"target": "example.com"}, tenant, "backlink_analysis", "backlinks",
        )
    assert exc.value.retry_after == 30
    assert exc.value.status_code == 429

    [log] = await _logs(session_factory)
    assert (log.status, log.credits_consumed) == ("rate_limited", 0)
    assert await _period(session_factory, tenant) is None


async def test_provider_quota_exhausted(semrush_client, semrush_transport, tenant, session_factory):
    semrush_transport.queue(status_code=402)

    with pytest.raises(QuotaExceededError):
        await semrush_client.call("domain_rank", {"domain": "example.com"}, tenant, "competitor_analysis", "x", 2)

    [log] = await _logs(session_factory)
    assert (log.status, log.credits_consumed) == ("quota_exceeded", 0)


async def test_server_error(semrush_client, semrush_transport, tenant, session_factory):
    semrush_transport.queue("oops", status_code=503)

    with pytest.raises(RemoteError) as exc:
        await semrush_client.call("domain_rank", {"domain": "example.com"}, tenant, "competitor_analysis", "x", 2)
    assert exc.value.status_code == 503

    [log] = await _logs(session_factory)
    assert (log.status, log.credits_consumed) == ("failed", 0)


async def test_in_band_errors(semrush_client, semrush_transport, tenant, session_factory):
    semrush_transport.queue("ERROR 132 :: API UNITS BALANCE IS ZERO")
    semrush_transport.queue("ERROR 40 :: MANDATORY PARAMETER 'phrase' NOT SET")

    with pytest.raises(QuotaExceededError):
        await semrush_client.call("phrase_this", {"phrase": "a"}, tenant, "keyword_research", "x")
    with pytest.raises(RemoteError):
        await semrush_client.call("phrase_this", {"phrase": "a"}, tenant, "keyword_research", "x")

    statuses = sorted(log.status for log in await _logs(session_factory))
    assert statuses == ["failed", "quota_exceeded"]
    assert await _period(session_factory, tenant) is None


async def test_nothing_found_is_a_billed_success(semrush_client, semrush_transport, tenant, session_factory):
    semrush_transport.queue(NOTHING_FOUND)

    body = await semrush_client.call("phrase_related", {"phrase": "zzqx"}, tenant, "keyword_research", "x")

    assert body.startswith(NOTHING_FOUND)
    [log] = await _logs(session_factory)
    assert (log.status, log.credits_consumed) == ("success", 1)


async def test_deadline_cancels_the_call(recorder, tenant, session_factory):
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, text=KEYWORD_BODY)

    async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as http_client:
        client = SemrushClient(api_key="k", recorder=recorder, http_client=http_client)
        with pytest.raises(RemoteTimeoutError):
            await client.call(
                "phrase_this", {"phrase": "widgets"}, tenant, "keyword_research", "x", timeout=0.01,
            )

    [log] = await _logs(session_factory)
    assert (log.status, log.credits_consumed) == ("failed", 0)


async def test_transport_error(recorder, tenant, session_factory):
    def broken(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(broken)) as http_client:
        client = SemrushClient(api_key="k", recorder=recorder, http_client=http_client)
        with pytest.raises(RemoteError) as exc:
            await client.call("phrase_this", {"phrase": "widgets"}, tenant, "keyword_research", "x")
    assert exc.value.status_code is None


async def test_prepaid_call_logs_without_charging(semrush_client, semrush_transport, tenant, session_factory):
    semrush_transport.queue(KEYWORD_BODY)
    await semrush_client.call(
        "phrase_this", {"phrase": "widgets"}, tenant, "keyword_research", "x", prepaid=True,
    )

    [log] = await _logs(session_factory)
    assert log.credits_consumed == 1
    assert await _period(session_factory, tenant) is None
