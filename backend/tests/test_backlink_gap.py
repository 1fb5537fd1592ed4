from uuid import NAMESPACE_DNS, uuid5

import pytest

from seo_metrics.schemas import ReferringDomain
from seo_metrics.services import SEOMetricsService, prospect_value


class StubService(SEOMetricsService):
    """Metrics service whose referring-domain pages come from a dict"""

    def __init__(self, pages):
        super().__init__(client=None, ledger=None, cache=None)
        self.pages = pages
        self.calls = []

    async def get_referring_domains(self, domain, tenant_id, limit=None, offset=0, *, timeout=None):
        self.calls.append((domain, limit, offset))
        return [
            ReferringDomain(domain=name, domain_authority=authority)
            for name, authority in self.pages.get(domain, [])
        ]


@pytest.fixture
def service():
    return StubService({
        "target.com": [("shared.com", 80), ("only-target.com", 40)],
        "rival-a.com": [("shared.com", 80), ("news.com", 75), ("blog.net", None), ("target.com", 90)],
        "rival-b.com": [("news.com", 75), ("forum.org", 55), ("", 10)],
    })


async def test_prospects_exclude_the_targets_referring_domains(service):
    prospects = await service.get_backlink_gap("target.com", ["rival-a.com", "rival-b.com"], "tenant-1")

    domains = [p.domain for p in prospects]
    assert domains == ["news.com", "blog.net", "forum.org"]
    assert "shared.com" not in domains
    assert "target.com" not in domains


async def test_prospect_fields(service):
    prospects = await service.get_backlink_gap("target.com", ["rival-a.com", "rival-b.com"], "tenant-1")
    by_domain = {p.domain: p for p in prospects}

    news = by_domain["news.com"]
    assert news.id == str(uuid5(NAMESPACE_DNS, "news.com"))
    assert news.url == "https://news.com"
    assert (news.value, news.relevance_score) == ("high", 75)
    assert (news.source, news.status) == ("competitors", "new")

    blog = by_domain["blog.net"]
    assert blog.domain_authority is None
    assert (blog.value, blog.relevance_score) == ("low", 50)

    assert by_domain["forum.org"].value == "medium"
    assert news.to_payload()["relevanceScore"] == 75


async def test_competitor_limit_is_split_and_aligned_to_the_page(service):
    await service.get_backlink_gap("target.com", ["rival-a.com", "rival-b.com", "x.com"], "t", limit=10, offset=20)

    assert service.calls[0] == ("target.com", 10, 20)
    assert sorted(service.calls[1:]) == [("rival-a.com", 4, 8), ("rival-b.com", 4, 8), ("x.com", 4, 8)]


async def test_results_are_truncated_to_the_limit(service):
    prospects = await service.get_backlink_gap("target.com", ["rival-a.com", "rival-b.com"], "t", limit=2)
    assert [p.domain for p in prospects] == ["news.com", "blog.net"]


async def test_competitor_list_is_normalized(service):
    await service.get_backlink_gap(
        "target.com", ["https://www.Rival-A.com/", "rival-a.com", "target.com"], "t", limit=4,
    )
    assert [call[0] for call in service.calls] == ["target.com", "rival-a.com"]


async def test_requires_a_competitor(service):
    with pytest.raises(ValueError):
        await service.get_backlink_gap("target.com", ["target.com", " "], "t")


@pytest.mark.parametrize("authority,value", [(None, "low"), (50, "low"), (51, "medium"), (70, "medium"), (71, "high")])
def test_prospect_value_boundaries(authority, value):
    assert prospect_value(authority) == value


async def test_target_without_referring_domains_keeps_every_competitor_domain():
    service = StubService({"rival-a.com": [("news.com", 75), ("blog.net", None)]})

    prospects = await service.get_backlink_gap("fresh-site.com", ["rival-a.com"], "tenant-1")

    assert [p.domain for p in prospects] == ["news.com", "blog.net"]
