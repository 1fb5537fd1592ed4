"""
SEO Metric Schemas
Typed records produced from SEMrush reports, serialized with camelCase keys
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LEVEL_PATTERN = "^(high|medium|low)$"


class MetricRecord(BaseModel):
    """Base for all metric records"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        """JSON-ready dict as stored in the cache and returned to callers"""
        return self.model_dump(mode="json", by_alias=True)


class DomainOverview(MetricRecord):
    """Organic search overview for a domain"""
    domain: str
    organic_keywords: int = 0
    organic_traffic: int = 0
    organic_cost: float = 0
    authority_score: int = 0  # SEMrush rank used as authority
    backlinks: int = 0  # domain_rank does not report backlinks


class KeywordData(MetricRecord):
    """Search metrics for a keyword in one database (or global)"""
    keyword: str
    search_volume: int = 0
    keyword_difficulty: int = 0
    cpc: float = 0
    competition: float = 0
    competition_level: str = Field(default="low", pattern=LEVEL_PATTERN)
    database: Optional[str] = None


class RelatedKeyword(KeywordData):
    """Keyword variation with its relevance to the seed keyword"""
    relevance: float = 0


class BacklinkOverview(MetricRecord):
    """Backlink profile summary for a root domain"""
    domain: str
    authority_score: int = 0
    total_backlinks: int = 0
    referring_domains: int = 0
    referring_urls: int = 0
    referring_ips: int = 0
    follow_links: int = 0
    nofollow_links: int = 0


class Backlink(MetricRecord):
    """Single backlink pointing at the analysed domain"""
    source_url: str
    source_domain: str = ""
    source_title: str = ""
    target_url: str = ""
    anchor: str = ""
    page_authority: int = 0
    external_links: int = 0
    internal_links: int = 0
    first_seen: Optional[int] = None  # unix timestamp
    last_seen: Optional[int] = None


class ReferringDomain(MetricRecord):
    """Domain linking to the analysed domain"""
    domain: str
    domain_authority: Optional[int] = None
    backlinks: int = 0
    ip: str = ""
    country: str = ""
    first_seen: Optional[int] = None
    last_seen: Optional[int] = None


class BacklinkCompetitor(MetricRecord):
    """Domain with an overlapping backlink profile"""
    domain: str
    authority_score: int = 0
    similarity: float = 0  # percent
    common_referring_domains: int = 0
    referring_domains: int = 0
    backlinks: int = 0
    competition_level: str = Field(default="low", pattern=LEVEL_PATTERN)


class SiteAudit(MetricRecord):
    """Crawl health snapshot for a domain"""
    domain: str
    pages_crawled: int = 0
    health_score: int = 0
    errors: int = 0
    warnings: int = 0
    notices: int = 0


class Prospect(MetricRecord):
    """Link-building prospect synthesized by the backlink gap analysis"""
    id: str
    domain: str
    url: str
    domain_authority: Optional[int] = None
    relevance_score: int
    value: str = Field(pattern=LEVEL_PATTERN)
    source: str = "competitors"
    status: str = "new"
