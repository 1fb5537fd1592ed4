"""
Response Transformers
Pure functions turning SEMrush report bodies into typed metric records
"""

import math
from typing import List, Optional
from urllib.parse import urlparse

from seo_metrics.config import (
    COMPETITION_HIGH_THRESHOLD,
    COMPETITION_MEDIUM_THRESHOLD,
    GLOBAL_REGION,
)
from seo_metrics.adapters.semrush.base import NOTHING_FOUND, MalformedResponseError
from seo_metrics.schemas.metrics import (
    DomainOverview,
    KeywordData,
    RelatedKeyword,
    BacklinkOverview,
    Backlink,
    ReferringDomain,
    BacklinkCompetitor,
    SiteAudit,
)
from .csv_schema import (
    DOMAIN_RANK,
    PHRASE_THIS,
    PHRASE_ALL,
    PHRASE_RELATED,
    BACKLINKS_OVERVIEW,
    BACKLINKS,
    BACKLINKS_REFDOMAINS,
    BACKLINKS_COMPETITORS,
    SITE_AUDIT,
    parse_rows,
    parse_single_row,
)


def competition_level(competition: float) -> str:
    """Bucket a 0..1 competition score; boundaries belong to the lower bucket"""
    if competition > COMPETITION_HIGH_THRESHOLD:
        return "high"
    if competition > COMPETITION_MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def extract_hostname(url: str) -> str:
    """Bare lowercase hostname without `www.` or port; '' when unparsable"""
    if not url:
        return ""
    candidate = url.strip()
    if "://" not in candidate:
        candidate = "//" + candidate
    try:
        host = urlparse(candidate).hostname or ""
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host


def is_nothing_found(raw: str) -> bool:
    """Provider sentinel for an empty list report, billed like a success"""
    return (raw or "").strip().startswith(NOTHING_FOUND)


def _region(database: Optional[str]) -> str:
    return database or GLOBAL_REGION


def transform_domain_overview(raw: str) -> DomainOverview:
    row = parse_single_row(DOMAIN_RANK, raw)
    return DomainOverview(
        domain=row["domain"],
        organic_keywords=row["organic_keywords"],
        organic_traffic=row["organic_traffic"],
        organic_cost=row["organic_cost"],
        authority_score=row["rank"],
        backlinks=0,
    )


def transform_keyword_data(raw: str, database: Optional[str] = None) -> KeywordData:
    row = parse_single_row(PHRASE_THIS, raw)
    return KeywordData(
        keyword=row["keyword"],
        search_volume=row["search_volume"],
        keyword_difficulty=row["keyword_difficulty"],
        cpc=row["cpc"],
        competition=row["competition"],
        competition_level=competition_level(row["competition"]),
        database=_region(database),
    )


def transform_global_keyword_data(raw: str) -> KeywordData:
    """
    Collapse per-database rows into one global record.

    Volume is summed; cpc, competition and difficulty are averaged over the
    rows that carry every column. Short rows are ignored.
    """
    rows = parse_rows(PHRASE_ALL, raw, skip_short_rows=True)
    if not rows:
        raise MalformedResponseError("phrase_all: no complete rows in response")

    count = len(rows)
    total_volume = sum(r["search_volume"] for r in rows)
    avg_cpc = sum(r["cpc"] for r in rows) / count
    avg_competition = sum(r["competition"] for r in rows) / count
    avg_difficulty = sum(r["keyword_difficulty"] for r in rows) / count

    return KeywordData(
        keyword=rows[0]["keyword"],
        search_volume=total_volume,
        keyword_difficulty=math.floor(avg_difficulty + 0.5),
        cpc=round(avg_cpc, 2),
        competition=round(avg_competition, 2),
        competition_level=competition_level(avg_competition),
        database=GLOBAL_REGION,
    )


def transform_related_keywords(raw: str, database: Optional[str] = None) -> List[RelatedKeyword]:
    if is_nothing_found(raw):
        return []
    return [
        RelatedKeyword(
            keyword=row["keyword"],
            search_volume=row["search_volume"],
            keyword_difficulty=row["keyword_difficulty"],
            cpc=row["cpc"],
            competition=row["competition"],
            competition_level=competition_level(row["competition"]),
            relevance=row["relevance"],
            database=_region(database),
        )
        for row in parse_rows(PHRASE_RELATED, raw)
    ]


def transform_backlink_overview(raw: str, domain: str) -> BacklinkOverview:
    row = parse_single_row(BACKLINKS_OVERVIEW, raw)
    return BacklinkOverview(domain=domain, **row)


def transform_backlinks(raw: str) -> List[Backlink]:
    if is_nothing_found(raw):
        return []
    return [
        Backlink(source_domain=extract_hostname(row["source_url"]), **row)
        for row in parse_rows(BACKLINKS, raw)
    ]


def transform_referring_domains(raw: str) -> List[ReferringDomain]:
    if is_nothing_found(raw):
        return []
    return [
        ReferringDomain(**{**row, "domain": row["domain"].lower()})
        for row in parse_rows(BACKLINKS_REFDOMAINS, raw)
    ]


def transform_backlink_competitors(raw: str) -> List[BacklinkCompetitor]:
    if is_nothing_found(raw):
        return []
    competitors = []
    for row in parse_rows(BACKLINKS_COMPETITORS, raw):
        # similarity is reported as a percentage
        competitors.append(BacklinkCompetitor(
            competition_level=competition_level(row["similarity"] / 100),
            **row,
        ))
    return competitors


def transform_site_audit(raw: str) -> SiteAudit:
    return SiteAudit(**parse_single_row(SITE_AUDIT, raw))
