"""
Backlink Gap Analysis
Referring domains that link to competitors but not to the target
"""

import asyncio
import logging
import math
from typing import List, Optional, Sequence
from uuid import NAMESPACE_DNS, uuid5

from seo_metrics.config import (
    PROSPECT_HIGH_AUTHORITY,
    PROSPECT_MEDIUM_AUTHORITY,
    PROSPECT_DEFAULT_RELEVANCE,
)
from seo_metrics.schemas import ReferringDomain, Prospect
from seo_metrics.utils.cache import page_for

logger = logging.getLogger(__name__)


def prospect_value(domain_authority: Optional[int]) -> str:
    if domain_authority is not None and domain_authority > PROSPECT_HIGH_AUTHORITY:
        return "high"
    if domain_authority is not None and domain_authority > PROSPECT_MEDIUM_AUTHORITY:
        return "medium"
    return "low"


def to_prospect(referring_domain: ReferringDomain) -> Prospect:
    authority = referring_domain.domain_authority
    return Prospect(
        id=str(uuid5(NAMESPACE_DNS, referring_domain.domain)),
        domain=referring_domain.domain,
        url=f"https://{referring_domain.domain}",
        domain_authority=authority,
        relevance_score=authority if authority is not None else PROSPECT_DEFAULT_RELEVANCE,
        value=prospect_value(authority),
    )


class BacklinkGapAnalyzer:
    """
    Composes referring-domain pages of a target and its competitors.

    Every underlying fetch goes through the metrics service, so each one
    is cached, quota-checked and logged on its own.
    """

    def __init__(self, metrics_service):
        self.metrics = metrics_service

    async def analyze(
        self,
        target_domain: str,
        competitors: Sequence[str],
        tenant_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = 0,
        *,
        timeout: Optional[float] = None,
    ) -> List[Prospect]:
        """
        Link prospects for `target_domain`.

        The target page uses (limit, offset). Each competitor is fetched
        with an equal share of the limit at the same page position. Results
        keep the first occurrence of each domain in competitor order.

        Raises:
            ValueError: no competitor domain left after normalization
        """
        limit = self.metrics.clamp_limit(limit)
        offset = self.metrics.clamp_offset(offset)
        target = self.metrics.normalize_domain(target_domain)

        competitor_domains: List[str] = []
        for competitor in competitors:
            domain = self.metrics.normalize_domain(competitor)
            if domain and domain != target and domain not in competitor_domains:
                competitor_domains.append(domain)
        if not competitor_domains:
            raise ValueError("At least one competitor domain is required")

        per_competitor = math.ceil(limit / len(competitor_domains))
        competitor_offset = (page_for(limit, offset) - 1) * per_competitor

        target_page, *competitor_pages = await asyncio.gather(
            self.metrics.get_referring_domains(target, tenant_id, limit, offset, timeout=timeout),
            *[
                self.metrics.get_referring_domains(
                    domain, tenant_id, per_competitor, competitor_offset, timeout=timeout,
                )
                for domain in competitor_domains
            ],
        )

        already_linking = {rd.domain for rd in target_page}
        prospects = {}
        for page in competitor_pages:
            for rd in page:
                if not rd.domain or rd.domain == target:
                    continue
                if rd.domain in already_linking or rd.domain in prospects:
                    continue
                prospects[rd.domain] = to_prospect(rd)

        logger.info(
            f"Backlink gap for {target}: {len(prospects)} prospects "
            f"from {len(competitor_domains)} competitors"
        )
        return list(prospects.values())[:limit]
