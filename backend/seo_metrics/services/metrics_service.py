"""
SEO Metrics Aggregation Service
Cache -> quota -> SEMrush -> transform -> cache, per metric type

Mechanisms:
- Cache first: a hit costs no credits and writes no usage entry
- Atomic reservation: credits are reserved before the call, refunded on failure
- Page-scoped caching: each (limit, offset) window is its own cache row
- Differentiated TTLs by how volatile each metric is
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from seo_metrics.config import Settings, get_settings, REPORT_CREDITS, GLOBAL_REGION
from seo_metrics.models import CacheDataType, EndpointCategory
from seo_metrics.adapters.semrush import ReportType, RetryPolicy, SemrushClient
from seo_metrics.adapters.parsing import (
    csv_schema,
    extract_hostname,
    transform_domain_overview,
    transform_keyword_data,
    transform_global_keyword_data,
    transform_related_keywords,
    transform_backlink_overview,
    transform_backlinks,
    transform_referring_domains,
    transform_backlink_competitors,
    transform_site_audit,
)
from seo_metrics.schemas import (
    MetricRecord,
    DomainOverview,
    KeywordData,
    RelatedKeyword,
    BacklinkOverview,
    Backlink,
    ReferringDomain,
    BacklinkCompetitor,
    SiteAudit,
    Prospect,
)
from seo_metrics.utils.cache import CacheStore, get_cache_store, page_for, merge_page
from .quota_service import QuotaLedger
from .usage_service import UsageRecorder
from .backlink_gap import BacklinkGapAnalyzer

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=MetricRecord)


class SEOMetricsService:
    """
    Entry point for every SEO metric.

    Each public method takes the subject, the tenant and optional region /
    pagination arguments, and returns typed records or raises one of the
    SEMrush error types.
    """

    def __init__(
        self,
        client: SemrushClient,
        ledger: QuotaLedger,
        cache: CacheStore,
        settings: Optional[Settings] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.client = client
        self.ledger = ledger
        self.cache = cache
        self.settings = settings or get_settings()
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self.gap_analyzer = BacklinkGapAnalyzer(self)

    @classmethod
    def create(
        cls,
        session_factory=None,
        api_key: Optional[str] = None,
        http_client=None,
        settings: Optional[Settings] = None,
    ) -> "SEOMetricsService":
        """Wire ledger, recorder, client and cache from settings"""
        settings = settings or get_settings()
        ledger = QuotaLedger(session_factory)
        recorder = UsageRecorder(ledger)
        client = SemrushClient(
            api_key=api_key or settings.SEMRUSH_API_KEY,
            base_url=settings.SEMRUSH_BASE_URL,
            timeout=settings.SEMRUSH_REQUEST_TIMEOUT,
            recorder=recorder,
            http_client=http_client,
        )
        return cls(client, ledger, get_cache_store(session_factory), settings)

    async def aclose(self) -> None:
        """Release the SEMrush client's HTTP connections"""
        await self.client.aclose()

    async def __aenter__(self) -> "SEOMetricsService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # =========================================================================
    # INPUT NORMALIZATION
    # =========================================================================

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.settings.DEFAULT_PAGE_LIMIT
        return max(1, min(int(limit), self.settings.MAX_PAGE_LIMIT))

    @staticmethod
    def clamp_offset(offset: Optional[int]) -> int:
        return max(0, int(offset or 0))

    @staticmethod
    def normalize_domain(domain: str) -> str:
        return extract_hostname(domain) or (domain or "").strip().lower()

    @staticmethod
    def normalize_keyword(keyword: str) -> str:
        return " ".join((keyword or "").split()).lower()

    @staticmethod
    def normalize_region(region: Optional[str]) -> str:
        return (region or "").strip().lower() or GLOBAL_REGION

    # =========================================================================
    # FETCH & CACHE PRIMITIVES
    # =========================================================================

    async def _refund(self, tenant_id: str, category: str, credits: int) -> None:
        """Release a reservation without masking the error that triggered it"""
        try:
            await self.ledger.release(tenant_id, category, credits)
        except SQLAlchemyError as e:
            logger.exception(
                f"Failed to refund {credits} {category} credits for tenant {tenant_id}: {e}"
            )

    async def _fetch(
        self,
        report: ReportType,
        params: Dict[str, Any],
        tenant_id: str,
        endpoint_category: EndpointCategory,
        request_type: str,
        timeout: Optional[float] = None,
    ) -> str:
        """Reserve credits, call SEMrush, refund if the call fails"""
        credits = REPORT_CREDITS[report.value]
        category = endpoint_category.value

        async def attempt() -> str:
            await self.ledger.reserve(tenant_id, category, credits)
            try:
                return await self.client.call(
                    report.value,
                    params,
                    tenant_id,
                    category,
                    request_type,
                    credits,
                    timeout=timeout,
                    prepaid=True,
                )
            except Exception:
                await self._refund(tenant_id, category, credits)
                raise

        return await self.retry_policy.run(attempt)

    async def _cached_record(
        self,
        model: Type[R],
        subject: str,
        data_type: CacheDataType,
        region: str,
        ttl_hours: int,
        fetch: Callable[[], Awaitable[R]],
    ) -> R:
        cached = await self.cache.get(subject, data_type.value, region)
        if cached is not None:
            logger.debug(f"Cache hit {data_type.value}:{region}:{subject}")
            return model.model_validate(cached)

        record = await fetch()
        await self.cache.set(subject, data_type.value, record.to_payload(), ttl_hours, region)
        return record

    async def _cached_page(
        self,
        model: Type[R],
        subject: str,
        data_type: CacheDataType,
        region: str,
        limit: int,
        offset: int,
        ttl_hours: int,
        fetch: Callable[[], Awaitable[List[R]]],
    ) -> List[R]:
        """
        One page of a paginated dataset.

        The cached page is only a hit when it was fetched with the same
        window; a different limit or a misaligned offset refetches and
        replaces the page.
        """
        page = page_for(limit, offset)
        cached = await self.cache.get(subject, data_type.value, region, page)
        if cached is not None and cached.get("limit") == limit and cached.get("offset") == offset:
            logger.debug(f"Cache hit {data_type.value}:{region}:{subject} page {page}")
            return [model.model_validate(item) for item in cached["records"]]

        records = await fetch()
        payload = {
            "limit": limit,
            "offset": offset,
            "records": [r.to_payload() for r in records],
        }
        await self.cache.set(subject, data_type.value, payload, ttl_hours, region, page)
        return records

    async def get_cached_records(
        self,
        model: Type[R],
        subject: str,
        data_type: CacheDataType,
        region: str = GLOBAL_REGION,
    ) -> List[R]:
        """Every cached record of a paginated dataset, in page order"""
        merged: Dict[int, List[Any]] = {}
        for page, payload in (await self.cache.get_pages(subject, data_type.value, region)).items():
            merged = merge_page(merged, page, payload["records"])
        return [model.model_validate(item) for records in merged.values() for item in records]

    # =========================================================================
    # DOMAIN
    # =========================================================================

    async def get_domain_overview(
        self,
        domain: str,
        tenant_id: str,
        region: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> DomainOverview:
        domain = self.normalize_domain(domain)
        region = self.normalize_region(region)
        params = {"domain": domain, "export_columns": csv_schema.DOMAIN_RANK.export_columns}
        if region != GLOBAL_REGION:
            params["database"] = region

        async def fetch() -> DomainOverview:
            raw = await self._fetch(
                ReportType.DOMAIN_RANK, params, tenant_id,
                EndpointCategory.COMPETITOR_ANALYSIS, "domain_overview", timeout,
            )
            return transform_domain_overview(raw)

        return await self._cached_record(
            DomainOverview, domain, CacheDataType.DOMAIN_OVERVIEW, region,
            self.settings.CACHE_TTL_DOMAIN_OVERVIEW, fetch,
        )

    async def get_site_audit(
        self,
        domain: str,
        tenant_id: str,
        *,
        timeout: Optional[float] = None,
    ) -> SiteAudit:
        domain = self.normalize_domain(domain)
        params = {"domain": domain, "export_columns": csv_schema.SITE_AUDIT.export_columns}

        async def fetch() -> SiteAudit:
            raw = await self._fetch(
                ReportType.SITE_AUDIT, params, tenant_id,
                EndpointCategory.WEBSITE_AUDIT, "site_audit", timeout,
            )
            return transform_site_audit(raw)

        return await self._cached_record(
            SiteAudit, domain, CacheDataType.SITE_AUDIT, GLOBAL_REGION,
            self.settings.CACHE_TTL_SITE_AUDIT, fetch,
        )

    # =========================================================================
    # KEYWORDS
    # =========================================================================

    async def get_keyword_data(
        self,
        keyword: str,
        tenant_id: str,
        region: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
    ) -> KeywordData:
        """Keyword metrics for one database; the global region aggregates all"""
        region = self.normalize_region(region)
        if region == GLOBAL_REGION:
            return await self.get_global_keyword_data(keyword, tenant_id, timeout=timeout)

        keyword = self.normalize_keyword(keyword)
        params = {
            "phrase": keyword,
            "database": region,
            "export_columns": csv_schema.PHRASE_THIS.export_columns,
        }

        async def fetch() -> KeywordData:
            raw = await self._fetch(
                ReportType.PHRASE_THIS, params, tenant_id,
                EndpointCategory.KEYWORD_RESEARCH, "keyword_overview", timeout,
            )
            return transform_keyword_data(raw, region)

        return await self._cached_record(
            KeywordData, keyword, CacheDataType.KEYWORD, region,
            self.settings.CACHE_TTL_KEYWORD, fetch,
        )

    async def get_country_keyword_data(
        self,
        keyword: str,
        tenant_id: str,
        country_code: str,
        *,
        timeout: Optional[float] = None,
    ) -> KeywordData:
        return await self.get_keyword_data(keyword, tenant_id, country_code, timeout=timeout)

    async def get_global_keyword_data(
        self,
        keyword: str,
        tenant_id: str,
        *,
        timeout: Optional[float] = None,
    ) -> KeywordData:
        """Keyword metrics aggregated across every SEMrush database"""
        keyword = self.normalize_keyword(keyword)
        params = {"phrase": keyword, "export_columns": csv_schema.PHRASE_ALL.export_columns}

        async def fetch() -> KeywordData:
            raw = await self._fetch(
                ReportType.PHRASE_ALL, params, tenant_id,
                EndpointCategory.KEYWORD_RESEARCH, "keyword_research", timeout,
            )
            return transform_global_keyword_data(raw)

        return await self._cached_record(
            KeywordData, keyword, CacheDataType.KEYWORD, GLOBAL_REGION,
            self.settings.CACHE_TTL_KEYWORD, fetch,
        )

    async def get_related_keywords(
        self,
        keyword: str,
        tenant_id: str,
        region: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = 0,
        *,
        timeout: Optional[float] = None,
    ) -> List[RelatedKeyword]:
        """Keyword variations, one page at a time; no matches is an empty page"""
        keyword = self.normalize_keyword(keyword)
        region = self.normalize_region(region)
        limit = self.clamp_limit(limit)
        offset = self.clamp_offset(offset)
        params = {
            "phrase": keyword,
            "export_columns": csv_schema.PHRASE_RELATED.export_columns,
            "display_limit": limit,
            "display_offset": offset or None,
        }
        if region != GLOBAL_REGION:
            params["database"] = region

        async def fetch() -> List[RelatedKeyword]:
            raw = await self._fetch(
                ReportType.PHRASE_RELATED, params, tenant_id,
                EndpointCategory.KEYWORD_RESEARCH, "related_keywords", timeout,
            )
            related = transform_related_keywords(raw, region)
            if not related:
                logger.warning(f"No related keywords found for {keyword!r} in {region!r}")
            return related

        return await self._cached_page(
            RelatedKeyword, keyword, CacheDataType.KEYWORD_RELATED, region, limit, offset,
            self.settings.CACHE_TTL_RELATED_KEYWORDS, fetch,
        )

    # =========================================================================
    # BACKLINKS
    # =========================================================================

    @staticmethod
    def _backlink_params(domain: str, schema, limit: Optional[int] = None, offset: int = 0) -> Dict[str, Any]:
        return {
            "target": domain,
            "target_type": "root_domain",
            "export_columns": schema.export_columns,
            "display_limit": limit,
            "display_offset": offset or None,
        }

    async def get_backlink_overview(
        self,
        domain: str,
        tenant_id: str,
        *,
        timeout: Optional[float] = None,
    ) -> BacklinkOverview:
        domain = self.normalize_domain(domain)
        params = self._backlink_params(domain, csv_schema.BACKLINKS_OVERVIEW)

        async def fetch() -> BacklinkOverview:
            raw = await self._fetch(
                ReportType.BACKLINKS_OVERVIEW, params, tenant_id,
                EndpointCategory.BACKLINK_ANALYSIS, "backlink_overview", timeout,
            )
            return transform_backlink_overview(raw, domain)

        return await self._cached_record(
            BacklinkOverview, domain, CacheDataType.BACKLINK_OVERVIEW, GLOBAL_REGION,
            self.settings.CACHE_TTL_BACKLINK_OVERVIEW, fetch,
        )

    async def get_backlinks(
        self,
        domain: str,
        tenant_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = 0,
        *,
        timeout: Optional[float] = None,
    ) -> List[Backlink]:
        domain = self.normalize_domain(domain)
        limit = self.clamp_limit(limit)
        offset = self.clamp_offset(offset)
        params = self._backlink_params(domain, csv_schema.BACKLINKS, limit, offset)

        async def fetch() -> List[Backlink]:
            raw = await self._fetch(
                ReportType.BACKLINKS, params, tenant_id,
                EndpointCategory.BACKLINK_ANALYSIS, "backlinks", timeout,
            )
            return transform_backlinks(raw)

        return await self._cached_page(
            Backlink, domain, CacheDataType.BACKLINKS, GLOBAL_REGION, limit, offset,
            self.settings.CACHE_TTL_BACKLINK_PAGES, fetch,
        )

    async def get_referring_domains(
        self,
        domain: str,
        tenant_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = 0,
        *,
        timeout: Optional[float] = None,
    ) -> List[ReferringDomain]:
        domain = self.normalize_domain(domain)
        limit = self.clamp_limit(limit)
        offset = self.clamp_offset(offset)
        params = self._backlink_params(domain, csv_schema.BACKLINKS_REFDOMAINS, limit, offset)

        async def fetch() -> List[ReferringDomain]:
            raw = await self._fetch(
                ReportType.BACKLINKS_REFDOMAINS, params, tenant_id,
                EndpointCategory.BACKLINK_ANALYSIS, "referring_domains", timeout,
            )
            return transform_referring_domains(raw)

        return await self._cached_page(
            ReferringDomain, domain, CacheDataType.REFERRING_DOMAINS, GLOBAL_REGION, limit, offset,
            self.settings.CACHE_TTL_BACKLINK_PAGES, fetch,
        )

    async def get_backlink_competitors(
        self,
        domain: str,
        tenant_id: str,
        *,
        timeout: Optional[float] = None,
    ) -> List[BacklinkCompetitor]:
        """Domains sharing the most referring domains with `domain`"""
        domain = self.normalize_domain(domain)
        params = self._backlink_params(
            domain, csv_schema.BACKLINKS_COMPETITORS, self.settings.DEFAULT_PAGE_LIMIT,
        )

        async def fetch() -> List[BacklinkCompetitor]:
            raw = await self._fetch(
                ReportType.BACKLINKS_COMPETITORS, params, tenant_id,
                EndpointCategory.COMPETITOR_ANALYSIS, "backlink_competitors", timeout,
            )
            return transform_backlink_competitors(raw)

        cached = await self.cache.get(domain, CacheDataType.BACKLINK_COMPETITORS.value)
        if cached is not None:
            return [BacklinkCompetitor.model_validate(item) for item in cached]

        competitors = await fetch()
        await self.cache.set(
            domain, CacheDataType.BACKLINK_COMPETITORS.value,
            [c.to_payload() for c in competitors],
            self.settings.CACHE_TTL_BACKLINK_COMPETITORS,
        )
        return competitors

    async def get_backlink_gap(
        self,
        target_domain: str,
        competitors: Sequence[str],
        tenant_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = 0,
        *,
        timeout: Optional[float] = None,
    ) -> List[Prospect]:
        """Domains linking to competitors but not to the target"""
        return await self.gap_analyzer.analyze(
            target_domain, competitors, tenant_id, limit, offset, timeout=timeout,
        )
