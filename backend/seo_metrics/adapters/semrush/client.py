"""
SEMrush API Client
Issues report requests and classifies the provider's responses
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from seo_metrics.config import get_settings
from seo_metrics.models import UsageStatus
from .base import (
    ReportType,
    BACKLINK_REPORTS,
    NOTHING_FOUND,
    ERROR_PREFIX,
    BALANCE_ERROR_MARKERS,
    DEFAULT_RETRY_AFTER,
    RemoteError,
    RateLimitError,
    QuotaExceededError,
    RemoteTimeoutError,
)

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str]) -> int:
    """Seconds from a Retry-After header, defaulting to 60"""
    if not value:
        return DEFAULT_RETRY_AFTER
    try:
        return max(0, int(value.strip()))
    except ValueError:
        return DEFAULT_RETRY_AFTER


class SemrushClient:
    """
    Client for the SEMrush report API.

    One outbound request per `call`. Usage is recorded for every outcome;
    credits are only charged on a confirmed success. The client is built
    explicitly and injected into the services that use it.

    Args:
        api_key: SEMrush API key (falls back to SEMRUSH_API_KEY)
        base_url: API root (falls back to SEMRUSH_BASE_URL)
        timeout: Default deadline in seconds for a call
        recorder: UsageRecorder receiving one entry per call
        http_client: Optional injected httpx.AsyncClient, mainly for tests
    """

    ANALYTICS_PATH = "/"
    BACKLINKS_PATH = "/analytics/v1/"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        recorder=None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.SEMRUSH_API_KEY
        if not self.api_key:
            raise ValueError("SEMrush API key is required")

        self.base_url = (base_url or settings.SEMRUSH_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.SEMRUSH_REQUEST_TIMEOUT
        self.recorder = recorder
        self._http_client = http_client
        self._owns_http_client = http_client is None

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    def _url_for(self, report: ReportType) -> str:
        path = self.BACKLINKS_PATH if report in BACKLINK_REPORTS else self.ANALYTICS_PATH
        return f"{self.base_url}{path}"

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it"""
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "SemrushClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def call(
        self,
        report_type: str,
        params: Dict[str, Any],
        tenant_id: str,
        endpoint_category: str,
        request_type: str,
        credits_required: int = 1,
        *,
        timeout: Optional[float] = None,
        prepaid: bool = False,
    ) -> str:
        """
        Fetch a report and return the raw `;`-delimited body.

        Args:
            report_type: SEMrush report name
            params: Report parameters; None values are dropped
            tenant_id: Tenant charged for the call
            endpoint_category: Billing bucket for quota accounting
            request_type: Free-form label stored in the usage log
            credits_required: Credits charged on success
            timeout: Deadline for this call, overrides the client default
            prepaid: Credits were already reserved by the caller

        Raises:
            RateLimitError, QuotaExceededError, RemoteError, RemoteTimeoutError
        """
        report = ReportType(report_type)
        subject = params.get("domain") or params.get("target") or params.get("phrase")
        deadline = timeout if timeout is not None else self.timeout

        query = {"type": report.value, "key": self.api_key}
        query.update({k: str(v) for k, v in params.items() if v is not None})

        async def record(status: UsageStatus, credits: int, error: Optional[str] = None) -> None:
            if self.recorder is None:
                return
            await self.recorder.log_usage(
                tenant_id,
                endpoint_category,
                request_type,
                status,
                credits,
                subject=subject,
                error_message=error,
                charge_ledger=not prepaid,
            )

        try:
            response = await asyncio.wait_for(
                self._get_http_client().get(self._url_for(report), params=query),
                timeout=deadline,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            message = f"SEMrush request timed out after {deadline}s"
            logger.warning(f"{message} ({report.value}, tenant {tenant_id})")
            await record(UsageStatus.FAILED, 0, message)
            raise RemoteTimeoutError(message, endpoint=endpoint_category)
        except httpx.RequestError as e:
            message = f"SEMrush request failed: {e}"
            logger.error(message)
            await record(UsageStatus.FAILED, 0, message)
            raise RemoteError(message, endpoint=endpoint_category) from e

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(f"SEMrush rate limited {report.value}, retry after {retry_after}s")
            await record(UsageStatus.RATE_LIMITED, 0, f"Rate limited, retry after {retry_after}s")
            raise RateLimitError("Rate limited by SEMrush API", retry_after, endpoint_category)

        if response.status_code == 402:
            await record(UsageStatus.QUOTA_EXCEEDED, 0, "SEMrush API quota exceeded")
            raise QuotaExceededError("SEMrush API quota exceeded", endpoint_category)

        if not response.is_success:
            message = f"SEMrush API error: {response.status_code} {response.reason_phrase}"
            logger.error(f"{message} ({report.value})")
            await record(UsageStatus.FAILED, 0, message)
            raise RemoteError(message, response.status_code, endpoint_category)

        body = response.text
        marker = body.strip()
        if marker.startswith(ERROR_PREFIX):
            if marker.startswith(NOTHING_FOUND):
                await record(UsageStatus.SUCCESS, credits_required)
                return body
            if any(m in marker.upper() for m in BALANCE_ERROR_MARKERS):
                await record(UsageStatus.QUOTA_EXCEEDED, 0, marker)
                raise QuotaExceededError(f"SEMrush API quota exceeded: {marker}", endpoint_category)
            await record(UsageStatus.FAILED, 0, marker)
            raise RemoteError(f"SEMrush API error: {marker}", response.status_code, endpoint_category)

        await record(UsageStatus.SUCCESS, credits_required)
        return body
