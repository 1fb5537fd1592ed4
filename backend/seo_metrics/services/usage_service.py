"""
Usage Recorder
Append-only audit log of SEMrush calls, feeding the quota ledger
"""

import logging
from typing import Optional

from seo_metrics.models import UsageLog, UsageStatus
from .quota_service import QuotaLedger

logger = logging.getLogger(__name__)


class UsageRecorder:
    """
    Writes one usage log entry per call attempt.

    Recording is best effort: failures are logged and never reach the
    caller, so accounting problems cannot break a data fetch.
    """

    def __init__(self, ledger: QuotaLedger, session_factory=None, provider: str = "semrush"):
        self.ledger = ledger
        self.session_factory = session_factory or ledger.session_factory
        self.provider = provider

    async def log_usage(
        self,
        tenant_id: str,
        endpoint_category: str,
        request_type: str,
        status: str,
        credits: int = 1,
        subject: Optional[str] = None,
        error_message: Optional[str] = None,
        charge_ledger: bool = True,
    ) -> None:
        """
        Record a call outcome.

        Args:
            tenant_id: Tenant that made the call
            endpoint_category: Billing bucket
            request_type: Label for the kind of request
            status: success, failed, rate_limited or quota_exceeded
            credits: Credits consumed (0 for anything but success)
            subject: Domain or keyword the call was about
            error_message: Failure detail
            charge_ledger: Add successful credits to the period counters
        """
        try:
            status = UsageStatus(status)
            month, year = self.ledger.billing_period()
            is_domain = bool(subject) and "." in subject

            async with self.session_factory() as session:
                session.add(UsageLog(
                    tenant_id=tenant_id,
                    api_endpoint=endpoint_category,
                    api_provider=self.provider,
                    request_type=request_type,
                    credits_consumed=credits,
                    target_domain=subject if is_domain else None,
                    target_keyword=None if is_domain else subject,
                    status=status.value,
                    error_message=error_message,
                    billing_month=month,
                    billing_year=year,
                ))
                await session.commit()

            if status == UsageStatus.SUCCESS and credits > 0 and charge_ledger:
                await self.ledger.add_usage(tenant_id, endpoint_category, credits)
        except Exception as e:
            logger.exception(f"Failed to log API usage for tenant {tenant_id}: {e}")
