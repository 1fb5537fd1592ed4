"""
Quota Ledger
Per-tenant monthly credit accounting against subscription tier limits

Every unknown (tenant, tier, endpoint category) or store failure denies
the call rather than allowing it.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import uuid4

from sqlalchemy import select, update, and_, case
from sqlalchemy.exc import SQLAlchemyError

from seo_metrics.config import ENDPOINT_CATEGORIES
from seo_metrics.models import Tenant, TierLimit, QuotaPeriod
from seo_metrics.adapters.semrush.base import QuotaExceededError
from seo_metrics.utils.database import get_session_maker, dialect_insert

logger = logging.getLogger(__name__)


class QuotaLedger:
    """
    Tracks credits used per tenant and billing month.

    check_quota is a read-only gate. reserve performs the same gates and
    the increment as one conditional UPDATE, so concurrent callers cannot
    overshoot a limit; release refunds a reservation whose call failed.
    """

    def __init__(self, session_factory=None, clock: Callable[[], datetime] = None):
        self.session_factory = session_factory or get_session_maker()
        self.clock = clock or datetime.utcnow

    def billing_period(self) -> Tuple[int, int]:
        """(month, year) of the current billing period"""
        now = self.clock()
        return now.month, now.year

    @staticmethod
    def _columns(endpoint_category: str) -> Tuple[str, str]:
        if endpoint_category not in ENDPOINT_CATEGORIES:
            raise QuotaExceededError("Unknown API endpoint", endpoint_category)
        return f"{endpoint_category}_limit", f"{endpoint_category}_used"

    async def _get_tier_limits(self, session, tenant_id: str, endpoint_category: str) -> TierLimit:
        tenant = await session.get(Tenant, tenant_id)
        if tenant is None:
            raise QuotaExceededError("Tenant not found", endpoint_category)

        tier = await session.get(TierLimit, tenant.subscription_tier)
        if tier is None:
            raise QuotaExceededError("Tier limits not found", endpoint_category)
        return tier

    async def _get_period(self, session, tenant_id: str, month: int, year: int) -> Optional[QuotaPeriod]:
        result = await session.execute(
            select(QuotaPeriod).where(
                and_(
                    QuotaPeriod.tenant_id == tenant_id,
                    QuotaPeriod.billing_month == month,
                    QuotaPeriod.billing_year == year,
                )
            )
        )
        return result.scalar_one_or_none()

    async def _ensure_period(self, session, tenant_id: str, month: int, year: int) -> None:
        """Create the zero-baseline row for the period if it is missing"""
        now = self.clock()
        stmt = dialect_insert(session, QuotaPeriod).values(
            id=str(uuid4()),
            tenant_id=tenant_id,
            billing_month=month,
            billing_year=year,
            keyword_research_used=0,
            website_audit_used=0,
            backlink_analysis_used=0,
            competitor_analysis_used=0,
            rank_tracking_used=0,
            total_credits_used=0,
            created_at=now,
            updated_at=now,
        )
        await session.execute(
            stmt.on_conflict_do_nothing(
                index_elements=["tenant_id", "billing_month", "billing_year"]
            )
        )

    @staticmethod
    def _limits(tier: TierLimit, endpoint_category: str) -> Tuple[int, Optional[int]]:
        """(endpoint limit, total limit); a missing endpoint limit counts as 0"""
        return getattr(tier, f"{endpoint_category}_limit") or 0, tier.total_credit_limit

    @staticmethod
    def _used(usage: Optional[QuotaPeriod], endpoint_category: str) -> Tuple[int, int]:
        """(endpoint credits used, total credits used) with a zero baseline"""
        if usage is None:
            return 0, 0
        return getattr(usage, f"{endpoint_category}_used") or 0, usage.total_credits_used or 0

    @staticmethod
    def _evaluate(
        endpoint_category: str,
        credits_required: int,
        limits: Tuple[int, Optional[int]],
        used: Tuple[int, int],
    ) -> None:
        """Raise for the first violated gate: endpoint limit, then total limit"""
        limit, total_limit = limits
        current_usage, total_used = used

        if current_usage + credits_required > limit:
            raise QuotaExceededError(
                f"{endpoint_category} quota exceeded. Used: {current_usage}/{limit}",
                endpoint_category,
            )

        if total_limit is not None and total_used + credits_required > total_limit:
            raise QuotaExceededError(
                f"Total credit quota exceeded. Used: {total_used}/{total_limit}",
                endpoint_category,
            )

    async def check_quota(
        self,
        tenant_id: str,
        endpoint_category: str,
        credits_required: int = 1,
    ) -> bool:
        """
        Check whether the tenant may spend credits on an endpoint category.

        Returns:
            True when allowed

        Raises:
            QuotaExceededError: limit reached, or the lookup failed
        """
        self._columns(endpoint_category)
        month, year = self.billing_period()

        try:
            async with self.session_factory() as session:
                tier = await self._get_tier_limits(session, tenant_id, endpoint_category)
                limits = self._limits(tier, endpoint_category)
                used = self._used(
                    await self._get_period(session, tenant_id, month, year),
                    endpoint_category,
                )
        except SQLAlchemyError as e:
            logger.exception(f"Quota check failed for tenant {tenant_id}: {e}")
            raise QuotaExceededError("Quota check failed", endpoint_category) from e

        self._evaluate(endpoint_category, credits_required, limits, used)
        return True

    async def reserve(
        self,
        tenant_id: str,
        endpoint_category: str,
        credits: int,
    ) -> None:
        """
        Atomically add credits if every limit still holds afterwards.

        Raises:
            QuotaExceededError: naming the violated gate
        """
        _, used_column = self._columns(endpoint_category)
        month, year = self.billing_period()

        try:
            async with self.session_factory() as session:
                tier = await self._get_tier_limits(session, tenant_id, endpoint_category)
                limits = self._limits(tier, endpoint_category)
                limit, total_limit = limits
                await self._ensure_period(session, tenant_id, month, year)

                used = getattr(QuotaPeriod, used_column)
                conditions = [
                    QuotaPeriod.tenant_id == tenant_id,
                    QuotaPeriod.billing_month == month,
                    QuotaPeriod.billing_year == year,
                    used + credits <= limit,
                ]
                if total_limit is not None:
                    conditions.append(QuotaPeriod.total_credits_used + credits <= total_limit)

                result = await session.execute(
                    update(QuotaPeriod)
                    .where(and_(*conditions))
                    .values({
                        used_column: used + credits,
                        "total_credits_used": QuotaPeriod.total_credits_used + credits,
                        "updated_at": self.clock(),
                    })
                    .execution_options(synchronize_session=False)
                )

                if result.rowcount == 0:
                    await session.rollback()
                    usage = await self._get_period(session, tenant_id, month, year)
                    self._evaluate(endpoint_category, credits, limits, self._used(usage, endpoint_category))
                    raise QuotaExceededError(f"{endpoint_category} quota exceeded", endpoint_category)

                await session.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Quota reservation failed for tenant {tenant_id}: {e}")
            raise QuotaExceededError("Quota check failed", endpoint_category) from e

    async def _apply(self, tenant_id: str, endpoint_category: str, delta: int) -> None:
        _, used_column = self._columns(endpoint_category)
        month, year = self.billing_period()
        used = getattr(QuotaPeriod, used_column)
        total = QuotaPeriod.total_credits_used

        async with self.session_factory() as session:
            await self._ensure_period(session, tenant_id, month, year)
            if delta >= 0:
                values = {used_column: used + delta, "total_credits_used": total + delta}
            else:
                refund = -delta
                values = {
                    used_column: case((used >= refund, used - refund), else_=0),
                    "total_credits_used": case((total >= refund, total - refund), else_=0),
                }
            values["updated_at"] = self.clock()
            await session.execute(
                update(QuotaPeriod)
                .where(
                    and_(
                        QuotaPeriod.tenant_id == tenant_id,
                        QuotaPeriod.billing_month == month,
                        QuotaPeriod.billing_year == year,
                    )
                )
                .values(values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def add_usage(self, tenant_id: str, endpoint_category: str, credits: int) -> None:
        """Unconditional server-side increment of the period counters"""
        if credits > 0:
            await self._apply(tenant_id, endpoint_category, credits)

    async def release(self, tenant_id: str, endpoint_category: str, credits: int) -> None:
        """Refund a reservation; counters never drop below zero"""
        if credits > 0:
            await self._apply(tenant_id, endpoint_category, -credits)

    async def get_usage_summary(self, tenant_id: str) -> Dict[str, Any]:
        """Used, limit and remaining credits per category for the current period"""
        month, year = self.billing_period()
        async with self.session_factory() as session:
            tier = await self._get_tier_limits(session, tenant_id, "summary")
            usage = await self._get_period(session, tenant_id, month, year)

            categories = {}
            for category in ENDPOINT_CATEGORIES:
                limit, total_limit = self._limits(tier, category)
                used, total_used = self._used(usage, category)
                categories[category] = {
                    "used": used,
                    "limit": limit,
                    "remaining": max(0, limit - used),
                }
            tier_name = tier.tier_name

        return {
            "tenant_id": tenant_id,
            "tier": tier_name,
            "billing_month": month,
            "billing_year": year,
            "categories": categories,
            "total": {
                "used": total_used,
                "limit": total_limit,
                "remaining": None if total_limit is None else max(0, total_limit - total_used),
            },
        }
