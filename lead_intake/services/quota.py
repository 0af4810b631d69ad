# lead_intake/services/quota.py
"""
Monthly lead quota per tenant.

`check` is a cheap read used by the admission guard before validation.
`consume` is the authoritative gate: it locks the tenant row, rolls the
counter over when a new month started, re-checks and increments, all inside
the caller's transaction. Two concurrent submissions can therefore never push
usage past the limit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from lead_intake.core.errors import NotFound, QuotaExceeded, ValidationFailed
from lead_intake.models.orm import Tenant

logger = logging.getLogger("intake.quota")


@dataclass(frozen=True)
class SubscriptionTier:
    name: str
    lead_limit: Optional[int]  # None = unbounded
    user_limit: Optional[int]
    price: Optional[int]


SUBSCRIPTION_TIERS: Dict[str, SubscriptionTier] = {
    "starter": SubscriptionTier("Starter", 100, 3, 49),
    "pro": SubscriptionTier("Pro", 1000, 10, 199),
    "enterprise": SubscriptionTier("Enterprise", None, None, None),
}


def _month_rolled(tenant: Tenant, now: datetime) -> bool:
    last = tenant.usage_reset_at
    if last is None:
        return True
    return (last.year, last.month) != (now.year, now.month)


def _effective_usage(tenant: Tenant, now: datetime) -> int:
    return 0 if _month_rolled(tenant, now) else (tenant.usage_this_month or 0)


def _limit(tenant: Tenant) -> Optional[int]:
    if tenant.monthly_lead_limit is not None:
        return tenant.monthly_lead_limit
    tier = SUBSCRIPTION_TIERS.get(tenant.subscription_tier or "starter")
    return tier.lead_limit if tier else SUBSCRIPTION_TIERS["starter"].lead_limit


def check(tenant: Tenant, now: Optional[datetime] = None) -> bool:
    """True while the tenant may create another lead this month."""
    limit = _limit(tenant)
    if limit is None:
        return True
    return _effective_usage(tenant, now or datetime.utcnow()) < limit


def consume(db: Session, tenant_id: str, now: Optional[datetime] = None) -> Tenant:
    """Lock, roll over, re-check and increment. Raises QuotaExceeded."""
    now = now or datetime.utcnow()
    stmt = (
        select(Tenant)
        .where(Tenant.id == tenant_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    tenant = db.scalars(stmt).first()
    if tenant is None:
        raise NotFound("Tenant not found")

    if _month_rolled(tenant, now):
        logger.info("Monthly usage rolled over org=%s previous=%s", tenant.org_id, tenant.usage_this_month)
        tenant.usage_this_month = 0
        tenant.usage_reset_at = now

    limit = _limit(tenant)
    if limit is not None and tenant.usage_this_month >= limit:
        logger.info("Quota exhausted org=%s usage=%s limit=%s", tenant.org_id, tenant.usage_this_month, limit)
        raise QuotaExceeded()

    tenant.usage_this_month += 1
    db.flush()
    return tenant


def usage_stats(tenant: Tenant, now: Optional[datetime] = None) -> Dict[str, Any]:
    usage = _effective_usage(tenant, now or datetime.utcnow())
    limit = _limit(tenant)
    return {
        "tier": tenant.subscription_tier,
        "usage": usage,
        "limit": limit,
        "remaining": None if limit is None else max(0, limit - usage),
        "percentage": 0 if not limit else round(usage / limit * 100, 1),
        "resetAt": tenant.usage_reset_at.isoformat() if tenant.usage_reset_at else None,
    }


def set_tier(tenant: Tenant, tier: str) -> Tenant:
    if tier not in SUBSCRIPTION_TIERS:
        raise ValidationFailed(f"unknown subscription tier {tier}", field="tier")
    tenant.subscription_tier = tier
    tenant.monthly_lead_limit = SUBSCRIPTION_TIERS[tier].lead_limit
    logger.info("Subscription tier changed org=%s tier=%s", tenant.org_id, tier)
    return tenant


def reset_month(tenant: Tenant, now: Optional[datetime] = None) -> Tenant:
    tenant.usage_this_month = 0
    tenant.usage_reset_at = now or datetime.utcnow()
    return tenant
