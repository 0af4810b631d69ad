# lead_intake/services/admission.py
"""
Admission guard for every lead-creating entry point.

Checks run in a fixed order and stop at the first failure:

  1. bot detection         -> BotDetected
  2. per-client rate limit -> RateLimited
  3. tenant quota (read)   -> QuotaExceeded
  4. payload validation    -> ValidationFailed

None of them writes anything except the rate-limit counter.
"""

import logging
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from lead_intake.core.errors import BotDetected, QuotaExceeded, RateLimited, ValidationFailed
from lead_intake.models.orm import Tenant
from lead_intake.services import quota
from lead_intake.services.bot_detection import BotDetector, ClientInfo
from lead_intake.services.rate_limit import RateLimit, RateLimiter, RateLimitResult

logger = logging.getLogger("intake.admission")

M = TypeVar("M", bound=BaseModel)


def _field_name(loc) -> Optional[str]:
    parts = [str(p) for p in loc if p != "body"]
    return ".".join(parts) or None


def validate_payload(model: Type[M], payload: Any) -> M:
    """Parse a raw body into `model`, reporting the first offending field."""
    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid request data")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = _field_name(first.get("loc", ()))
        reason = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        raise ValidationFailed(reason, field=field) from exc


class AdmissionGuard:
    def __init__(self, bot_detector: BotDetector, rate_limiter: RateLimiter):
        self.bot_detector = bot_detector
        self.rate_limiter = rate_limiter

    def check_bot(self, client: ClientInfo) -> None:
        if self.bot_detector.is_bot(client):
            logger.info("Rejected bot ip=%s", client.ip)
            raise BotDetected()

    def check_rate(self, client: ClientInfo, budget: RateLimit) -> RateLimitResult:
        result = self.rate_limiter.check(client.ip, budget)
        if not result.allowed:
            logger.info("Rate limited ip=%s budget=%s retry_after=%ss", client.ip, budget.key_prefix, result.retry_after)
            raise RateLimited(
                limit=budget.requests,
                remaining=result.remaining,
                reset_at=result.reset_at,
                retry_after=result.retry_after,
            )
        return result

    def check_quota(self, tenant: Tenant) -> None:
        if not quota.check(tenant):
            logger.info("Quota exhausted org=%s", tenant.org_id)
            raise QuotaExceeded()

    def screen(self, client: ClientInfo, budget: RateLimit) -> RateLimitResult:
        """Steps 1 and 2; cheap and tenant independent."""
        self.check_bot(client)
        return self.check_rate(client, budget)
