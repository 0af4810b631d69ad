# lead_intake/api/billing.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lead_intake.auth.permissions import AuthContext, Permission, require_org_user, require_permission
from lead_intake.core.db import get_db
from lead_intake.models.schemas import TierIn
from lead_intake.services import quota
from lead_intake.services.tenants import require_tenant_by_org_id

router = APIRouter(prefix="/api/billing", tags=["billing"])
logger = logging.getLogger("intake.api.billing")


@router.get("/usage")
def usage(auth: AuthContext = Depends(require_org_user), db: Session = Depends(get_db)):
    tenant = require_tenant_by_org_id(db, auth.org_id)
    return quota.usage_stats(tenant)


@router.put("/tier")
def change_tier(
    payload: TierIn,
    auth: AuthContext = Depends(require_permission(Permission.BILLING_MANAGE)),
    db: Session = Depends(get_db),
):
    tenant = require_tenant_by_org_id(db, auth.org_id)
    quota.set_tier(tenant, payload.tier)
    db.commit()
    return quota.usage_stats(tenant)
