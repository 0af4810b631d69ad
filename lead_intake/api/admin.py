# lead_intake/api/admin.py
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends

from lead_intake.api.deps import get_settings, org_db
from lead_intake.auth.permissions import AuthContext, Permission, require_permission
from lead_intake.core.config import Settings
from lead_intake.models.schemas import RetentionIn
from lead_intake.services.repository import OrgDb

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger("intake.api.admin")


@router.post("/retention")
def run_retention(
    payload: Optional[RetentionIn] = Body(default=None),
    auth: AuthContext = Depends(require_permission(Permission.ORG_MANAGE)),
    org: OrgDb = Depends(org_db),
    settings: Settings = Depends(get_settings),
):
    """Purge this organization's rows that were soft-deleted long enough ago."""
    days = payload.older_than_days if payload and payload.older_than_days is not None else settings.retention_days
    counts = org.purge_deleted(older_than_days=days)
    org.db.commit()
    logger.info("Retention sweep org=%s days=%d by=%s counts=%s", org.org_id, days, auth.user_id, counts)
    return {"success": True, "olderThanDays": days, "deleted": counts}
