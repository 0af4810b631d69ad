# lead_intake/api/quiz.py
"""
Tenant-branded quiz: branding lookup, question list and submission.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Request
from sqlalchemy.orm import Session

from lead_intake.api.deps import client_info, get_intake, get_settings
from lead_intake.core.config import Settings
from lead_intake.core.db import get_db
from lead_intake.core.errors import NotFound
from lead_intake.models.schemas import PublicQuestionOut, TenantOut
from lead_intake.services.bot_detection import ClientInfo
from lead_intake.services.intake import IntakeService
from lead_intake.services.tenants import get_quiz_questions, get_tenant_by_subdomain, resolve_tenant

router = APIRouter(tags=["quiz"])
logger = logging.getLogger("intake.api.quiz")


@router.get("/api/tenant", response_model=TenantOut)
def current_tenant(
    request: Request,
    x_tenant_subdomain: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """Tenant for the requesting host (branding for the landing page)."""
    tenant = resolve_tenant(db, request.headers.get("host"), x_tenant_subdomain, settings.base_domain)
    if tenant is None:
        raise NotFound("Tenant not found")
    return tenant


@router.get("/api/tenants/{subdomain}/questions")
def tenant_questions(subdomain: str, db: Session = Depends(get_db)):
    tenant = get_tenant_by_subdomain(db, subdomain.lower())
    if tenant is None:
        raise NotFound("Tenant not found")
    questions = get_quiz_questions(db, tenant.org_id)
    return {
        "success": True,
        "tenant": TenantOut.model_validate(tenant).model_dump(),
        "questions": [PublicQuestionOut.model_validate(q).model_dump() for q in questions],
    }


@router.post("/api/quiz/submit")
def submit_quiz(
    payload: Any = Body(default=None),
    client: ClientInfo = Depends(client_info),
    intake: IntakeService = Depends(get_intake),
    db: Session = Depends(get_db),
):
    admission = intake.submit_quiz(db, client, payload)
    return {
        "success": True,
        "message": "Quiz submitted successfully",
        "leadId": admission.lead.id,
        "readinessScore": admission.result.percentage_score,
        "tier": admission.result.tier.value,
    }
