# lead_intake/api/leads.py
"""
Lead management for signed-in organization members.

Every handler goes through OrgDb, so a lead of another organization is a 404
exactly like an unknown id.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends

from lead_intake.api.deps import get_notifier, org_db
from lead_intake.auth.permissions import AuthContext, Permission, require_permission
from lead_intake.core.errors import NotFound
from lead_intake.models.schemas import DecisionIn, DeleteIn, LeadOut, LeadUpdate, WorkflowOut
from lead_intake.services.lifecycle import LeadLifecycle
from lead_intake.services.notifications import Notifier
from lead_intake.services.repository import OrgDb
from lead_intake.services.scoring import tier_description

router = APIRouter(prefix="/api/leads", tags=["leads"])
logger = logging.getLogger("intake.api.leads")


def _lead_out(lead) -> dict:
    return LeadOut.model_validate(lead).model_dump(mode="json")


@router.get("", response_model=List[LeadOut])
def list_leads(
    status: Optional[str] = None,
    limit: int = 100,
    auth: AuthContext = Depends(require_permission(Permission.LEADS_READ)),
    org: OrgDb = Depends(org_db),
):
    leads = org.leads.find_many(status=status, limit=max(1, min(limit, 500)))
    logger.info("GET /api/leads org=%s status=%s count=%d", org.org_id, status, len(leads))
    return leads


@router.get("/stats")
def lead_stats(
    auth: AuthContext = Depends(require_permission(Permission.LEADS_READ)),
    org: OrgDb = Depends(org_db),
):
    return org.leads.count_by_status()


@router.get("/deleted", response_model=List[LeadOut])
def deleted_leads(
    auth: AuthContext = Depends(require_permission(Permission.LEADS_DELETE)),
    org: OrgDb = Depends(org_db),
):
    return org.leads.find_deleted()


@router.get("/{lead_id}")
def get_lead(
    lead_id: str,
    auth: AuthContext = Depends(require_permission(Permission.LEADS_READ)),
    org: OrgDb = Depends(org_db),
):
    lead = org.leads.find_by_id(lead_id)
    if lead is None:
        raise NotFound("Lead not found")
    score = org.leads.score_for(lead.id)
    workflows = org.workflows.find_by_lead_id(lead.id)
    return {
        "lead": _lead_out(lead),
        "score": None if score is None else {
            "readinessScore": score.readiness_score,
            "qualificationScore": score.qualification_score,
            "tier": score.tier,
            "tierDescription": tier_description(score.tier),
            "totalPoints": score.total_points,
            "maxPossiblePoints": score.max_possible_points,
            "breakdown": score.scoring_breakdown,
        },
        "responses": [
            {"questionId": r.question_id, "questionNumber": r.question_number, "answer": r.answer, "pointsEarned": r.points_earned}
            for r in org.leads.responses_for(lead.id)
        ],
        "workflows": [WorkflowOut.model_validate(w).model_dump(mode="json") for w in workflows],
    }


@router.patch("/{lead_id}", response_model=LeadOut)
def update_lead(
    lead_id: str,
    payload: LeadUpdate,
    auth: AuthContext = Depends(require_permission(Permission.LEADS_WRITE)),
    org: OrgDb = Depends(org_db),
):
    fields = payload.model_dump(exclude_unset=True)
    lead = org.leads.update(lead_id, **fields)
    if lead is None:
        raise NotFound("Lead not found")
    org.db.commit()
    logger.info("PATCH lead=%s org=%s fields=%s", lead_id, org.org_id, sorted(fields))
    return lead


@router.delete("/{lead_id}")
def delete_lead(
    lead_id: str,
    payload: Optional[DeleteIn] = Body(default=None),
    auth: AuthContext = Depends(require_permission(Permission.LEADS_DELETE)),
    org: OrgDb = Depends(org_db),
):
    """Soft delete; the row is purged by the retention sweep."""
    lead = org.leads.soft_delete(lead_id, reason=payload.reason if payload else None)
    if lead is None:
        raise NotFound("Lead not found")
    org.db.commit()
    return {"success": True, "leadId": lead.id}


@router.post("/{lead_id}/restore", response_model=LeadOut)
def restore_lead(
    lead_id: str,
    auth: AuthContext = Depends(require_permission(Permission.LEADS_DELETE)),
    org: OrgDb = Depends(org_db),
):
    lead = org.leads.restore(lead_id)
    if lead is None:
        raise NotFound("Lead not found")
    org.db.commit()
    return lead


@router.get("/{lead_id}/approval")
def approval_data(
    lead_id: str,
    auth: AuthContext = Depends(require_permission(Permission.LEADS_READ)),
    org: OrgDb = Depends(org_db),
):
    view = LeadLifecycle(org).approval_view(lead_id)
    view["lead"] = _lead_out(view["lead"])
    return view


@router.post("/{lead_id}/decision")
def decide(
    lead_id: str,
    payload: DecisionIn,
    auth: AuthContext = Depends(require_permission(Permission.LEADS_APPROVE)),
    org: OrgDb = Depends(org_db),
    notifier: Notifier = Depends(get_notifier),
):
    outcome = LeadLifecycle(org, notifier).decide(lead_id, payload.action, payload.email_draft, actor=auth.user_id)
    return {
        "success": True,
        "leadId": outcome.lead.id,
        "status": outcome.lead.status,
        "workflowId": outcome.workflow.id if outcome.workflow else None,
        "emailSent": outcome.notified,
    }
