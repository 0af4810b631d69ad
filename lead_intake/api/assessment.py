# lead_intake/api/assessment.py
"""
Public assessment endpoints (no sign-in).

Bodies are taken as raw JSON so the admission guard runs before validation.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from lead_intake.api.deps import client_info, get_intake, get_settings
from lead_intake.core.config import Settings
from lead_intake.core.db import get_db
from lead_intake.core.errors import NotFound
from lead_intake.models.schemas import QuizQuestionOut
from lead_intake.services.bot_detection import ClientInfo
from lead_intake.services.intake import IntakeService
from lead_intake.services.rate_limit import RATE_LIMITS
from lead_intake.services.repository import OrgDb
from lead_intake.services.scoring import tier_description
from lead_intake.services.tenants import get_quiz_questions

router = APIRouter(prefix="/api/assessment", tags=["assessment"])
logger = logging.getLogger("intake.api.assessment")


@router.post("/submit")
def submit_assessment(
    payload: Any = Body(default=None),
    client: ClientInfo = Depends(client_info),
    intake: IntakeService = Depends(get_intake),
    db: Session = Depends(get_db),
):
    admission = intake.submit_assessment(db, client, payload)
    result = admission.result
    return {
        "success": True,
        "leadId": admission.lead.id,
        "score": result.percentage_score,
        "tier": result.tier.value,
        "message": "Assessment submitted successfully",
    }


@router.post("/demo-submit")
def submit_demo(
    payload: Any = Body(default=None),
    client: ClientInfo = Depends(client_info),
    intake: IntakeService = Depends(get_intake),
    db: Session = Depends(get_db),
):
    admission = intake.submit_demo(db, client, payload)
    return {
        "success": True,
        "leadId": admission.lead.id,
        "fitScore": admission.result.percentage_score,
        "tier": admission.result.tier.value,
    }


def _questions_for(org_id: str, client: ClientInfo, intake: IntakeService, db: Session) -> dict:
    intake.guard.check_rate(client, RATE_LIMITS["assessment_questions"])
    questions = get_quiz_questions(db, org_id)
    logger.info("GET questions org=%s count=%d", org_id, len(questions))
    return {
        "success": True,
        "questions": [QuizQuestionOut.model_validate(q).model_dump() for q in questions],
        "totalQuestions": len(questions),
    }


@router.get("/questions")
def assessment_questions(
    client: ClientInfo = Depends(client_info),
    intake: IntakeService = Depends(get_intake),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    return _questions_for(settings.default_org_id, client, intake, db)


@router.get("/demo-questions")
def demo_questions(
    client: ClientInfo = Depends(client_info),
    intake: IntakeService = Depends(get_intake),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    return _questions_for(settings.demo_org_id, client, intake, db)


@router.get("/results/{lead_id}")
def assessment_results(
    lead_id: str,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    """Results page data for a public assessment lead."""
    for org_id in (settings.default_org_id, settings.demo_org_id):
        org = OrgDb(db, org_id, settings.system_user_id)
        lead = org.leads.find_by_id(lead_id)
        if lead is None:
            continue
        score = org.leads.score_for(lead.id)
        if score is None:
            raise NotFound("Score not found")
        return {
            "success": True,
            "lead": {"id": lead.id, "name": lead.name, "email": lead.email, "company": lead.company},
            "score": {
                "readinessScore": score.readiness_score,
                "tier": score.tier,
                "tierDescription": tier_description(score.tier),
                "totalPoints": score.total_points,
                "maxPossiblePoints": score.max_possible_points,
                "breakdown": score.scoring_breakdown,
            },
            "responsesCount": len(org.leads.responses_for(lead.id)),
        }
    raise NotFound("Assessment results not found")
