# lead_intake/services/intake.py
"""
Lead intake paths.

  submit_assessment  public help desk assessment (default org, production engine)
  submit_demo        public product-fit demo (demo org, demo engine, sales alert)
  submit_quiz        tenant-branded quiz (tenant org, engine built from its questions)
  submit_form        authenticated contact form (caller's org, no scoring)

Each path runs the admission guard, then writes quota + lead + responses +
score (+ a running workflow row when one will be started) in one
transaction, and only after commit hands the lead to the workflow dispatcher.
"""

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from lead_intake.auth.permissions import AuthContext
from lead_intake.core.config import Settings
from lead_intake.core.errors import NotFound, ValidationFailed
from lead_intake.models.orm import Lead, LeadScore, Tenant, Workflow
from lead_intake.models.schemas import AssessmentSubmission, FormSubmission, QuizSubmission
from lead_intake.services import quota
from lead_intake.services.admission import AdmissionGuard, validate_payload
from lead_intake.services.bot_detection import ClientInfo
from lead_intake.services.dispatch import WorkflowDispatcher, lead_snapshot
from lead_intake.services.notifications import Notifier, SalesAlert
from lead_intake.services.rate_limit import RATE_LIMITS
from lead_intake.services.repository import OrgDb
from lead_intake.services.scoring import (
    DEMO_ENGINE,
    PRODUCTION_ENGINE,
    ContactInfo,
    ScoredResponse,
    ScoreResult,
    ScoringEngine,
    TierAction,
    extract_contact_info,
    points_for_answer,
)
from lead_intake.services.tenants import get_quiz_questions, get_tenant_by_subdomain, require_tenant_by_org_id

logger = logging.getLogger("intake.intake")

DEMO_USER_ID = "system_demo"
QUIZ_USER_ID = "quiz_submission"


@dataclass
class Admission:
    lead: Lead
    score: Optional[LeadScore]
    result: Optional[ScoreResult]
    action: Optional[TierAction]
    workflow: Optional[Workflow] = None
    dispatch: Optional[Future] = None


class IntakeService:
    def __init__(
        self,
        settings: Settings,
        guard: AdmissionGuard,
        dispatcher: WorkflowDispatcher,
        notifier: Optional[Notifier] = None,
    ):
        self.settings = settings
        self.guard = guard
        self.dispatcher = dispatcher
        self.notifier = notifier

    # ---- public paths ----
    def submit_assessment(self, db: Session, client: ClientInfo, payload: Any) -> Admission:
        self.guard.screen(client, RATE_LIMITS["assessment_submit"])
        tenant = require_tenant_by_org_id(db, self.settings.default_org_id)
        self.guard.check_quota(tenant)
        data = validate_payload(AssessmentSubmission, payload)

        responses = _scored(data)
        result = PRODUCTION_ENGINE.score(responses)
        contact = _require_contact(extract_contact_info(responses), "Contact information is required")

        org = OrgDb(db, tenant.org_id, self.settings.system_user_id)
        message = f"Help Desk Assessment - {result.tier.value.upper()} tier ({result.percentage_score}% score)"
        return self._admit(
            org, tenant, contact, message, responses, result,
            start_workflow=result.action is TierAction.AI_WORKFLOW,
        )

    def submit_demo(self, db: Session, client: ClientInfo, payload: Any) -> Admission:
        self.guard.screen(client, RATE_LIMITS["demo_submit"])
        tenant = require_tenant_by_org_id(db, self.settings.demo_org_id)
        self.guard.check_quota(tenant)
        data = validate_payload(AssessmentSubmission, payload)

        responses = _scored(data)
        result = DEMO_ENGINE.score(responses)
        contact = _require_contact(extract_contact_info(responses), "Name and email are required")

        org = OrgDb(db, tenant.org_id, DEMO_USER_ID)
        message = f"Demo Assessment - {result.tier.value.upper()} ({result.percentage_score}% product fit)"
        if contact.title:
            message += f" - {contact.title}"
        admission = self._admit(
            org, tenant, contact, message, responses, result,
            start_workflow=result.action is TierAction.AI_WORKFLOW,
        )
        self._alert_sales(admission, contact)
        return admission

    def submit_quiz(self, db: Session, client: ClientInfo, payload: Any) -> Admission:
        self.guard.screen(client, RATE_LIMITS["quiz_submit"])
        slug = payload.get("tenantSlug") if isinstance(payload, dict) else None
        tenant = get_tenant_by_subdomain(db, str(slug).strip().lower()) if slug else None
        if tenant is None:
            # the slug is part of the payload; a missing one is a validation error
            if not slug:
                validate_payload(QuizSubmission, payload)
            raise NotFound("Tenant not found")
        self.guard.check_quota(tenant)
        data = validate_payload(QuizSubmission, payload)

        questions = get_quiz_questions(db, tenant.org_id)
        if not questions:
            raise ValidationFailed("No quiz questions found for this tenant")

        contact_q = next((q for q in questions if q.question_type == "contact_info"), None)
        raw_contact = data.responses.get(contact_q.id) if contact_q else None
        responses: List[ScoredResponse] = [
            ScoredResponse(
                question_id=q.id,
                question_number=q.question_number,
                answer=data.responses.get(q.id),
                points_earned=points_for_answer(q, data.responses.get(q.id)),
            )
            for q in questions
        ]
        contact = _contact_from_answer(raw_contact)
        _require_contact(contact, "Missing required contact information (email and name)")

        engine = ScoringEngine.for_questions(questions, name=tenant.subdomain)
        result = engine.score(responses)
        ai_enabled = bool((tenant.settings or {}).get("enable_ai_research"))

        org = OrgDb(db, tenant.org_id, QUIZ_USER_ID)
        message = f"Quiz submission - Readiness Score: {result.percentage_score}% ({result.tier.value})"
        return self._admit(
            org, tenant, contact, message, responses, result,
            start_workflow=ai_enabled and result.action is TierAction.AI_WORKFLOW,
        )

    def submit_form(self, db: Session, client: ClientInfo, payload: Any, auth: AuthContext) -> Admission:
        self.guard.screen(client, RATE_LIMITS["form_submit"])
        org_id = auth.require_org()
        tenant = require_tenant_by_org_id(db, org_id)
        self.guard.check_quota(tenant)
        data = validate_payload(FormSubmission, payload)

        org = OrgDb(db, org_id, auth.user_id)
        contact = ContactInfo(name=data.name, email=data.email, company=data.company or "", phone=data.phone or "")
        return self._admit(org, tenant, contact, data.message, [], None, start_workflow=True)

    # ---- shared write path ----
    def _admit(
        self,
        org: OrgDb,
        tenant: Tenant,
        contact: ContactInfo,
        message: str,
        responses: List[ScoredResponse],
        result: Optional[ScoreResult],
        start_workflow: bool,
    ) -> Admission:
        db = org.db
        try:
            quota.consume(db, tenant.id)
            lead = org.leads.create(
                name=contact.name.strip(),
                email=contact.email.strip(),
                company=contact.company or None,
                phone=contact.phone or None,
                message=message,
                status="pending",
            )
            if responses:
                org.leads.add_responses(lead, responses)
            score = org.leads.add_score(lead, result) if result is not None else None
            workflow = org.workflows.create(lead.id, status="running") if start_workflow else None
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(
            "Lead created id=%s org=%s tier=%s score=%s workflow=%s",
            lead.id, org.org_id,
            result.tier.value if result else None,
            result.percentage_score if result else None,
            bool(workflow),
        )
        admission = Admission(
            lead=lead,
            score=score,
            result=result,
            action=result.action if result else None,
            workflow=workflow,
        )
        if workflow is not None:
            admission.dispatch = self._dispatch(lead, score, workflow, tenant)
        return admission

    def _dispatch(self, lead: Lead, score: Optional[LeadScore], workflow: Workflow, tenant: Tenant) -> Optional[Future]:
        payload = lead_snapshot(lead, score, workflow.id)
        payload["tenantId"] = tenant.id
        payload["tenantSettings"] = dict(tenant.settings or {})
        try:
            return self.dispatcher.dispatch(payload)
        except Exception:
            # the lead is committed; a dispatch problem never fails the submission
            logger.exception("Could not submit workflow for lead=%s", lead.id)
            return None

    def _alert_sales(self, admission: Admission, contact: ContactInfo) -> None:
        if self.notifier is None:
            return
        result = admission.result
        alert = SalesAlert(
            lead_id=admission.lead.id,
            name=contact.name,
            email=contact.email,
            company=contact.company,
            title=contact.title,
            score=result.percentage_score if result else 0,
            tier=result.tier.value if result else "",
            highlights=[f"{k}: {v:g}" for k, v in (result.breakdown.items() if result else [])],
        )
        try:
            self.dispatcher.submit(self.notifier.notify_sales_team, alert)
        except Exception:
            logger.exception("Could not queue sales alert for lead=%s", admission.lead.id)


def _scored(data: AssessmentSubmission) -> List[ScoredResponse]:
    return [
        ScoredResponse(
            question_id=a.question_id,
            question_number=a.question_number,
            answer=a.answer,
            points_earned=a.points_earned,
        )
        for a in data.responses
    ]


def _contact_from_answer(answer: Any) -> ContactInfo:
    if not isinstance(answer, dict):
        return ContactInfo()
    return extract_contact_info([ScoredResponse(question_id="contact", question_number=1, answer=answer)])


def _require_contact(contact: ContactInfo, reason: str) -> ContactInfo:
    if not contact.is_complete:
        raise ValidationFailed(reason, field="contact")
    return contact
