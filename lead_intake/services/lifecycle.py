# lead_intake/services/lifecycle.py
"""
Lead lifecycle: pending -> approved | rejected.

Both outcomes are terminal. A decision updates the lead and closes out the
lead's most recent workflow in the same transaction; on approval the email
draft is handed to the notifier after commit.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from lead_intake.core.errors import LeadStateConflict, NotFound, ValidationFailed
from lead_intake.models.orm import Lead, Workflow
from lead_intake.services.notifications import EmailMessage, Notifier
from lead_intake.services.repository import OrgDb

logger = logging.getLogger("intake.lifecycle")


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


TERMINAL_STATUSES = frozenset({"approved", "rejected"})


@dataclass
class DecisionOutcome:
    lead: Lead
    workflow: Optional[Workflow]
    notified: bool = False


def approval_subject(lead: Lead) -> str:
    if lead.company:
        return f"Following up on your assessment, {lead.company}"
    return "Following up on your assessment"


class LeadLifecycle:
    def __init__(self, org_db: OrgDb, notifier: Optional[Notifier] = None):
        self.org_db = org_db
        self.notifier = notifier

    def decide(self, lead_id: str, action: Any, email_draft: Optional[str], actor: str) -> DecisionOutcome:
        try:
            decision = Decision(action)
        except ValueError:
            raise ValidationFailed("action must be 'approve' or 'reject'", field="action")

        draft = (email_draft or "").strip()
        if decision is Decision.APPROVE and not draft:
            raise ValidationFailed("Email draft is required for approval", field="emailDraft")

        leads = self.org_db.leads
        lead = leads.find_by_id(lead_id)
        if lead is None:
            raise NotFound("Lead not found")
        if lead.status in TERMINAL_STATUSES:
            raise LeadStateConflict(f"Lead is already {lead.status}")

        workflow = self.org_db.workflows.latest_for_lead(lead.id)
        now = datetime.utcnow()

        if decision is Decision.APPROVE:
            leads.update(lead.id, status="approved", email_draft=draft)
            if workflow is not None:
                self.org_db.workflows.update(
                    workflow.id, status="completed", completed_at=now, approved_by=actor, email_draft=draft
                )
        else:
            leads.update(lead.id, status="rejected")
            if workflow is not None:
                self.org_db.workflows.update(
                    workflow.id, status="completed", completed_at=now, rejected_by=actor
                )

        self.org_db.db.commit()
        logger.info(
            "Lead %s %s by %s org=%s workflow=%s",
            lead.id, lead.status, actor, self.org_db.org_id, workflow.id if workflow else None,
        )

        notified = False
        if decision is Decision.APPROVE and self.notifier is not None:
            notified = self.notifier.send_email(
                EmailMessage(to=lead.email, subject=approval_subject(lead), body=draft)
            )
        return DecisionOutcome(lead=lead, workflow=workflow, notified=notified)

    def approval_view(self, lead_id: str) -> Dict[str, Any]:
        """What a reviewer needs to decide: lead, score and the latest draft."""
        lead = self.org_db.leads.find_by_id(lead_id)
        if lead is None:
            raise NotFound("Lead not found")
        workflow = self.org_db.workflows.latest_for_lead(lead.id)
        draft = (workflow.email_draft if workflow else None) or lead.email_draft
        if not draft:
            raise NotFound("No email draft available for this lead")
        score = self.org_db.leads.score_for(lead.id)
        return {
            "lead": lead,
            "tier": score.tier if score else None,
            "readinessScore": score.readiness_score if score else None,
            "emailDraft": draft,
            "researchResults": (workflow.research_results if workflow else None) or lead.research_results,
            "workflowId": workflow.id if workflow else None,
        }

    def record_result(
        self,
        workflow_id: str,
        status: str,
        research_results: Optional[Dict[str, Any]] = None,
        email_draft: Optional[str] = None,
        qualification_category: Optional[str] = None,
        qualification_reason: Optional[str] = None,
        qualification_score: Optional[int] = None,
    ) -> Workflow:
        """Store what the research workflow produced on the workflow and its lead."""
        if status not in ("completed", "failed"):
            raise ValidationFailed("status must be 'completed' or 'failed'", field="status")
        wf = self.org_db.workflows.find_by_id(workflow_id)
        if wf is None:
            raise NotFound("Workflow not found")

        lead = self.org_db.leads.find_by_id(wf.lead_id)
        if wf.approved_by or wf.rejected_by or (lead is not None and lead.status in TERMINAL_STATUSES):
            # a reviewer already closed this workflow; keep their draft
            logger.info("Workflow %s already decided; ignoring late result status=%s", wf.id, status)
            return wf

        self.org_db.workflows.update(
            wf.id,
            status=status,
            completed_at=datetime.utcnow(),
            research_results=research_results,
            email_draft=email_draft,
        )
        if lead is not None and lead.status == "pending":
            self.org_db.leads.update(
                lead.id,
                research_results=research_results,
                email_draft=email_draft,
                qualification_category=qualification_category,
                qualification_reason=qualification_reason,
            )
            if qualification_score is not None:
                score = self.org_db.leads.score_for(lead.id)
                if score is not None:
                    score.qualification_score = max(0, min(100, int(qualification_score)))
        self.org_db.db.commit()
        logger.info("Workflow %s result recorded status=%s draft=%s", wf.id, status, bool(email_draft))
        return wf
