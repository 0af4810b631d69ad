# lead_intake/api/workflows.py
from typing import List, Optional

from fastapi import APIRouter, Depends

from lead_intake.api.deps import org_db
from lead_intake.auth.permissions import AuthContext, Permission, require_permission
from lead_intake.core.errors import NotFound
from lead_intake.models.schemas import WorkflowOut, WorkflowResultIn
from lead_intake.services.lifecycle import LeadLifecycle
from lead_intake.services.repository import OrgDb

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


@router.get("", response_model=List[WorkflowOut])
def list_workflows(
    status: Optional[str] = None,
    lead_id: Optional[str] = None,
    auth: AuthContext = Depends(require_permission(Permission.WORKFLOWS_READ)),
    org: OrgDb = Depends(org_db),
):
    if lead_id:
        return org.workflows.find_by_lead_id(lead_id)
    if status:
        return org.workflows.find_by_status(status)
    return org.workflows.find_many()


@router.get("/{workflow_id}", response_model=WorkflowOut)
def get_workflow(
    workflow_id: str,
    auth: AuthContext = Depends(require_permission(Permission.WORKFLOWS_READ)),
    org: OrgDb = Depends(org_db),
):
    wf = org.workflows.find_by_id(workflow_id)
    if wf is None:
        raise NotFound("Workflow not found")
    return wf


@router.put("/{workflow_id}/result", response_model=WorkflowOut)
def record_result(
    workflow_id: str,
    payload: WorkflowResultIn,
    auth: AuthContext = Depends(require_permission(Permission.LEADS_WRITE)),
    org: OrgDb = Depends(org_db),
):
    """Called by the workflow runner (with a service token) when research is done."""
    return LeadLifecycle(org).record_result(
        workflow_id,
        status=payload.status,
        research_results=payload.research_results,
        email_draft=payload.email_draft,
        qualification_category=payload.qualification_category,
        qualification_reason=payload.qualification_reason,
        qualification_score=payload.qualification_score,
    )
