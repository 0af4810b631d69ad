# lead_intake/api/submit.py
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from lead_intake.api.deps import client_info, get_intake
from lead_intake.auth.permissions import AuthContext, get_auth_context
from lead_intake.core.db import get_db
from lead_intake.services.bot_detection import ClientInfo
from lead_intake.services.intake import IntakeService

router = APIRouter(prefix="/api", tags=["submit"])


@router.post("/submit")
def submit_form(
    payload: Any = Body(default=None),
    auth: AuthContext = Depends(get_auth_context),
    client: ClientInfo = Depends(client_info),
    intake: IntakeService = Depends(get_intake),
    db: Session = Depends(get_db),
):
    """Contact form submitted from inside the dashboard; the lead lands in the caller's org."""
    admission = intake.submit_form(db, client, payload, auth)
    return {"success": True, "message": "Form submitted successfully", "leadId": admission.lead.id}
