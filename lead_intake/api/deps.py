# lead_intake/api/deps.py
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from lead_intake.auth.permissions import AuthContext, require_org_user
from lead_intake.core.config import Settings
from lead_intake.core.db import get_db
from lead_intake.services.bot_detection import ClientInfo
from lead_intake.services.intake import IntakeService
from lead_intake.services.notifications import Notifier
from lead_intake.services.rate_limit import get_client_ip
from lead_intake.services.repository import OrgDb


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_intake(request: Request) -> IntakeService:
    return request.app.state.intake


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def client_info(request: Request) -> ClientInfo:
    peer = request.client.host if request.client else None
    return ClientInfo(ip=get_client_ip(request.headers, peer), headers=request.headers)


def org_db(auth: AuthContext = Depends(require_org_user), db: Session = Depends(get_db)) -> OrgDb:
    return OrgDb.for_auth(db, auth)
