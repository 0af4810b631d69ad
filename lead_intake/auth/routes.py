# lead_intake/auth/routes.py
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from lead_intake.auth.permissions import AuthContext, get_auth_context, permissions_for
from lead_intake.auth.security import verify_password
from lead_intake.core.db import get_db
from lead_intake.core.errors import AuthenticationRequired
from lead_intake.models.orm import User

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("intake.auth.routes")


class LoginIn(BaseModel):
    username: str
    password: str


@router.post("/login")
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    user = db.scalars(select(User).where(User.username == payload.username).limit(1)).first()

    if not user or not user.is_active:
        logger.info("Login failed for user '%s' (not found or inactive)", payload.username)
        raise AuthenticationRequired("Invalid credentials")

    if not verify_password(payload.password, user.hashed_password):
        logger.info("Login failed for user '%s' (invalid password)", payload.username)
        raise AuthenticationRequired("Invalid credentials")

    user.last_login = datetime.utcnow()
    db.commit()

    token = request.app.state.token_issuer.create_token(
        {
            "sub": user.id,
            "username": user.username,
            "org_id": user.org_id,
            "org_role": f"org:{user.role}",
        }
    )
    logger.info("Login success for user '%s' (org=%s role=%s)", user.username, user.org_id, user.role)

    return {
        "token": token,
        "user": {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "role": user.role,
            "org_id": user.org_id,
        },
    }


@router.get("/me")
def me(auth: AuthContext = Depends(get_auth_context)):
    return {
        "user_id": auth.user_id,
        "org_id": auth.org_id,
        "role": auth.role.value if auth.role else None,
        "permissions": sorted(p.value for p in permissions_for(auth.role)),
    }
