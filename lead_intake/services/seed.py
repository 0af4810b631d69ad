# lead_intake/services/seed.py
"""
Bootstrap data: the two built-in tenants, their question sets, and a first
admin user. Every function here is idempotent; existing rows are left alone.
"""

import json
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from lead_intake.auth.security import hash_password
from lead_intake.models.orm import QuizQuestion, Tenant, User
from lead_intake.services.quota import SUBSCRIPTION_TIERS
from lead_intake.services.tenants import get_quiz_questions, get_tenant_by_org_id

logger = logging.getLogger("intake.seed")

DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data")
ASSESSMENT_QUESTIONS_PATH = os.path.join(DATA_DIR, "assessment_questions.json")
DEMO_QUESTIONS_PATH = os.path.join(DATA_DIR, "demo_questions.json")


def load_questions(path: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def default_tenant(org_id: str) -> Dict[str, Any]:
    return {
        "org_id": org_id,
        "subdomain": "assessment",
        "name": "Help Desk Assessment",
        "branding": {"primary_color": "#1E40AF", "secondary_color": "#F59E0B", "font_family": "Inter"},
        "settings": {
            "enable_ai_research": True,
            "qualification_threshold": 60,
            "email_from_name": "Help Desk Assessment",
        },
        "subscription_tier": "enterprise",
    }


def demo_tenant(org_id: str) -> Dict[str, Any]:
    return {
        "org_id": org_id,
        "subdomain": "demo",
        "name": "Lead Agent Demo",
        "branding": {"primary_color": "#3B82F6", "secondary_color": "#10B981", "font_family": "Inter"},
        # demo leads go to the sales team, not to research
        "settings": {"enable_ai_research": False, "email_from_name": "Lead Agent Demo"},
        "subscription_tier": "enterprise",
    }


def ensure_tenant(db: Session, fields: Dict[str, Any]) -> Tenant:
    tenant = get_tenant_by_org_id(db, fields["org_id"])
    if tenant is not None:
        logger.info("Tenant %s already exists (id=%s)", tenant.org_id, tenant.id)
        return tenant
    fields = dict(fields)
    tier = SUBSCRIPTION_TIERS[fields.get("subscription_tier", "starter")]
    tenant = Tenant(
        monthly_lead_limit=tier.lead_limit,
        usage_this_month=0,
        usage_reset_at=datetime.utcnow(),
        **fields,
    )
    db.add(tenant)
    db.flush()
    logger.info("Created tenant %s (subdomain=%s)", tenant.org_id, tenant.subdomain)
    return tenant


def ensure_questions(db: Session, org_id: str, questions: List[Dict[str, Any]]) -> int:
    """Insert the question set unless the tenant already has one. Returns rows added."""
    if get_quiz_questions(db, org_id):
        logger.info("Questions for %s already seeded; skipping", org_id)
        return 0
    for q in questions:
        db.add(QuizQuestion(
            org_id=org_id,
            question_number=q["question_number"],
            question_type=q["question_type"],
            question_text=q["question_text"],
            question_subtext=q.get("question_subtext"),
            options=q.get("options"),
            scoring_weight=float(q.get("scoring_weight", 1)),
            is_required=q.get("is_required", True),
            placeholder=q.get("placeholder"),
            min_selections=q.get("min_selections"),
        ))
    db.flush()
    logger.info("Seeded %d questions for %s", len(questions), org_id)
    return len(questions)


def ensure_user(
    db: Session,
    org_id: str,
    username: str,
    email: str,
    password: str,
    role: str = "admin",
) -> User:
    user = db.query(User).filter(User.username == username).first()
    if user is not None:
        logger.info("User %s already exists", username)
        return user
    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        org_id=org_id,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.flush()
    logger.info("Created %s user %s in %s", role, username, org_id)
    return user


def seed_defaults(db: Session, default_org_id: str, demo_org_id: str) -> Dict[str, Tenant]:
    """Create both built-in tenants with their question sets. Caller commits."""
    default = ensure_tenant(db, default_tenant(default_org_id))
    ensure_questions(db, default.org_id, load_questions(ASSESSMENT_QUESTIONS_PATH))
    demo = ensure_tenant(db, demo_tenant(demo_org_id))
    ensure_questions(db, demo.org_id, load_questions(DEMO_QUESTIONS_PATH))
    return {"default": default, "demo": demo}


def seed_admin(db: Session, org_id: str, password: Optional[str] = None) -> User:
    return ensure_user(db, org_id, "admin", "admin@example.com", password or "admin123", role="admin")
