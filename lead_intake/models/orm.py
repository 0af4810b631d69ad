# lead_intake/models/orm.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lead_intake.core.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------- Tenants ----------
class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    # organization identifier carried in tokens and on every scoped row
    org_id: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    # e.g., "acme" for acme.example.com
    subdomain: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    custom_domain: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(160))

    # {logo_url, primary_color, secondary_color, font_family}
    branding: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    # {enable_ai_research, qualification_threshold, email_from_name, email_from_address}
    settings: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    subscription_tier: Mapped[str] = mapped_column(String(20), default="starter")
    # NULL means unbounded
    monthly_lead_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    usage_this_month: Mapped[int] = mapped_column(Integer, default=0)
    usage_reset_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "subscription_tier IN ('starter', 'pro', 'enterprise')", name="chk_tenants_tier"
        ),
        CheckConstraint("usage_this_month >= 0", name="chk_tenants_usage"),
    )


# ---------- Quiz questions (per tenant) ----------
class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(String(80), index=True)
    question_number: Mapped[int] = mapped_column(Integer)
    question_type: Mapped[str] = mapped_column(String(20))
    question_text: Mapped[str] = mapped_column(Text)
    question_subtext: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # [{value, label, score}]
    options: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)
    scoring_weight: Mapped[float] = mapped_column(Float, default=1.0)
    is_required: Mapped[bool] = mapped_column(Boolean, default=True)
    placeholder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    min_selections: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "question_number", name="uq_quiz_questions_org_number"),
        CheckConstraint(
            "question_type IN ('contact_info', 'multiple_choice', 'checkbox', 'text')",
            name="chk_quiz_questions_type",
        ),
    )


# ---------- Leads ----------
class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(String(80), index=True)
    # creating actor; the system user for public submissions
    user_id: Mapped[str] = mapped_column(String(80))

    name: Mapped[str] = mapped_column(String(160))
    email: Mapped[str] = mapped_column(String(255), index=True)
    company: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # pending -> approved | rejected
    status: Mapped[str] = mapped_column(String(20), default="pending")
    qualification_category: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    qualification_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email_draft: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    research_results: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # soft delete
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    deletion_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    responses: Mapped[list["QuizResponse"]] = relationship(
        "QuizResponse", back_populates="lead", cascade="all, delete-orphan",
        order_by="QuizResponse.question_number",
    )
    score: Mapped[Optional["LeadScore"]] = relationship(
        "LeadScore", back_populates="lead", cascade="all, delete-orphan", uselist=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="chk_leads_status"),
        Index("ix_leads_org_status", "org_id", "status"),
        Index("ix_leads_org_deleted", "org_id", "deleted_at"),
    )


# ---------- Quiz responses (immutable once written) ----------
class QuizResponse(Base):
    __tablename__ = "quiz_responses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(String(80), index=True)
    lead_id: Mapped[str] = mapped_column(ForeignKey("leads.id", ondelete="CASCADE"), index=True)
    question_id: Mapped[str] = mapped_column(String(80))
    question_number: Mapped[int] = mapped_column(Integer)
    answer: Mapped[Any] = mapped_column(JSON)
    points_earned: Mapped[float] = mapped_column(Float, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    lead: Mapped[Lead] = relationship("Lead", back_populates="responses")


# ---------- Lead scores (one per lead) ----------
class LeadScore(Base):
    __tablename__ = "lead_scores"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(String(80), index=True)
    lead_id: Mapped[str] = mapped_column(
        ForeignKey("leads.id", ondelete="CASCADE"), unique=True, index=True
    )
    readiness_score: Mapped[int] = mapped_column(Integer)
    # back-filled later by the research workflow
    qualification_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_points: Mapped[float] = mapped_column(Float)
    max_possible_points: Mapped[float] = mapped_column(Float)
    tier: Mapped[str] = mapped_column(String(20), index=True)
    scoring_breakdown: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    lead: Mapped[Lead] = relationship("Lead", back_populates="score")

    __table_args__ = (
        CheckConstraint(
            "readiness_score >= 0 AND readiness_score <= 100", name="chk_lead_scores_range"
        ),
    )


# ---------- Workflows ----------
class Workflow(Base):
    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(String(80), index=True)
    # non-owning reference; the lead outlives its workflows
    lead_id: Mapped[str] = mapped_column(ForeignKey("leads.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(20), default="running")
    email_draft: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    research_results: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    approved_by: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    rejected_by: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    deletion_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('running', 'completed', 'failed')", name="chk_workflows_status"
        ),
        Index("ix_workflows_org_lead", "org_id", "lead_id"),
    )


# ---------- Knowledge base ----------
class KnowledgeBaseDoc(Base):
    __tablename__ = "knowledge_base_docs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    org_id: Mapped[str] = mapped_column(String(80), index=True)
    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(Text, default="")

    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    deletion_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


# ---------- Users (local identity) ----------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(160), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    org_id: Mapped[str] = mapped_column(String(80), index=True)
    # admin | manager | member
    role: Mapped[str] = mapped_column(String(20), default="member")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'manager', 'member')", name="chk_users_role"),
        Index("ix_users_org_active", "org_id", "is_active"),
    )
