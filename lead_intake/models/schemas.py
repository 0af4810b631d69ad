# lead_intake/models/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = r"^[\w\.\+-]+@[\w\.-]+\.\w+$"


# ---------- Submissions ----------
class AssessmentAnswer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(..., alias="questionId", min_length=1)
    question_number: int = Field(..., alias="questionNumber", ge=1)
    answer: Any = None
    points_earned: float = Field(0, alias="pointsEarned", ge=0)

    @field_validator("question_id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v) if isinstance(v, int) else v


class AssessmentSubmission(BaseModel):
    responses: List[AssessmentAnswer] = Field(..., min_length=1)


class QuizSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tenant_slug: str = Field(..., alias="tenantSlug", min_length=1, max_length=80)
    # question id -> answer
    responses: Dict[str, Any] = Field(..., min_length=1)


class FormSubmission(BaseModel):
    name: str = Field(..., min_length=1, max_length=160)
    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    company: Optional[str] = Field(None, max_length=160)
    phone: Optional[str] = Field(None, max_length=40)
    message: str = Field(..., min_length=1, max_length=5000)


# ---------- Lead management ----------
class LeadUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=160)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN, max_length=255)
    company: Optional[str] = Field(None, max_length=160)
    phone: Optional[str] = Field(None, max_length=40)
    message: Optional[str] = None
    qualification_category: Optional[str] = Field(None, alias="qualificationCategory", max_length=40)
    qualification_reason: Optional[str] = Field(None, alias="qualificationReason")


class DeleteIn(BaseModel):
    """Optional body for soft deletes of any org-owned row."""
    reason: Optional[str] = Field(None, max_length=500)


class DecisionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["approve", "reject"]
    email_draft: Optional[str] = Field(None, alias="emailDraft")


class WorkflowResultIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["completed", "failed"]
    research_results: Optional[Dict[str, Any]] = Field(None, alias="researchResults")
    email_draft: Optional[str] = Field(None, alias="emailDraft")
    qualification_category: Optional[str] = Field(None, alias="qualificationCategory")
    qualification_reason: Optional[str] = Field(None, alias="qualificationReason")
    qualification_score: Optional[int] = Field(None, alias="qualificationScore", ge=0, le=100)


class RetentionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    older_than_days: Optional[int] = Field(None, alias="olderThanDays", ge=0)


class TierIn(BaseModel):
    tier: Literal["starter", "pro", "enterprise"]


# ---------- Responses ----------
class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    org_id: str
    user_id: str
    name: str
    email: str
    company: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    status: str
    qualification_category: Optional[str] = None
    qualification_reason: Optional[str] = None
    email_draft: Optional[str] = None
    research_results: Optional[Dict[str, Any]] = None
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class WorkflowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    org_id: str
    lead_id: str
    status: str
    email_draft: Optional[str] = None
    research_results: Optional[Dict[str, Any]] = None
    approved_by: Optional[str] = None
    rejected_by: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class QuizQuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    question_number: int
    question_type: str
    question_text: str
    question_subtext: Optional[str] = None
    options: Optional[List[Dict[str, Any]]] = None
    scoring_weight: float
    is_required: bool
    placeholder: Optional[str] = None
    min_selections: Optional[int] = None


class PublicQuestionOut(QuizQuestionOut):
    """Questions as shown to prospects: option scores stripped."""

    @field_validator("options", mode="after")
    @classmethod
    def _strip_scores(cls, v):
        if not v:
            return v
        return [{k: o[k] for k in o if k != "score"} for o in v]


class TenantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    org_id: str
    subdomain: str
    name: str
    branding: Dict[str, Any] = Field(default_factory=dict)
