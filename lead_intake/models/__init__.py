# Make `from lead_intake.models import Lead, Tenant` work
from .orm import (  # noqa: F401
    KnowledgeBaseDoc,
    Lead,
    LeadScore,
    QuizQuestion,
    QuizResponse,
    Tenant,
    User,
    Workflow,
)
