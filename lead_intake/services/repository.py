# lead_intake/services/repository.py
"""
Organization-scoped data access.

Every query built here carries `org_id == <scope>`; there is no method that
takes an org id from its caller. A row belonging to another organization is
reported exactly like a row that does not exist (None / empty), so callers
cannot tell the two apart.

Writes are flushed, not committed: the caller owns the transaction.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lead_intake.auth.permissions import AuthContext, Permission
from lead_intake.core.errors import NotFound, TenantContextMissing, ValidationFailed
from lead_intake.models.orm import KnowledgeBaseDoc, Lead, LeadScore, QuizResponse, Workflow
from lead_intake.services.scoring import ScoredResponse, ScoreResult

logger = logging.getLogger("intake.repository")

LEAD_STATUSES = ("pending", "approved", "rejected")
WORKFLOW_STATUSES = ("running", "completed", "failed")


class _ScopedTable:
    model: Any = None
    # columns a caller may never set directly
    protected = frozenset({"id", "org_id", "user_id", "created_at", "deleted_at", "deleted_by"})
    write_permission = Permission.LEADS_WRITE
    delete_permission = Permission.LEADS_DELETE

    def __init__(self, org: "OrgDb"):
        self.org = org
        self.db = org.db

    # ---- query helpers ----
    def _select(self, include_deleted: bool = False):
        stmt = select(self.model).where(self.model.org_id == self.org.org_id)
        if not include_deleted:
            stmt = stmt.where(self.model.deleted_at.is_(None))
        return stmt

    def _check_fields(self, fields: Dict[str, Any]) -> None:
        columns = set(self.model.__table__.columns.keys())
        for key in fields:
            if key in self.protected:
                raise ValidationFailed(f"{key} cannot be set by the caller", field=key)
            if key not in columns:
                raise ValidationFailed(f"unknown field {key}", field=key)

    # ---- reads ----
    def find_many(self, include_deleted: bool = False, limit: Optional[int] = None) -> List[Any]:
        stmt = self._select(include_deleted).order_by(self.model.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt))

    def find_by_id(self, row_id: str, include_deleted: bool = False) -> Optional[Any]:
        stmt = self._select(include_deleted).where(self.model.id == row_id).limit(1)
        return self.db.scalars(stmt).first()

    def find_deleted(self) -> List[Any]:
        stmt = (
            select(self.model)
            .where(self.model.org_id == self.org.org_id, self.model.deleted_at.is_not(None))
            .order_by(self.model.deleted_at.desc())
        )
        return list(self.db.scalars(stmt))

    # ---- writes ----
    def update(self, row_id: str, **fields) -> Optional[Any]:
        self.org.guard(self.write_permission)
        self._check_fields(fields)
        obj = self.find_by_id(row_id)
        if obj is None:
            return None
        for k, v in fields.items():
            setattr(obj, k, v)
        self.db.flush()
        return obj

    def delete(self, row_id: str) -> Optional[Any]:
        """Physical delete. Returns the removed row, or None if not visible."""
        self.org.guard(self.delete_permission)
        obj = self.find_by_id(row_id)
        if obj is None:
            return None
        self._before_delete([obj.id])
        self.db.delete(obj)
        self.db.flush()
        return obj

    def soft_delete(self, row_id: str, reason: Optional[str] = None) -> Optional[Any]:
        self.org.guard(self.delete_permission)
        obj = self.find_by_id(row_id)
        if obj is None:
            return None
        obj.deleted_at = datetime.utcnow()
        obj.deleted_by = self.org.user_id
        obj.deletion_reason = reason
        self.db.flush()
        logger.info("Soft-deleted %s id=%s org=%s by=%s", self.model.__tablename__, obj.id, self.org.org_id, self.org.user_id)
        return obj

    def restore(self, row_id: str) -> Optional[Any]:
        self.org.guard(self.delete_permission)
        obj = self.find_by_id(row_id, include_deleted=True)
        if obj is None:
            return None
        obj.deleted_at = None
        obj.deleted_by = None
        obj.deletion_reason = None
        self.db.flush()
        return obj

    def purge(self, cutoff: datetime) -> Tuple[int, int]:
        """Delete soft-deleted rows older than cutoff. Returns (rows, dependent rows)."""
        stmt = select(self.model).where(
            self.model.org_id == self.org.org_id,
            self.model.deleted_at.is_not(None),
            self.model.deleted_at < cutoff,
        )
        rows = list(self.db.scalars(stmt))
        if not rows:
            return 0, 0
        dependents = self._before_delete([r.id for r in rows])
        for r in rows:
            self.db.delete(r)
        self.db.flush()
        return len(rows), dependents

    def _before_delete(self, ids: List[str]) -> int:
        return 0


class LeadTable(_ScopedTable):
    model = Lead

    def create(self, **fields) -> Lead:
        self.org.guard(self.write_permission)
        self._check_fields(fields)
        obj = Lead(org_id=self.org.org_id, user_id=self.org.user_id, **fields)
        self.db.add(obj)
        self.db.flush()
        return obj

    def find_many(self, status: Optional[str] = None, include_deleted: bool = False, limit: Optional[int] = None) -> List[Lead]:
        if status is None:
            return super().find_many(include_deleted=include_deleted, limit=limit)
        return self.find_by_status(status, limit=limit)

    def find_by_status(self, status: str, limit: Optional[int] = None) -> List[Lead]:
        if status not in LEAD_STATUSES:
            raise ValidationFailed(f"invalid status {status}", field="status")
        stmt = self._select().where(Lead.status == status).order_by(Lead.created_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt))

    def count_by_status(self) -> Dict[str, int]:
        stmt = (
            select(Lead.status, func.count(Lead.id))
            .where(Lead.org_id == self.org.org_id, Lead.deleted_at.is_(None))
            .group_by(Lead.status)
        )
        counts = {s: 0 for s in LEAD_STATUSES}
        for status, n in self.db.execute(stmt):
            counts[status] = n
        counts["total"] = sum(counts[s] for s in LEAD_STATUSES)
        return counts

    # ---- intake children ----
    def add_responses(self, lead: Lead, responses: Iterable[ScoredResponse]) -> List[QuizResponse]:
        rows = [
            QuizResponse(
                org_id=self.org.org_id,
                lead_id=lead.id,
                question_id=str(r.question_id),
                question_number=r.question_number,
                answer=r.answer,
                points_earned=r.points_earned or 0,
            )
            for r in responses
        ]
        self.db.add_all(rows)
        self.db.flush()
        return rows

    def add_score(self, lead: Lead, result: ScoreResult) -> LeadScore:
        row = LeadScore(
            org_id=self.org.org_id,
            lead_id=lead.id,
            readiness_score=result.percentage_score,
            qualification_score=None,
            total_points=result.total_points,
            max_possible_points=result.max_possible_points,
            tier=result.tier.value,
            scoring_breakdown=dict(result.breakdown),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def score_for(self, lead_id: str) -> Optional[LeadScore]:
        stmt = select(LeadScore).where(LeadScore.org_id == self.org.org_id, LeadScore.lead_id == lead_id).limit(1)
        return self.db.scalars(stmt).first()

    def responses_for(self, lead_id: str) -> List[QuizResponse]:
        stmt = (
            select(QuizResponse)
            .where(QuizResponse.org_id == self.org.org_id, QuizResponse.lead_id == lead_id)
            .order_by(QuizResponse.question_number)
        )
        return list(self.db.scalars(stmt))

    def _before_delete(self, ids: List[str]) -> int:
        # workflows are not owned by the lead relationship; drop them explicitly
        stmt = select(Workflow).where(Workflow.org_id == self.org.org_id, Workflow.lead_id.in_(ids))
        workflows = self.db.scalars(stmt).all()
        for wf in workflows:
            self.db.delete(wf)
        self.db.flush()
        return len(workflows)


class WorkflowTable(_ScopedTable):
    model = Workflow
    protected = _ScopedTable.protected | {"lead_id"}
    delete_permission = Permission.WORKFLOWS_CANCEL

    def create(self, lead_id: str, **fields) -> Workflow:
        self.org.guard(self.write_permission)
        self._check_fields(fields)
        if self.org.leads.find_by_id(lead_id) is None:
            raise NotFound("Lead not found")
        obj = Workflow(org_id=self.org.org_id, lead_id=lead_id, **fields)
        self.db.add(obj)
        self.db.flush()
        return obj

    def find_by_lead_id(self, lead_id: str) -> List[Workflow]:
        stmt = self._select().where(Workflow.lead_id == lead_id).order_by(Workflow.created_at.desc())
        return list(self.db.scalars(stmt))

    def latest_for_lead(self, lead_id: str) -> Optional[Workflow]:
        stmt = (
            self._select()
            .where(Workflow.lead_id == lead_id)
            .order_by(Workflow.created_at.desc(), Workflow.id.desc())
            .limit(1)
        )
        return self.db.scalars(stmt).first()

    def find_by_status(self, status: str) -> List[Workflow]:
        if status not in WORKFLOW_STATUSES:
            raise ValidationFailed(f"invalid status {status}", field="status")
        stmt = self._select().where(Workflow.status == status).order_by(Workflow.created_at.desc())
        return list(self.db.scalars(stmt))


class KnowledgeBaseTable(_ScopedTable):
    model = KnowledgeBaseDoc
    write_permission = Permission.ORG_MANAGE
    delete_permission = Permission.ORG_MANAGE

    def create(self, **fields) -> KnowledgeBaseDoc:
        self.org.guard(self.write_permission)
        self._check_fields(fields)
        obj = KnowledgeBaseDoc(org_id=self.org.org_id, **fields)
        self.db.add(obj)
        self.db.flush()
        return obj


class OrgDb:
    """
    Data access bound to one organization and one acting user.

    When built from an AuthContext, mutations also check the caller's
    permissions; system actors (public intake) are built without one.
    """

    def __init__(self, db: Session, org_id: Optional[str], user_id: Optional[str], auth: Optional[AuthContext] = None):
        if not org_id:
            raise TenantContextMissing()
        if not user_id:
            raise TenantContextMissing("No user context")
        self.db = db
        self.org_id = org_id
        self.user_id = user_id
        self.auth = auth
        self.leads = LeadTable(self)
        self.workflows = WorkflowTable(self)
        self.knowledge_base = KnowledgeBaseTable(self)

    @classmethod
    def for_auth(cls, db: Session, auth: AuthContext) -> "OrgDb":
        return cls(db, auth.org_id, auth.user_id, auth=auth)

    def guard(self, permission: Permission) -> None:
        if self.auth is not None:
            self.auth.require_permission(permission)

    def purge_deleted(self, older_than_days: int = 90, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Physically remove this organization's rows soft-deleted more than
        `older_than_days` ago. Running it again with nothing eligible is a no-op.
        """
        if older_than_days < 0:
            raise ValidationFailed("older_than_days must be >= 0", field="olderThanDays")
        self.guard(Permission.ORG_MANAGE)
        cutoff = (now or datetime.utcnow()) - timedelta(days=older_than_days)
        workflows, _ = self.workflows.purge(cutoff)
        docs, _ = self.knowledge_base.purge(cutoff)
        # workflows of a purged lead are removed with it and counted here too
        leads, lead_workflows = self.leads.purge(cutoff)
        counts = {"leads": leads, "workflows": workflows + lead_workflows, "knowledge_base_docs": docs}
        if any(counts.values()):
            logger.info("Purged soft-deleted rows org=%s cutoff=%s counts=%s", self.org_id, cutoff.isoformat(), counts)
        return counts
