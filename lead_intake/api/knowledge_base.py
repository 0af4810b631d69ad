# lead_intake/api/knowledge_base.py
from typing import Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field

from lead_intake.api.deps import org_db
from lead_intake.auth.permissions import AuthContext, Permission, require_permission
from lead_intake.core.errors import NotFound
from lead_intake.models.schemas import DeleteIn
from lead_intake.services.repository import OrgDb

router = APIRouter(prefix="/api/knowledge-base", tags=["knowledge-base"])


class DocIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = ""


def _doc(d) -> dict:
    return {"id": d.id, "title": d.title, "content": d.content, "createdAt": d.created_at.isoformat()}


@router.get("")
def list_docs(
    auth: AuthContext = Depends(require_permission(Permission.LEADS_READ)),
    org: OrgDb = Depends(org_db),
):
    return [_doc(d) for d in org.knowledge_base.find_many()]


@router.post("", status_code=201)
def create_doc(
    payload: DocIn,
    auth: AuthContext = Depends(require_permission(Permission.ORG_MANAGE)),
    org: OrgDb = Depends(org_db),
):
    doc = org.knowledge_base.create(title=payload.title, content=payload.content)
    org.db.commit()
    return _doc(doc)


@router.delete("/{doc_id}")
def delete_doc(
    doc_id: str,
    payload: Optional[DeleteIn] = Body(default=None),
    auth: AuthContext = Depends(require_permission(Permission.ORG_MANAGE)),
    org: OrgDb = Depends(org_db),
):
    doc = org.knowledge_base.soft_delete(doc_id, reason=payload.reason if payload else None)
    if doc is None:
        raise NotFound("Document not found")
    org.db.commit()
    return {"success": True, "id": doc.id}
