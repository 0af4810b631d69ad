from datetime import datetime, timedelta

import pytest

from lead_intake.models.orm import KnowledgeBaseDoc, Lead
from lead_intake.services.repository import OrgDb
from lead_intake.services.scoring import PRODUCTION_ENGINE, ScoredResponse

from conftest import ACME_ORG, GLOBEX_ORG, auth_headers


@pytest.fixture
def acme_lead(db):
    org = OrgDb(db, ACME_ORG, "system")
    lead = org.leads.create(name="Ada", email="ada@example.com", company="Acme", status="pending")
    org.leads.add_score(lead, PRODUCTION_ENGINE.score([ScoredResponse("q13", 13, "immediately", 450)]))
    wf = org.workflows.create(lead.id, status="running")
    db.commit()
    return {"lead": lead.id, "workflow": wf.id}


@pytest.fixture
def globex_lead(db):
    org = OrgDb(db, GLOBEX_ORG, "system")
    lead = org.leads.create(name="Eve", email="eve@example.com", status="pending")
    db.commit()
    return lead.id


def test_requires_token(client):
    r = client.get("/api/leads")
    assert r.status_code == 401
    assert r.json()["success"] is False
    r = client.get("/api/leads", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_list_is_scoped_to_org(client, app, acme_lead, globex_lead):
    r = client.get("/api/leads", headers=auth_headers(app, ACME_ORG, "member"))
    assert r.status_code == 200
    assert [l["id"] for l in r.json()] == [acme_lead["lead"]]
    r = client.get("/api/leads", headers=auth_headers(app, GLOBEX_ORG, "member"))
    assert [l["id"] for l in r.json()] == [globex_lead]


def test_foreign_lead_is_not_found(client, app, globex_lead):
    headers = auth_headers(app, ACME_ORG, "admin")
    assert client.get(f"/api/leads/{globex_lead}", headers=headers).status_code == 404
    assert client.patch(f"/api/leads/{globex_lead}", json={"name": "X"}, headers=headers).status_code == 404
    assert client.delete(f"/api/leads/{globex_lead}", headers=headers).status_code == 404
    r = client.post(f"/api/leads/{globex_lead}/decision", json={"action": "reject"}, headers=headers)
    assert r.status_code == 404


def test_lead_detail(client, app, acme_lead):
    r = client.get(f"/api/leads/{acme_lead['lead']}", headers=auth_headers(app, ACME_ORG, "member"))
    assert r.status_code == 200
    body = r.json()
    assert body["lead"]["email"] == "ada@example.com"
    assert body["score"]["tier"] == "hot"
    assert body["score"]["readinessScore"] == 64
    assert [w["id"] for w in body["workflows"]] == [acme_lead["workflow"]]


def test_stats(client, app, acme_lead):
    r = client.get("/api/leads/stats", headers=auth_headers(app, ACME_ORG, "member"))
    assert r.json() == {"pending": 1, "approved": 0, "rejected": 0, "total": 1}


def test_member_cannot_decide(client, app, acme_lead):
    r = client.post(
        f"/api/leads/{acme_lead['lead']}/decision",
        json={"action": "approve", "emailDraft": "Hi"},
        headers=auth_headers(app, ACME_ORG, "member"),
    )
    assert r.status_code == 403
    assert "leads:approve" in r.json()["error"]


def test_manager_approves_once(client, app, acme_lead, notifier):
    headers = auth_headers(app, ACME_ORG, "manager", user_id="mgr-1")
    url = f"/api/leads/{acme_lead['lead']}/decision"
    r = client.post(url, json={"action": "approve", "emailDraft": "Hello Ada"}, headers=headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "approved"
    assert body["workflowId"] == acme_lead["workflow"]
    assert body["emailSent"] is True
    assert notifier.sent[-1].to == "ada@example.com"

    r = client.get(f"/api/workflows/{acme_lead['workflow']}", headers=headers)
    assert r.json()["status"] == "completed"
    assert r.json()["approved_by"] == "mgr-1"

    r = client.post(url, json={"action": "reject"}, headers=headers)
    assert r.status_code == 409


def test_approve_needs_draft(client, app, acme_lead):
    r = client.post(
        f"/api/leads/{acme_lead['lead']}/decision",
        json={"action": "approve", "emailDraft": "  "},
        headers=auth_headers(app, ACME_ORG, "admin"),
    )
    assert r.status_code == 400
    assert r.json()["field"] == "emailDraft"
    r = client.post(
        f"/api/leads/{acme_lead['lead']}/decision",
        json={"action": "archive"},
        headers=auth_headers(app, ACME_ORG, "admin"),
    )
    assert r.status_code == 400


def test_update_lead(client, app, acme_lead):
    headers = auth_headers(app, ACME_ORG, "manager")
    url = f"/api/leads/{acme_lead['lead']}"
    r = client.patch(url, json={"company": "Acme Corp", "qualificationCategory": "enterprise"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["company"] == "Acme Corp"
    assert r.json()["qualification_category"] == "enterprise"
    assert client.patch(url, json={"org_id": GLOBEX_ORG}, headers=headers).status_code == 400
    assert client.patch(url, json={"name": "X"}, headers=auth_headers(app, ACME_ORG, "member")).status_code == 403


def test_soft_delete_and_restore(client, app, acme_lead):
    lead_id = acme_lead["lead"]
    admin = auth_headers(app, ACME_ORG, "admin", user_id="adm-1")
    manager = auth_headers(app, ACME_ORG, "manager")

    assert client.delete(f"/api/leads/{lead_id}", headers=manager).status_code == 403
    r = client.request("DELETE", f"/api/leads/{lead_id}", json={"reason": "spam"}, headers=admin)
    assert r.status_code == 200
    assert client.get(f"/api/leads/{lead_id}", headers=admin).status_code == 404

    deleted = client.get("/api/leads/deleted", headers=admin).json()
    assert [d["id"] for d in deleted] == [lead_id]
    assert deleted[0]["deleted_at"] is not None

    r = client.post(f"/api/leads/{lead_id}/restore", headers=admin)
    assert r.status_code == 200
    assert client.get(f"/api/leads/{lead_id}", headers=admin).status_code == 200


def test_member_cannot_delete(client, app, db, acme_lead):
    lead_id = acme_lead["lead"]
    r = client.delete(f"/api/leads/{lead_id}", headers=auth_headers(app, ACME_ORG, "member"))
    assert r.status_code == 403
    assert r.json()["success"] is False
    db.expire_all()
    lead = db.get(Lead, lead_id)
    assert lead.deleted_at is None
    assert lead.status == "pending"
    assert client.get(f"/api/leads/{lead_id}", headers=auth_headers(app, ACME_ORG, "member")).status_code == 200


def test_workflow_result_feeds_approval(client, app, acme_lead):
    headers = auth_headers(app, ACME_ORG, "manager")
    lead_id, wf_id = acme_lead["lead"], acme_lead["workflow"]
    assert client.get(f"/api/leads/{lead_id}/approval", headers=headers).status_code == 404

    r = client.put(
        f"/api/workflows/{wf_id}/result",
        json={"status": "completed", "emailDraft": "Dear Ada", "researchResults": {"employees": 400}, "qualificationScore": 77},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"

    view = client.get(f"/api/leads/{lead_id}/approval", headers=headers).json()
    assert view["emailDraft"] == "Dear Ada"
    assert view["researchResults"] == {"employees": 400}
    assert view["tier"] == "hot"

    r = client.get("/api/workflows", params={"status": "completed"}, headers=headers)
    assert [w["id"] for w in r.json()] == [wf_id]
    r = client.get("/api/workflows", params={"lead_id": lead_id}, headers=headers)
    assert len(r.json()) == 1


def test_workflow_of_other_org_is_hidden(client, app, acme_lead):
    headers = auth_headers(app, GLOBEX_ORG, "admin")
    assert client.get(f"/api/workflows/{acme_lead['workflow']}", headers=headers).status_code == 404
    r = client.put(f"/api/workflows/{acme_lead['workflow']}/result", json={"status": "failed"}, headers=headers)
    assert r.status_code == 404


# ---------- billing / admin / knowledge base ----------
def test_billing(client, app):
    r = client.get("/api/billing/usage", headers=auth_headers(app, ACME_ORG, "member"))
    assert r.status_code == 200
    assert r.json()["tier"] == "starter"
    assert r.json()["limit"] == 100

    assert client.put("/api/billing/tier", json={"tier": "pro"}, headers=auth_headers(app, ACME_ORG, "manager")).status_code == 403
    r = client.put("/api/billing/tier", json={"tier": "pro"}, headers=auth_headers(app, ACME_ORG, "admin"))
    assert r.status_code == 200
    assert r.json()["limit"] == 1000
    r = client.put("/api/billing/tier", json={"tier": "gold"}, headers=auth_headers(app, ACME_ORG, "admin"))
    assert r.status_code == 400


def test_retention_endpoint(client, app, db, acme_lead):
    org = OrgDb(db, ACME_ORG, "system")
    org.leads.soft_delete(acme_lead["lead"])
    db.get(Lead, acme_lead["lead"]).deleted_at = datetime.utcnow() - timedelta(days=40)
    db.commit()

    admin = auth_headers(app, ACME_ORG, "admin")
    r = client.post("/api/admin/retention", headers=admin)
    assert r.json()["olderThanDays"] == 90
    assert r.json()["deleted"]["leads"] == 0

    r = client.post("/api/admin/retention", json={"olderThanDays": 30}, headers=admin)
    assert r.status_code == 200
    assert r.json()["deleted"]["leads"] == 1
    assert client.post("/api/admin/retention", headers=auth_headers(app, ACME_ORG, "manager")).status_code == 403


def test_knowledge_base(client, app, db):
    admin = auth_headers(app, ACME_ORG, "admin")
    r = client.post("/api/knowledge-base", json={"title": "Pricing", "content": "Starter is $49"}, headers=admin)
    assert r.status_code == 201
    doc_id = r.json()["id"]
    assert client.post("/api/knowledge-base", json={"title": "x"}, headers=auth_headers(app, ACME_ORG, "manager")).status_code == 403

    listed = client.get("/api/knowledge-base", headers=auth_headers(app, ACME_ORG, "member")).json()
    assert [d["title"] for d in listed] == ["Pricing"]
    assert client.get("/api/knowledge-base", headers=auth_headers(app, GLOBEX_ORG, "member")).json() == []

    r = client.request("DELETE", f"/api/knowledge-base/{doc_id}", json={"reason": "outdated"}, headers=admin)
    assert r.status_code == 200
    assert client.get("/api/knowledge-base", headers=admin).json() == []
    assert db.get(KnowledgeBaseDoc, doc_id).deletion_reason == "outdated"
    assert client.delete(f"/api/knowledge-base/{doc_id}", headers=admin).status_code == 404
