import pytest

from lead_intake.auth.security import TokenIssuer, hash_password, verify_password
from lead_intake.services.seed import ensure_user

from conftest import ACME_ORG, auth_headers


@pytest.fixture
def alice(db):
    user = ensure_user(db, ACME_ORG, "alice", "alice@acme.io", "s3cret!", role="manager")
    db.commit()
    return user


def test_login_success(client, alice):
    r = client.post("/api/auth/login", json={"username": "alice", "password": "s3cret!"})
    assert r.status_code == 200
    data = r.json()
    assert "token" in data
    assert data["user"]["role"] == "manager"
    assert data["user"]["org_id"] == ACME_ORG

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["user_id"] == alice.id
    assert me.json()["role"] == "manager"
    assert "leads:approve" in me.json()["permissions"]
    assert "leads:delete" not in me.json()["permissions"]


def test_login_fail(client, alice):
    r = client.post("/api/auth/login", json={"username": "alice", "password": "wrong"})
    assert r.status_code == 401
    r = client.post("/api/auth/login", json={"username": "nobody", "password": "x"})
    assert r.status_code == 401


def test_inactive_user_cannot_login(client, db, alice):
    alice.is_active = False
    db.commit()
    assert client.post("/api/auth/login", json={"username": "alice", "password": "s3cret!"}).status_code == 401


def test_me_requires_token(client):
    r = client.get("/api/auth/me")
    assert r.status_code == 401


def test_unknown_role_has_no_permissions(client, app):
    r = client.get("/api/auth/me", headers=auth_headers(app, ACME_ORG, "owner"))
    assert r.json()["role"] is None
    assert r.json()["permissions"] == []
    assert client.get("/api/leads", headers=auth_headers(app, ACME_ORG, "owner")).status_code == 403


def test_tokens():
    issuer = TokenIssuer("secret-a", expire_min=5)
    token = issuer.create_token({"sub": "u1", "org_id": "o1"})
    claims = issuer.verify_token(token)
    assert claims["sub"] == "u1"
    assert claims["exp"] - claims["iat"] == 300
    assert TokenIssuer("secret-b").verify_token(token) is None
    assert issuer.verify_token("garbage") is None


def test_password_hashing():
    hashed = hash_password("pw")
    assert hashed != "pw"
    assert verify_password("pw", hashed)
    assert not verify_password("other", hashed)
    assert not verify_password("pw", "not-a-bcrypt-hash")
