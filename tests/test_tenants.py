import pytest

from lead_intake.services.tenants import extract_subdomain, resolve_tenant

from conftest import ACME_ORG


@pytest.mark.parametrize("host,base,expected", [
    ("acme.localhost:3000", None, "acme"),
    ("localhost:3000", None, None),
    ("acme.myproject.vercel.app", None, "acme"),
    ("myproject.vercel.app", None, None),
    ("acme.leads.example.com", "leads.example.com", "acme"),
    ("leads.example.com", "leads.example.com", None),
    ("www.leads.example.com", "leads.example.com", None),
    ("acme.example.com", None, "acme"),
    ("www.example.com", None, None),
    ("example.com", None, None),
    ("", None, None),
    (None, None, None),
])
def test_extract_subdomain(host, base, expected):
    assert extract_subdomain(host, base) == expected


def test_resolve_prefers_header(db):
    tenant = resolve_tenant(db, "globex.example.com", header_subdomain="ACME")
    assert tenant.org_id == ACME_ORG


def test_resolve_custom_domain(db):
    tenant = resolve_tenant(db, "acme.example.com")
    tenant.custom_domain = "leads.acme.io"
    db.commit()
    assert resolve_tenant(db, "leads.acme.io:443").org_id == ACME_ORG


def test_resolve_unknown(db):
    assert resolve_tenant(db, "nobody.example.com") is None
    assert resolve_tenant(db, "localhost") is None
