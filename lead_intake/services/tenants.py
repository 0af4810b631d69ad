# lead_intake/services/tenants.py
"""
Tenant lookup from the request host.

  acme.localhost:3000               -> "acme"
  acme.project.vercel.app           -> "acme"
  acme.<BASE_DOMAIN>                -> "acme"
  acme.example.com                  -> "acme"
  www.example.com, example.com      -> None
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from lead_intake.core.errors import NotFound
from lead_intake.models.orm import QuizQuestion, Tenant

logger = logging.getLogger("intake.tenants")


def extract_subdomain(hostname: Optional[str], base_domain: Optional[str] = None) -> Optional[str]:
    if not hostname:
        return None
    host = hostname.split(":")[0].strip().lower().rstrip(".")
    parts = host.split(".")

    if "localhost" in host:
        if len(parts) == 2 and parts[1] == "localhost":
            return parts[0]
        return None

    if host.endswith(".vercel.app"):
        return parts[0] if len(parts) >= 4 else None

    if base_domain:
        base = base_domain.lower().strip(".")
        if host == base:
            return None
        if host.endswith("." + base):
            first = host[: -len(base) - 1].split(".")[0]
            return None if first == "www" else first

    if len(parts) >= 3:
        return None if parts[0] == "www" else parts[0]
    return None


def get_tenant_by_subdomain(db: Session, subdomain: str) -> Optional[Tenant]:
    return db.scalars(select(Tenant).where(Tenant.subdomain == subdomain).limit(1)).first()


def get_tenant_by_custom_domain(db: Session, domain: str) -> Optional[Tenant]:
    domain = domain.split(":")[0].lower()
    return db.scalars(select(Tenant).where(Tenant.custom_domain == domain).limit(1)).first()


def get_tenant_by_org_id(db: Session, org_id: str) -> Optional[Tenant]:
    return db.scalars(select(Tenant).where(Tenant.org_id == org_id).limit(1)).first()


def get_tenant_by_id(db: Session, tenant_id: str) -> Optional[Tenant]:
    return db.get(Tenant, tenant_id)


def require_tenant_by_org_id(db: Session, org_id: str) -> Tenant:
    tenant = get_tenant_by_org_id(db, org_id)
    if tenant is None:
        raise NotFound("Tenant not found")
    return tenant


def resolve_tenant(
    db: Session,
    host: Optional[str],
    header_subdomain: Optional[str] = None,
    base_domain: Optional[str] = None,
) -> Optional[Tenant]:
    """
    X-Tenant-Subdomain (set by an edge proxy) wins, then a custom-domain match,
    then the subdomain parsed from the host.
    """
    if header_subdomain:
        return get_tenant_by_subdomain(db, header_subdomain.strip().lower())
    if host:
        tenant = get_tenant_by_custom_domain(db, host)
        if tenant is not None:
            return tenant
    sub = extract_subdomain(host, base_domain)
    if sub is None:
        return None
    return get_tenant_by_subdomain(db, sub)


def get_quiz_questions(db: Session, org_id: str) -> List[QuizQuestion]:
    stmt = select(QuizQuestion).where(QuizQuestion.org_id == org_id).order_by(QuizQuestion.question_number)
    return list(db.scalars(stmt))
