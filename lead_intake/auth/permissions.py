# lead_intake/auth/permissions.py
"""
Role-based permissions and the authentication dependencies for protected routes.

The role -> permission matrix is a static table. Anything not listed for a
role is denied; a caller without a resolvable role has no permissions at all.
"""

import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, Optional

from fastapi import Depends, Header, Request

from lead_intake.core.errors import AuthenticationRequired, TenantContextMissing, Unauthorized

logger = logging.getLogger("intake.auth.permissions")


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


class Permission(str, Enum):
    LEADS_READ = "leads:read"
    LEADS_WRITE = "leads:write"
    LEADS_APPROVE = "leads:approve"
    LEADS_DELETE = "leads:delete"
    LEADS_EXPORT = "leads:export"
    LEADS_COMMENT = "leads:comment"
    LEADS_VIEW_ALL = "leads:view_all"
    LEADS_EDIT = "leads:edit"
    WORKFLOWS_READ = "workflows:read"
    WORKFLOWS_CANCEL = "workflows:cancel"
    TEAM_INVITE = "team:invite"
    TEAM_MANAGE = "team:manage"
    ORG_MANAGE = "org:manage"
    BILLING_MANAGE = "billing:manage"
    ANALYTICS_VIEW = "analytics:view"


P = Permission

ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.ADMIN: frozenset(Permission),
    Role.MANAGER: frozenset({
        P.LEADS_READ, P.LEADS_WRITE, P.LEADS_APPROVE, P.LEADS_EXPORT,
        P.LEADS_COMMENT, P.LEADS_VIEW_ALL, P.LEADS_EDIT,
        P.WORKFLOWS_READ,
        P.TEAM_INVITE,
        P.ANALYTICS_VIEW,
    }),
    Role.MEMBER: frozenset({
        P.LEADS_READ, P.LEADS_COMMENT,
        P.WORKFLOWS_READ,
        P.ANALYTICS_VIEW,
    }),
}


def parse_role(value: Optional[str]) -> Optional[Role]:
    """Accepts 'admin' as well as the identity provider's 'org:admin'."""
    if not value:
        return None
    value = str(value).strip().lower()
    if value.startswith("org:"):
        value = value[4:]
    try:
        return Role(value)
    except ValueError:
        return None


def permissions_for(role: Optional[Role]) -> FrozenSet[Permission]:
    if role is None:
        return frozenset()
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role: Optional[Role], permission: Permission) -> bool:
    return permission in permissions_for(role)


def has_any_permission(role: Optional[Role], permissions: Iterable[Permission]) -> bool:
    return any(has_permission(role, p) for p in permissions)


def has_all_permissions(role: Optional[Role], permissions: Iterable[Permission]) -> bool:
    return all(has_permission(role, p) for p in permissions)


class AuthContext:
    """Identity of the caller for one request."""

    def __init__(self, user_id: str, org_id: Optional[str], role: Optional[Role]):
        self.user_id = user_id
        self.org_id = org_id
        self.role = role

    def has_permission(self, permission: Permission) -> bool:
        return has_permission(self.role, permission)

    def require_org(self) -> str:
        if not self.org_id:
            raise TenantContextMissing()
        return self.org_id

    def require_permission(self, permission: Permission) -> None:
        """Raise Unauthorized if the caller's role lacks the permission"""
        if not self.has_permission(permission):
            logger.info(
                "Permission denied user=%s org=%s role=%s permission=%s",
                self.user_id, self.org_id, self.role.value if self.role else None, permission.value,
            )
            raise Unauthorized(permission.value)


def get_auth_context(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> AuthContext:
    """
    Dependency to get the authenticated caller.
    Validates the bearer token; the org may still be absent (no organization
    selected), which routes turn into TenantContextMissing via require_org().
    """
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationRequired("Missing authorization token")

    token = authorization.split(" ", 1)[1]
    data = request.app.state.token_issuer.verify_token(token)
    if not data:
        raise AuthenticationRequired("Invalid or expired token")

    user_id = data.get("sub") or data.get("user_id")
    if not user_id:
        raise AuthenticationRequired("Invalid token payload")

    return AuthContext(
        user_id=str(user_id),
        org_id=data.get("org_id") or None,
        role=parse_role(data.get("org_role")),
    )


def require_org_user(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Any authenticated caller acting inside an organization."""
    auth.require_org()
    return auth


def require_permission(permission: Permission) -> Callable[..., AuthContext]:
    """
    Dependency factory.

    Usage:
        @router.post("/{lead_id}/decision")
        def decide(auth: AuthContext = Depends(require_permission(Permission.LEADS_APPROVE))):
            ...
    """

    def _dep(auth: AuthContext = Depends(require_org_user)) -> AuthContext:
        auth.require_permission(permission)
        return auth

    return _dep
