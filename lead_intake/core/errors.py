# lead_intake/core/errors.py
"""
Error taxonomy shared by services and routes.

Services raise these; `install_error_handlers` turns them into JSON responses
of the shape {"success": false, "error": ...}.
"""

import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("intake.errors")


class IntakeError(Exception):
    status_code = 400
    default_detail = "Request failed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def headers(self) -> Dict[str, str]:
        return {}

    def body(self) -> dict:
        return {"success": False, "error": self.detail}


class AuthenticationRequired(IntakeError):
    status_code = 401
    default_detail = "Missing or invalid authorization token"


class Unauthorized(IntakeError):
    """Authenticated, but the role lacks the permission."""
    status_code = 403
    default_detail = "Insufficient permissions"

    def __init__(self, permission: Optional[str] = None, detail: Optional[str] = None):
        self.permission = permission
        if detail is None and permission:
            detail = f"Insufficient permissions: {permission} required"
        super().__init__(detail)


class TenantContextMissing(IntakeError):
    status_code = 400
    default_detail = "No organization context"


class NotFound(IntakeError):
    status_code = 404
    default_detail = "Not found"


class ValidationFailed(IntakeError):
    status_code = 400
    default_detail = "Invalid request data"

    def __init__(self, reason: str, field: Optional[str] = None):
        self.field = field
        self.reason = reason
        super().__init__(reason)

    def body(self) -> dict:
        out = {"success": False, "error": self.reason}
        if self.field:
            out["field"] = self.field
        return out


class RateLimited(IntakeError):
    status_code = 429
    default_detail = "Too many requests. Please try again later."

    def __init__(self, limit: int, remaining: int, reset_at: float, retry_after: int):
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at
        self.retry_after = retry_after
        super().__init__()

    def headers(self) -> Dict[str, str]:
        return {
            "Retry-After": str(self.retry_after),
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }

    def body(self) -> dict:
        return {"success": False, "error": self.detail, "retryAfter": self.retry_after}


class QuotaExceeded(IntakeError):
    status_code = 429
    default_detail = "Monthly lead limit reached. Please upgrade your plan."


class BotDetected(IntakeError):
    # never tell the caller why
    status_code = 403
    default_detail = "Access denied"


class LeadStateConflict(IntakeError):
    status_code = 409
    default_detail = "Lead has already been decided"


class DownstreamUnavailable(IntakeError):
    """Raised by collaborator adapters; callers log it and carry on."""
    status_code = 502
    default_detail = "Downstream service unavailable"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(IntakeError)
    async def _intake_error(request: Request, exc: IntakeError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.detail)
        else:
            logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, type(exc).__name__)
        return JSONResponse(status_code=exc.status_code, content=exc.body(), headers=exc.headers())

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        parts = [str(p) for p in first.get("loc", ()) if p != "body"]
        field = ".".join(parts) or None
        err = ValidationFailed(f"{field}: {first.get('msg')}" if field else "Invalid request data", field=field)
        logger.info("%s %s -> 400 invalid request (%s)", request.method, request.url.path, field)
        return JSONResponse(status_code=err.status_code, content=err.body())

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})
