import logging
from typing import Any, Dict, Iterable, List, Tuple

from fastapi import APIRouter, Request

logger = logging.getLogger("intake.api.health")
router = APIRouter(prefix="/health", tags=["health"])

HTTP_METHODS = {"get", "post", "put", "patch", "delete", "head", "options"}


@router.get("/ping")
def ping():
    logger.debug("GET /health/ping")
    return {"ok": True}


def _walk(routes: Iterable[Any], prefix: str = "") -> Iterable[Tuple[str, List[str], Any]]:
    for r in routes:
        path = getattr(r, "path", None) or ""
        methods = getattr(r, "methods", None)
        if path and methods:
            full = path if path.startswith(prefix) else prefix + path
            yield full, sorted(methods), getattr(r, "name", None)
        children = getattr(r, "routes", None)
        if children:
            yield from _walk(children, prefix + (getattr(r, "prefix", "") or path))


@router.get("/routes")
def list_routes(request: Request):
    """Introspect all registered routes to verify there are no collisions."""
    found: Dict[Tuple[str, str], Dict[str, Any]] = {}
    for path, methods, name in _walk(request.app.routes):
        found[(path, ",".join(methods))] = {"path": path, "methods": methods, "name": name}
    # the schema covers routes mounted through included routers too
    for path, ops in request.app.openapi().get("paths", {}).items():
        for method, op in ops.items():
            if method not in HTTP_METHODS:
                continue
            key = (path, method.upper())
            if not any(k[0] == path and method.upper() in k[1].split(",") for k in found):
                found[key] = {"path": path, "methods": [method.upper()], "name": op.get("operationId")}
    out = sorted(found.values(), key=lambda x: (x["path"], ",".join(x["methods"])))
    logger.info("GET /health/routes count=%d", len(out))
    return {"ok": True, "routes": out}
