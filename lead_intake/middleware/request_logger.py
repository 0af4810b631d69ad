# lead_intake/middleware/request_logger.py
import logging
import time

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("intake.http")


class RequestLoggerMiddleware:
    """
    Logs every HTTP request with:
      - method, path, status, duration
      - X-Req-Id (from client), echoed back on the response

    Bodies are not logged; submissions carry contact details.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        rid = headers.get("x-req-id", "-")
        method = scope.get("method", "-")
        path = scope.get("path", "-")
        start = time.perf_counter()
        status = {"code": 500}

        async def send_wrapper(message: Message):
            if message["type"] == "http.response.start":
                status["code"] = message["status"]
                if rid != "-":
                    message.setdefault("headers", [])
                    message["headers"] = list(message["headers"]) + [(b"x-req-id", rid.encode("latin-1"))]
            await send(message)

        logger.debug("[HTTP >] rid=%s %s %s", rid, method, path)
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            dur_ms = (time.perf_counter() - start) * 1000
            logger.info("[HTTP <] rid=%s %s %s %d in %.1fms", rid, method, path, status["code"], dur_ms)
