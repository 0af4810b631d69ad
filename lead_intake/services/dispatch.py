# lead_intake/services/dispatch.py
"""
Fire-and-forget start of the external research/outreach workflow.

Dispatch happens after the lead is committed. The request thread only submits
a job to a bounded thread pool; start failures are logged and the workflow
row (if one was recorded) is marked failed. Nothing here ever propagates to
the submitter.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import requests
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from lead_intake.core.db import session_scope
from lead_intake.core.errors import DownstreamUnavailable
from lead_intake.models.orm import Workflow
from lead_intake.services.http import make_session, timeouts

logger = logging.getLogger("intake.dispatch")

INBOUND_WORKFLOW = "inbound"


class WorkflowStarter:
    def start(self, definition: str, args: Dict[str, Any]) -> Optional[str]:
        """Start a run; returns the runner's run id when it reports one."""
        raise NotImplementedError


class NullWorkflowStarter(WorkflowStarter):
    def start(self, definition: str, args: Dict[str, Any]) -> Optional[str]:
        logger.warning("No workflow runner configured; %s not started for lead=%s", definition, args.get("id"))
        return None


class HttpWorkflowStarter(WorkflowStarter):
    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or make_session()

    def start(self, definition: str, args: Dict[str, Any]) -> Optional[str]:
        url = f"{self.base_url}/workflows/{definition}/start"
        try:
            r = self.session.post(url, json={"args": [args]}, timeout=timeouts(self.timeout))
            r.raise_for_status()
        except requests.RequestException as e:
            raise DownstreamUnavailable(f"workflow start failed: {e}") from e
        try:
            data = r.json()
        except ValueError:
            return None
        return data.get("runId") if isinstance(data, dict) else None


def lead_snapshot(lead, score=None, workflow_id: Optional[str] = None) -> Dict[str, Any]:
    """Plain-dict copy of what the workflow needs; never hand ORM rows to another thread."""
    out = {
        "id": lead.id,
        "orgId": lead.org_id,
        "userId": lead.user_id,
        "name": lead.name,
        "email": lead.email,
        "company": lead.company,
        "phone": lead.phone,
        "message": lead.message,
        "status": lead.status,
        "createdAt": lead.created_at.isoformat() if lead.created_at else None,
    }
    if score is not None:
        out["tier"] = score.tier
        out["readinessScore"] = score.readiness_score
    if workflow_id:
        out["workflowId"] = workflow_id
    return out


class WorkflowDispatcher:
    def __init__(
        self,
        starter: WorkflowStarter,
        max_workers: int = 4,
        session_factory: Optional[sessionmaker] = None,
    ):
        self.starter = starter
        self.session_factory = session_factory
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="intake-dispatch")

    def dispatch(self, payload: Dict[str, Any], definition: str = INBOUND_WORKFLOW) -> Future:
        logger.info("Dispatching %s workflow for lead=%s", definition, payload.get("id"))
        fut = self._pool.submit(self.starter.start, definition, payload)
        fut.add_done_callback(lambda f: self._on_done(f, definition, payload))
        return fut

    def _on_done(self, fut: Future, definition: str, payload: Dict[str, Any]) -> None:
        exc = fut.exception()
        if exc is None:
            logger.info("Workflow %s started for lead=%s run=%s", definition, payload.get("id"), fut.result())
            return
        logger.error(
            "Workflow %s failed to start for lead=%s: %s", definition, payload.get("id"), exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        workflow_id = payload.get("workflowId")
        if workflow_id and self.session_factory is not None:
            self._mark_failed(workflow_id, payload.get("orgId"))

    def _mark_failed(self, workflow_id: str, org_id: Optional[str]) -> None:
        try:
            with session_scope(self.session_factory) as db:
                stmt = select(Workflow).where(Workflow.id == workflow_id, Workflow.org_id == org_id)
                wf = db.scalars(stmt).first()
                if wf is not None and wf.status == "running":
                    wf.status = "failed"
                    wf.completed_at = datetime.utcnow()
        except Exception:
            logger.exception("Could not mark workflow %s failed", workflow_id)

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Run any other best-effort job (notifications) on the same pool."""
        fut = self._pool.submit(fn, *args)
        fut.add_done_callback(self._log_failure)
        return fut

    @staticmethod
    def _log_failure(fut: Future) -> None:
        exc = fut.exception()
        if exc is not None:
            logger.error("Background job failed: %s", exc, exc_info=(type(exc), exc, exc.__traceback__))

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
