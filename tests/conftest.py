import pytest
from fastapi.testclient import TestClient

from lead_intake.core.config import Settings
from lead_intake.core.db import session_scope
from lead_intake.main import create_app
from lead_intake.services.dispatch import WorkflowStarter
from lead_intake.services.notifications import Notifier
from lead_intake.services.rate_limit import InMemoryRateLimiter
from lead_intake.services.seed import ensure_tenant, seed_defaults

BROWSER_UA = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"

DEFAULT_ORG = "default"
DEMO_ORG = "org_demo_leadagent"
ACME_ORG = "org_acme"
GLOBEX_ORG = "org_globex"


class RecordingStarter(WorkflowStarter):
    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    def start(self, definition, args):
        self.calls.append((definition, args))
        if self.fail:
            raise RuntimeError("runner down")
        return f"run-{len(self.calls)}"


class RecordingNotifier(Notifier):
    def __init__(self):
        super().__init__(["sales@example.com"], "http://app.test")
        self.sent = []

    def _send(self, message):
        self.sent.append(message)


def make_settings(**overrides) -> Settings:
    values = {
        "database_url": "sqlite://",
        "log_level": "WARNING",
        "jwt_secret": "test-secret",
        "default_org_id": DEFAULT_ORG,
        "demo_org_id": DEMO_ORG,
        "sales_alert_recipients": ["sales@example.com"],
    }
    values.update(overrides)
    return Settings(**values)


def seed(db):
    seed_defaults(db, DEFAULT_ORG, DEMO_ORG)
    ensure_tenant(db, {
        "org_id": ACME_ORG,
        "subdomain": "acme",
        "name": "Acme",
        "settings": {"enable_ai_research": True},
        "subscription_tier": "starter",
    })
    ensure_tenant(db, {
        "org_id": GLOBEX_ORG,
        "subdomain": "globex",
        "name": "Globex",
        "settings": {"enable_ai_research": False},
        "subscription_tier": "pro",
    })


@pytest.fixture
def starter():
    return RecordingStarter()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def limiter():
    return InMemoryRateLimiter()


@pytest.fixture
def app(starter, notifier, limiter):
    app = create_app(make_settings(), rate_limiter=limiter, starter=starter, notifier=notifier)
    with session_scope(app.state.session_factory) as db:
        seed(db)
    yield app
    app.state.dispatcher.shutdown(wait=True)


@pytest.fixture
def client(app):
    # not used as a context manager: the lifespan would dispose the in-memory db
    return TestClient(app, headers={"User-Agent": BROWSER_UA})


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


def drain(app):
    """Wait for background dispatch/notification jobs."""
    app.state.dispatcher.shutdown(wait=True)


def token_for(app, org_id, role="admin", user_id="user-1"):
    claims = {"sub": user_id}
    if org_id:
        claims["org_id"] = org_id
    if role:
        claims["org_role"] = f"org:{role}"
    return app.state.token_issuer.create_token(claims)


def auth_headers(app, org_id, role="admin", user_id="user-1"):
    return {"Authorization": f"Bearer {token_for(app, org_id, role, user_id)}"}
