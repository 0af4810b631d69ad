import pytest

from lead_intake.core.config import ConfigError, Settings


def test_defaults():
    s = Settings.from_env({})
    assert s.default_org_id == "default"
    assert s.demo_org_id == "org_demo_leadagent"
    assert s.retention_days == 90
    assert s.redis_url is None


def test_env_parsing():
    s = Settings.from_env({
        "LOG_LEVEL": "debug",
        "SALES_ALERT_RECIPIENTS": "a@x.io, b@x.io,",
        "REDIS_URL": "  ",
        "DISPATCH_WORKERS": "8",
        "BOT_DETECTION_ENABLED": "false",
    })
    assert s.log_level == "DEBUG"
    assert s.sales_alert_recipients == ["a@x.io", "b@x.io"]
    assert s.redis_url is None
    assert s.dispatch_workers == 8
    assert s.bot_detection_enabled is False


def test_every_bad_variable_is_reported():
    with pytest.raises(ConfigError) as exc:
        Settings.from_env({"LOG_LEVEL": "loud", "DISPATCH_WORKERS": "0", "RETENTION_DAYS": "soon"})
    joined = " ".join(exc.value.problems)
    assert "LOG_LEVEL" in joined
    assert "DISPATCH_WORKERS" in joined
    assert "RETENTION_DAYS" in joined


def test_health(client):
    assert client.get("/health/ping").json() == {"ok": True}
    paths = {r["path"] for r in client.get("/health/routes").json()["routes"]}
    assert "/api/assessment/submit" in paths
    assert "/api/leads/{lead_id}/decision" in paths
    assert "/api/workflows/{workflow_id}/result" in paths
    assert "/health/ping" in paths


def test_request_id_is_echoed(client):
    r = client.get("/health/ping", headers={"X-Req-Id": "abc-123"})
    assert r.headers["x-req-id"] == "abc-123"
    r = client.get("/api/leads", headers={"X-Req-Id": "err-1"})
    assert r.status_code == 401
    assert r.headers["x-req-id"] == "err-1"
