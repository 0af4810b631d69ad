# lead_intake/core/config.py
"""
Runtime configuration.

Settings are read from the environment exactly once, at the entry point
(`Settings.from_env()`), and then handed to `create_app` explicitly. Nothing in
the package reads os.environ after that.
"""

import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator


class ConfigError(RuntimeError):
    """Raised when one or more environment variables are missing or malformed."""

    def __init__(self, problems: List[str]):
        self.problems = problems
        super().__init__("Invalid configuration: " + "; ".join(problems))


# env var -> Settings field
ENV_MAP = {
    "DATABASE_URL": "database_url",
    "LOG_LEVEL": "log_level",
    "INTAKE_JWT_SECRET": "jwt_secret",
    "INTAKE_JWT_EXPIRE_MIN": "jwt_expire_min",
    "REDIS_URL": "redis_url",
    "DEFAULT_ORG_ID": "default_org_id",
    "DEMO_ORG_ID": "demo_org_id",
    "SYSTEM_USER_ID": "system_user_id",
    "BASE_DOMAIN": "base_domain",
    "WORKFLOW_RUNNER_URL": "workflow_runner_url",
    "WORKFLOW_TIMEOUT_SECONDS": "workflow_timeout_seconds",
    "DISPATCH_WORKERS": "dispatch_workers",
    "RESEND_API_KEY": "resend_api_key",
    "RESEND_FROM_EMAIL": "resend_from_email",
    "SALES_ALERT_RECIPIENTS": "sales_alert_recipients",
    "APP_URL": "app_url",
    "BOT_DETECTION_ENABLED": "bot_detection_enabled",
    "RETENTION_DAYS": "retention_days",
    "CORS_ORIGINS": "cors_origins",
}


class Settings(BaseModel):
    database_url: str = "sqlite:///./intake_dev.db"
    log_level: str = "INFO"
    jwt_secret: str = "dev-secret-change-me"
    jwt_expire_min: int = Field(1440, gt=0)
    redis_url: Optional[str] = None

    # organization used by the public assessment endpoints
    default_org_id: str = "default"
    demo_org_id: str = "org_demo_leadagent"
    # actor recorded on leads created without a signed-in user
    system_user_id: str = "system"
    base_domain: Optional[str] = None

    workflow_runner_url: Optional[str] = None
    workflow_timeout_seconds: float = Field(10.0, gt=0)
    dispatch_workers: int = Field(4, ge=1, le=64)

    resend_api_key: Optional[str] = None
    resend_from_email: str = "Lead Intake <noreply@example.com>"
    sales_alert_recipients: List[str] = Field(default_factory=list)
    app_url: str = "http://localhost:3000"

    bot_detection_enabled: bool = True
    retention_days: int = Field(90, ge=1)
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {v!r}")
        return v

    @field_validator("sales_alert_recipients", "cors_origins", mode="before")
    @classmethod
    def _split_csv(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("redis_url", "workflow_runner_url", "resend_api_key", "base_domain", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables (see ENV_MAP).
        Every offending variable is reported at once.
        """
        env = os.environ if environ is None else environ
        values = {field: env[var] for var, field in ENV_MAP.items() if var in env}
        try:
            return cls(**values)
        except ValidationError as exc:
            reverse = {field: var for var, field in ENV_MAP.items()}
            problems = []
            for err in exc.errors():
                field = str(err["loc"][0]) if err["loc"] else "?"
                problems.append(f"{reverse.get(field, field)}: {err['msg']}")
            raise ConfigError(problems) from exc
