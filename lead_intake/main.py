# lead_intake/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from lead_intake import models  # noqa: F401  (register tables)
from lead_intake.api import admin, assessment, billing, health, knowledge_base, leads, quiz, submit, workflows
from lead_intake.auth import routes as auth_routes
from lead_intake.auth.security import TokenIssuer
from lead_intake.core.config import Settings
from lead_intake.core.db import Base, make_engine, make_session_factory
from lead_intake.core.errors import install_error_handlers
from lead_intake.middleware.request_logger import RequestLoggerMiddleware
from lead_intake.services.admission import AdmissionGuard
from lead_intake.services.bot_detection import BotDetector, UserAgentBotDetector
from lead_intake.services.dispatch import HttpWorkflowStarter, NullWorkflowStarter, WorkflowDispatcher, WorkflowStarter
from lead_intake.services.intake import IntakeService
from lead_intake.services.notifications import LogNotifier, Notifier, ResendNotifier
from lead_intake.services.rate_limit import RateLimiter, build_rate_limiter

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d - %(message)s"

logger = logging.getLogger("intake.main")


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("intake").setLevel(level)


def build_notifier(settings: Settings) -> Notifier:
    if settings.resend_api_key:
        return ResendNotifier(
            api_key=settings.resend_api_key,
            from_email=settings.resend_from_email,
            sales_recipients=settings.sales_alert_recipients,
            app_url=settings.app_url,
        )
    logger.warning("RESEND_API_KEY not set; emails will only be logged")
    return LogNotifier(settings.sales_alert_recipients, settings.app_url)


def build_starter(settings: Settings) -> WorkflowStarter:
    if settings.workflow_runner_url:
        return HttpWorkflowStarter(settings.workflow_runner_url, timeout=settings.workflow_timeout_seconds)
    logger.warning("WORKFLOW_RUNNER_URL not set; workflows will not be started")
    return NullWorkflowStarter()


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    rate_limiter: Optional[RateLimiter] = None,
    bot_detector: Optional[BotDetector] = None,
    starter: Optional[WorkflowStarter] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """
    Build the application. Settings are read from the environment only when
    not passed in; collaborators default to the ones the settings describe.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    logger.info("Starting lead intake backend with LOG_LEVEL=%s", settings.log_level)

    engine = engine or make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    session_factory = make_session_factory(engine)

    notifier = notifier or build_notifier(settings)
    dispatcher = WorkflowDispatcher(
        starter or build_starter(settings),
        max_workers=settings.dispatch_workers,
        session_factory=session_factory,
    )
    guard = AdmissionGuard(
        bot_detector or UserAgentBotDetector(enabled=settings.bot_detection_enabled),
        rate_limiter or build_rate_limiter(settings.redis_url),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        dispatcher.shutdown(wait=False)
        engine.dispose()

    app = FastAPI(title="Lead Intake Backend", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.token_issuer = TokenIssuer(settings.jwt_secret, settings.jwt_expire_min)
    app.state.notifier = notifier
    app.state.dispatcher = dispatcher
    app.state.intake = IntakeService(settings, guard, dispatcher, notifier)

    app.add_middleware(RequestLoggerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.include_router(health.router)
    app.include_router(auth_routes.router)
    app.include_router(assessment.router)
    app.include_router(quiz.router)
    app.include_router(submit.router)
    app.include_router(leads.router)
    app.include_router(workflows.router)
    app.include_router(knowledge_base.router)
    app.include_router(billing.router)
    app.include_router(admin.router)
    logger.info("Routers registered.")
    return app
