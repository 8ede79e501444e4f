"""
slaguard - Main Application
===========================

SLA compliance tracking and automated escalation service.

Modules:
- SLA Tracking: policies, live SLA status, breach records, compliance metrics
- Escalation: rule matching, action execution, escalation history

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: In-memory stores, YAML config, Slack and webhook clients
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from slaguard.config import Settings, settings as default_settings
from slaguard.core import ApplicationException

# SLA Module
from slaguard.sla.application import SLAService
from slaguard.sla.infrastructure import (
    InMemoryIncidentRepository, InMemoryBreachRepository,
    SLAConfigManager, SLAScheduler,
)
from slaguard.sla.interfaces import sla_router

# Escalation Module
from slaguard.escalation.application import ActionHandlers, EscalationEngine, EscalationExecutor
from slaguard.escalation.infrastructure import (
    InMemoryExecutionRepository, ConfigRuleRepository,
    ServiceActionHandlers, SlackClient, WebhookClient,
)
from slaguard.escalation.interfaces import escalation_router

# Shared
from slaguard.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from slaguard.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    handlers: Optional[ActionHandlers] = None,
    start_scheduler: bool = True
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_settings: Settings to use (defaults to the environment)
        handlers: Action handlers; defaults to Slack/webhook backed handlers
        start_scheduler: Run the background evaluation job
    """
    cfg = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """
        Application lifespan manager.

        STARTUP:
        1. Setup structured logging
        2. Load SLA configuration and watch it for changes
        3. Build repositories, handlers and the escalation engine
        4. Start the SLA scheduler

        SHUTDOWN:
        1. Stop SLA scheduler
        2. Stop config watcher
        3. Close outbound HTTP clients
        """
        # === STARTUP ===
        setup_logging(cfg.log_level, cfg.environment)
        logger.info("Starting slaguard", extra={
            "version": cfg.app_version,
            "environment": cfg.environment
        })

        config_manager = SLAConfigManager()
        config_manager.load(cfg.sla_config_path)
        config_manager.start_watching()

        incident_repo = InMemoryIncidentRepository()
        breach_repo = InMemoryBreachRepository()
        execution_repo = InMemoryExecutionRepository()
        rule_repo = ConfigRuleRepository(config_manager)

        slack_client = SlackClient(
            webhook_url=cfg.slack_webhook_url,
            channel=cfg.slack_channel,
            timeout_seconds=cfg.slack_timeout_seconds,
        )
        webhook_client = WebhookClient(timeout_seconds=cfg.webhook_timeout_seconds)
        action_handlers = handlers or ServiceActionHandlers(
            incident_repo, slack_client, webhook_client, cfg.ticketing_webhook_url
        )

        engine = EscalationEngine(
            incident_repo,
            breach_repo,
            execution_repo,
            rule_repo,
            config_manager,
            EscalationExecutor(action_handlers, cfg.action_timeout_seconds),
        )

        scheduler = SLAScheduler(interval_seconds=cfg.sla_evaluation_interval)
        if start_scheduler:
            async def sla_evaluation_job():
                """Background SLA evaluation job."""
                await engine.run_tick()

            await scheduler.start(sla_evaluation_job)

        # Store services in app state for dependency injection
        app.state.settings = cfg
        app.state.config_manager = config_manager
        app.state.incident_repository = incident_repo
        app.state.breach_repository = breach_repo
        app.state.execution_repository = execution_repo
        app.state.rule_repository = rule_repo
        app.state.sla_service = SLAService(incident_repo, breach_repo, config_manager)
        app.state.engine = engine
        app.state.scheduler = scheduler

        logger.info("slaguard started successfully")

        yield  # Application runs here

        # === SHUTDOWN ===
        logger.info("Shutting down slaguard")
        await scheduler.stop()
        config_manager.stop_watching()
        await slack_client.close()
        await webhook_client.close()
        logger.info("slaguard shutdown complete")

    app = FastAPI(
        title="slaguard API",
        description="""
        ## SLA Compliance and Escalation Engine

        - `POST /sla/incidents` - Ingest incidents for SLA tracking
        - `GET /sla/incidents/{id}/status` - Live SLA status
        - `GET /sla/breaches` - Breach records
        - `GET /sla/metrics` - Compliance metrics
        - `GET /escalation/rules` - Escalation rules
        - `GET /escalation/executions` - Escalation history
        - `POST /escalation/evaluate` - Run an evaluation now
        """,
        version=cfg.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it runs first and the correlation id is set for logging
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    app.include_router(sla_router)
    app.include_router(escalation_router)

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint for load balancers and orchestrators."""
        state = request.app.state
        scheduler = getattr(state, "scheduler", None)
        config_manager = getattr(state, "config_manager", None)
        engine = getattr(state, "engine", None)
        last_report = engine.last_report if engine else None

        checks = {
            "sla_config": "watching" if config_manager and config_manager.is_watching else "static",
            "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
            "last_tick": last_report.finished_at.isoformat() if last_report and last_report.finished_at else None,
        }

        return {
            "status": "healthy",
            "version": cfg.app_version,
            "environment": cfg.environment,
            "checks": checks
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": cfg.app_name,
            "version": cfg.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "sla": {"prefix": "/sla"},
                "escalation": {"prefix": "/escalation"}
            }
        }

    return app


app = create_app()


# === Development Entry Point ===

def run() -> None:
    import uvicorn

    uvicorn.run(
        "slaguard.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.environment == "development",
        log_level="info"
    )


if __name__ == "__main__":
    run()
