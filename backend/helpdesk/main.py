"""
Helpdesk Approval & Escalation Service - FastAPI application

Wires the ticket, approval, rule and notification routers, the error
handlers and the in-process escalation scheduler.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config.settings import settings
from .api.routes import api_router
from .api.middleware import CorrelationIdMiddleware, register_error_handlers
from .repositories.mongo_client import create_indexes, close_connection, health_check
from .repositories.job_lock_repo import JobLockRepository
from .scheduler.escalation_scheduler import get_scheduler, start_scheduler, stop_scheduler
from .services.escalation_service import JOB_NAME
from .utils.logger import setup_logging, get_logger
from .utils.time import utc_now

setup_logging()
logger = get_logger(__name__)

SERVICE_NAME = "Helpdesk Approval & Escalation Service"


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup creates indexes and starts the escalation scheduler unless
    SCHEDULER_ENABLED=false (API-only nodes, or escalations run from cron
    via scripts.check_escalations). Shutdown stops both.
    """
    logger.info(f"Starting {SERVICE_NAME} {__version__} ({settings.environment})")

    try:
        create_indexes()
    except Exception as e:
        logger.error(f"Failed to create indexes: {e}", extra={"error_code": type(e).__name__})

    if settings.scheduler_enabled:
        try:
            start_scheduler()
        except Exception as e:
            logger.error(f"Failed to start escalation scheduler: {e}", extra={"error_code": type(e).__name__})
    else:
        logger.info("Escalation scheduler disabled")

    yield

    stop_scheduler()
    close_connection()
    logger.info(f"{SERVICE_NAME} stopped")


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    application = FastAPI(
        title=SERVICE_NAME,
        description="Ticket approval workflow, escalation checks and automation rules",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    allow_all = settings.cors_origins.strip() == "*"
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_origins_list,
        allow_credentials=not allow_all,  # Browsers refuse credentials with "*"
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )
    application.add_middleware(CorrelationIdMiddleware)

    register_error_handlers(application)
    application.include_router(api_router, prefix="/api/v1")
    _add_service_routes(application)

    return application


def _escalation_status() -> dict:
    """Scheduler state of this process and the shared job lock"""
    scheduler = get_scheduler()
    status = {
        "scheduler_enabled": settings.scheduler_enabled,
        "scheduler_running": scheduler.is_running,
        "interval_minutes": settings.escalation_interval_minutes,
        "lock_held": False,
    }
    lock = JobLockRepository().get_lock(JOB_NAME)
    if lock and lock.get("locked_by"):
        status["lock_held"] = lock.get("locked_until_ts", 0) > utc_now().timestamp()
        status["lock_owner"] = lock["locked_by"]
    return status


def _add_service_routes(app: FastAPI) -> None:

    @app.get("/health", tags=["Health"])
    async def health():
        """Database connectivity and escalation job state"""
        mongo_health = health_check()
        healthy = mongo_health.get("status") == "healthy"
        return {
            "status": "healthy" if healthy else "degraded",
            "version": __version__,
            "environment": settings.environment,
            "mongo": mongo_health,
            "escalations": _escalation_status() if healthy else None,
        }

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "name": SERVICE_NAME,
            "version": __version__,
            "docs": "/api/docs" if settings.debug else None
        }


app = create_app()
