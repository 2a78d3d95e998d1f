"""
Barangay Portal - FastAPI Application
Case management for barangay officials and residents.
"""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from barangay.core.config import get_settings
from barangay.core.database import close_db, get_database, init_db
from barangay.core.errors import setup_exception_handlers
from barangay.core.logging_config import request_id_var
from barangay.core.maintenance import MaintenanceModeMiddleware
from barangay.core.security_headers import SecurityHeadersMiddleware
from barangay.routers import cases, health, notifications, session
from barangay.services.case_lifecycle import CaseLifecycleService

logger = logging.getLogger(__name__)


# =============================================================================
# Logging Setup
# =============================================================================

def setup_logging():
    """Configure logging based on settings."""
    from barangay.core.logging_config import setup_logging as configure_logging
    settings = get_settings()
    configure_logging(
        level=settings.log_level.upper(),
        json_format=settings.log_json_format,
        log_file=Path(settings.log_file) if settings.log_file else None,
    )


# =============================================================================
# Background overdue sweep
# =============================================================================

async def run_overdue_sweep(interval_seconds: int) -> None:
    """Periodically notify reporters of cases ongoing past the threshold."""
    settings = get_settings()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            service = CaseLifecycleService(get_database(), overdue_days=settings.overdue_days)
            await run_in_threadpool(service.sweep_overdue_cases)
        except asyncio.CancelledError:
            raise
        except Exception:
            # One failed pass must not stop later sweeps
            logger.exception("Overdue sweep failed")


# =============================================================================
# Lifespan (Startup/Shutdown)
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    await run_in_threadpool(init_db)

    sweep_task = None
    if settings.overdue_sweep_interval_seconds > 0:
        sweep_task = asyncio.create_task(run_overdue_sweep(settings.overdue_sweep_interval_seconds))
        logger.info("Overdue sweep every %ss", settings.overdue_sweep_interval_seconds)

    yield

    if sweep_task is not None:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    close_db()
    logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Application factory.
    Creates and configures the FastAPI application.
    """
    settings = get_settings()
    setup_logging()

    tags_metadata = [
        {"name": "Health", "description": "Liveness and database checks."},
        {"name": "Session", "description": "Current user and sign-out."},
        {"name": "Cases", "description": "Case reports, lifecycle, hearings and patawag forms."},
        {"name": "Case Notifications", "description": "Per-resident case event notifications."},
        {"name": "Case Documents", "description": "Printable report, patawag form and cancellation letter."},
    ]

    app = FastAPI(
        title=settings.app_name,
        description=f"""{settings.app_description}

## Authentication
Send the session id as the `{settings.session_cookie_name}` cookie, an
`Authorization: Bearer <session id>` header, or `X-Session-Id`.

## Error Responses
All errors return JSON `{{"ok": false, "message": "..."}}`.
""",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.enable_docs else None,
        redoc_url="/api/redoc" if settings.enable_docs else None,
        openapi_url="/api/openapi.json" if settings.enable_docs else None,
        openapi_tags=tags_metadata,
    )

    # =========================================================================
    # Middleware (order matters - first added = last to run)
    # =========================================================================

    # Maintenance mode (innermost of the middlewares below)
    app.add_middleware(MaintenanceModeMiddleware)

    # Security headers
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=not settings.debug)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-Id"] = request_id
        return response

    # =========================================================================
    # Exception Handlers
    # =========================================================================
    setup_exception_handlers(app)

    # =========================================================================
    # Register Routers
    # =========================================================================
    app.include_router(health.router)
    app.include_router(session.router)
    app.include_router(cases.router)
    app.include_router(cases.documents_router)
    app.include_router(notifications.router)

    # Uploaded evidence
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount(settings.upload_url_prefix, StaticFiles(directory=str(upload_dir)), name="uploads")

    return app


# Create the app instance
app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "barangay.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
