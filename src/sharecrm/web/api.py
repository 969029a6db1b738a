"""FastAPI application factory.

Main entry point for the SHARE CRM HTTP API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sharecrm import __version__
from sharecrm.config.app_config import load_app_config
from sharecrm.core.errors import CrmError
from sharecrm.core.permissions import ensure_super_admin_role, seed_permissions
from sharecrm.db.database import current_db_path, init_db
from sharecrm.web.routes import (
    health_router,
    auth_router,
    public_router,
    portal_router,
    instructor_router,
    customers_router,
    terminations_router,
    paq_router,
    venues_router,
    terms_router,
    exercise_types_router,
    sessions_router,
    instructors_router,
    enrollments_router,
    booking_cancellations_router,
    class_cancellations_router,
    attendance_router,
    reports_router,
    class_rolls_router,
    staff_router,
    roles_router,
    permissions_router,
    emailing_router,
    payments_router,
    files_router,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    init_db()
    added = seed_permissions()
    ensure_super_admin_role()
    # Surface a missing signing key at startup rather than on first login
    load_app_config().auth.get_secret_key()
    logger.info("api_startup", db_path=str(current_db_path()), permissions_added=added)
    yield


async def crm_error_handler(request: Request, exc: CrmError) -> JSONResponse:
    """Translate business errors into JSON error responses."""
    if exc.status_code >= 500:
        logger.error("api.error", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="SHARE CRM API",
        description="Enrollment, attendance and customer management for SHARE fitness classes",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CrmError, crm_error_handler)

    # Include routers
    for router in (
        health_router,
        auth_router,
        public_router,
        portal_router,
        instructor_router,
        customers_router,
        terminations_router,
        paq_router,
        venues_router,
        terms_router,
        exercise_types_router,
        sessions_router,
        instructors_router,
        enrollments_router,
        booking_cancellations_router,
        class_cancellations_router,
        attendance_router,
        reports_router,
        class_rolls_router,
        staff_router,
        roles_router,
        permissions_router,
        emailing_router,
        payments_router,
        files_router,
    ):
        app.include_router(router)

    return app


# Default app instance for uvicorn
app = create_app()
