"""Workforce HR — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from workforce.attendance.router import router as attendance_router
from workforce.common.exceptions import register_exception_handlers
from workforce.common.rate_limit import limiter
from workforce.config import settings
from workforce.core_hr.router import departments_router, employees_router
from workforce.database import engine
from workforce.leave.router import router as leave_router
from workforce.schedules.router import router as schedules_router
from workforce.shifts.router import router as shifts_router
from workforce.tasks.router import router as tasks_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Workforce API starting (%s)", settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("Workforce API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Workforce HR",
        description="Employees, departments, leave, attendance, shifts and tasks",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(employees_router, prefix="/api/v1/employees", tags=["employees"])
    app.include_router(departments_router, prefix="/api/v1/departments", tags=["departments"])
    app.include_router(attendance_router, prefix="/api/v1/attendance", tags=["attendance"])
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(shifts_router, prefix="/api/v1/shifts", tags=["shifts"])
    app.include_router(schedules_router, prefix="/api/v1/schedules", tags=["schedules"])
    app.include_router(tasks_router, prefix="/api/v1/tasks", tags=["tasks"])

    return app


app = create_app()
