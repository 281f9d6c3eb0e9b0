"""Workforce Attendance — FastAPI Application Factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from workforce.approvals.router import router as approvals_router
from workforce.attendance.router import router as attendance_router
from workforce.common.exceptions import register_exception_handlers
from workforce.common.rate_limit import limiter
from workforce.config import settings
from workforce.database import engine
from workforce.leave.router import router as leave_router
from workforce.overtime.router import router as overtime_router
from workforce.settings.router import router as settings_router

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Starting Workforce Attendance (%s, tz=%s)", settings.ENVIRONMENT, settings.TIMEZONE)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    _configure_logging()

    app = FastAPI(
        title="Workforce Attendance",
        description="Attendance day-status engine and multi-level request approvals",
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
    app.include_router(attendance_router, prefix="/api/v1/attendance", tags=["attendance"])
    app.include_router(approvals_router, prefix="/api/v1/approvals", tags=["approvals"])
    app.include_router(leave_router, prefix="/api/v1/leave", tags=["leave"])
    app.include_router(overtime_router, prefix="/api/v1/overtime", tags=["overtime"])
    app.include_router(settings_router, prefix="/api/v1/settings", tags=["settings"])

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (``workforce-api`` console script)."""
    import uvicorn

    uvicorn.run(
        "workforce.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
