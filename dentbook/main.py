"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dentbook import __version__
from dentbook.api.appointment_action import router as appointment_action_router
from dentbook.api.v1.router import api_router
from dentbook.core.config import settings
from dentbook.core.exceptions import BookingValidationError, SchedulingError
from dentbook.core.logging import setup_logging
from dentbook.db.init_db import create_tables, init_db
from dentbook.db.session import AsyncSessionLocal
from dentbook.middleware.rate_limit import RateLimitMiddleware, build_storage

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info(f"Starting {settings.clinic_name} booking API (env={settings.env})")

    if settings.init_db_on_startup and settings.is_dev:
        logger.info("Initializing database...")
        await create_tables()
        async with AsyncSessionLocal() as session:
            await init_db(session)

    yield

    logger.info(f"Shutting down {settings.clinic_name} booking API")


app = FastAPI(
    title=f"{settings.clinic_name} Booking API",
    description="Appointment scheduling and availability for a multi-branch dental clinic",
    version=__version__,
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    openapi_url="/openapi.json" if settings.is_dev else None,
    lifespan=lifespan,
)

app.add_middleware(
    RateLimitMiddleware,
    storage=build_storage(settings.rate_limit_storage_url),
    enabled=settings.rate_limit_enabled,
)

if settings.is_dev:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    """Map scheduling errors to their HTTP status with a user-facing message."""
    content: dict = {"detail": exc.message}
    if isinstance(exc, BookingValidationError) and exc.field:
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    if settings.is_prod:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


app.include_router(api_router, prefix="/api/v1")
app.include_router(appointment_action_router)


@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Service banner."""
    return {
        "service": f"{settings.clinic_name} Booking API",
        "version": __version__,
        "docs": "/docs" if settings.is_dev else "Disabled in production",
    }
