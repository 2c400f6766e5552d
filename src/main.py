"""FastAPI application entry point."""

import logging
import structlog
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.admin.router import router as admin_session_router
from src.api.v1.submissions import router as submissions_router
from src.config import settings
from src.errors import LifecycleError, ValidationError
from src.landing.router import router as contact_router
from src.redis_client import close_redis

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if settings.environment == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level.upper(), logging.INFO)
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(
        "app_starting",
        environment=settings.environment,
        auto_resurface_on_close=settings.auto_resurface_on_close,
    )
    yield
    await close_redis()
    logger.info("app_shutting_down")


app = FastAPI(
    title="Lead Pipeline API",
    description="Contact submissions, pipeline status, tags and notes for the admin dashboard",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """Render lifecycle errors with a message the dashboard can show as-is."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render rejected request bodies and params in the lifecycle error shape."""
    problems = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    error = ValidationError(
        problems[0] if problems else None,
        submission_id=request.path_params.get("submission_id"),
        detail="; ".join(problems) or None,
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include routers
app.include_router(contact_router)
app.include_router(submissions_router)
app.include_router(admin_session_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Lead Pipeline API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "version": "0.1.0"}
