"""
FastAPI API Service Entry Point
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy import text

from api.routes import booking, logbook
from database.connection import get_async_session
from shared.config import get_settings
from shared.logging_config import configure_logging
from shared.startup_validator import StartupValidationError, validate_startup_config
from training.errors import (
    DailyCapExceeded,
    EntryLocked,
    EntryNotFound,
    Forbidden,
    InvalidArgument,
    InvalidRole,
    SlotNotFound,
    SlotUnavailable,
    TrainingError,
    TransactionAborted,
    Unauthenticated,
)

# Configure structured JSON logging on startup
configure_logging()
logger = logging.getLogger(__name__)

# HTTP status per domain failure (first isinstance match wins)
ERROR_STATUS_CODES: list[tuple[type[TrainingError], int]] = [
    (Unauthenticated, 401),
    (Forbidden, 403),
    (InvalidArgument, 400),
    (InvalidRole, 400),
    (SlotNotFound, 404),
    (EntryNotFound, 404),
    (SlotUnavailable, 409),
    (DailyCapExceeded, 409),
    (EntryLocked, 409),
    (TransactionAborted, 409),
]


def status_code_for(error: TrainingError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return 400


app = FastAPI(
    title="Echo Training Records API",
    version="1.0.0",
)

settings = get_settings()
origins = settings.CORS_ORIGINS.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(booking.router)
app.include_router(logbook.router)


@app.on_event("startup")
async def startup_config_validation():
    """
    Validate critical configuration at startup (fail-fast).

    Raises:
        StartupValidationError: If critical configuration is invalid
    """
    logger.info("Running API startup configuration validation...")
    try:
        await validate_startup_config()
        logger.info("API startup configuration validation passed")
    except StartupValidationError as e:
        logger.critical(f"API startup blocked due to configuration errors: {e}")
        raise


@app.exception_handler(TrainingError)
async def training_error_handler(request: Request, exc: TrainingError) -> JSONResponse:
    """Render domain failures as {"ok": false, "error_code", "error_message", "details"}."""
    status_code = status_code_for(exc)
    logger.info(
        f"{request.method} {request.url.path} -> {status_code} {exc.error_code}",
        extra={"request_path": request.url.path},
    )
    return JSONResponse(status_code=status_code, content={"ok": False, **exc.to_dict()})


@app.exception_handler(RequestValidationError)
@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Return 400 with validation error details."""
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error_code": InvalidArgument.error_code,
            "error_message": "Validation error",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


def jsonable_errors(exc: Exception) -> list[dict]:
    errors = exc.errors() if hasattr(exc, "errors") else []
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in errors
    ]


@app.get("/health")
async def health_check() -> JSONResponse:
    """
    Health check endpoint for container health checks and monitoring.

    Returns:
        200 OK if the database answers SELECT 1
        503 Service Unavailable otherwise
    """
    health_status = {"status": "healthy", "database": "unknown"}
    status_code = 200

    try:
        async with get_async_session() as session:
            await session.execute(text("SELECT 1"))
            health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "degraded"
        status_code = 503

    return JSONResponse(status_code=status_code, content=health_status)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint"""
    return {"message": "Echo Training Records API - Use /health for health checks"}
