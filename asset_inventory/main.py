# ============================================================================
# Asset Inventory - FastAPI Application Entry Point
# ============================================================================
"""
Main FastAPI application module for the asset inventory.

This module sets up the FastAPI application with:
- Application startup/shutdown event handlers (database tables, connections)
- Error handling that maps the inventory exception taxonomy to HTTP codes
- API router integration under /api/v1

Error mapping:
    RecordNotFoundError                                 -> 404
    InvalidTransitionError, ExecutionBlockedError,
    StaleVersionError, ScanInProgressError              -> 409
    ValidationError (archive input), request validation -> 422

Usage:
    Direct: python -m asset_inventory.main
    Server: uvicorn asset_inventory.main:app --host 0.0.0.0 --port 8000
"""

import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .api.v1 import api_router
from .api.v1.models import ErrorResponse
from .config import settings
from .exceptions import (
    ExecutionBlockedError,
    InvalidTransitionError,
    RecordNotFoundError,
    ScanInProgressError,
    StaleVersionError,
    ValidationError,
)
from .services.database_service import database_service

logger = logging.getLogger("asset_inventory.main")

# ============================================================================
# APPLICATION INITIALIZATION
# ============================================================================

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=(
        "Digital asset inventory with reachability-aware usage tracking "
        "and archive compliance lifecycle."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# ============================================================================
# APPLICATION EVENT HANDLERS
# ============================================================================


@app.on_event("startup")
async def startup_event() -> None:
    """Create database tables if they do not exist yet."""
    logger.info(f"Starting {settings.api_title} {settings.api_version} (debug: {settings.debug})")
    await database_service.init_db()


@app.on_event("shutdown")
async def shutdown_event() -> None:
    await database_service.close()


# ============================================================================
# ERROR HANDLERS
# ============================================================================


def _error(status_code: int, error: str, detail: str, **extra) -> JSONResponse:
    error_response = ErrorResponse(error=error, detail=detail, timestamp=datetime.now(), **extra)
    return JSONResponse(status_code=status_code, content=error_response.model_dump(mode="json", exclude_none=True))


@app.exception_handler(RecordNotFoundError)
async def not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    return _error(404, "Not Found", str(exc))


@app.exception_handler(ExecutionBlockedError)
async def execution_blocked_handler(request: Request, exc: ExecutionBlockedError) -> JSONResponse:
    return _error(409, "Archive Blocked", str(exc), issues=exc.issues)


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return _error(409, "Invalid Transition", str(exc))


@app.exception_handler(StaleVersionError)
async def stale_version_handler(request: Request, exc: StaleVersionError) -> JSONResponse:
    return _error(409, "Stale Version", str(exc))


@app.exception_handler(ScanInProgressError)
async def scan_in_progress_handler(request: Request, exc: ScanInProgressError) -> JSONResponse:
    return _error(409, "Scan In Progress", str(exc))


@app.exception_handler(ValidationError)
async def archive_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    detail = f"{exc.field}: {exc}" if exc.field else str(exc)
    return _error(422, "Validation Error", detail)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(422, "Validation Error", str(exc))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, f"HTTP {exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unexpected errors.

    The actual error text is only included in debug mode.
    """
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error(500, "Internal Server Error", str(exc) if settings.debug else "An unexpected error occurred")


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================

app.include_router(api_router, prefix="/api/v1")


@app.get("/", tags=["root"])
async def root() -> Dict[str, Any]:
    """API metadata."""
    return {
        "name": settings.api_title,
        "version": settings.api_version,
        "status": "running",
        "docs_url": "/docs",
        "health_check": "/api/v1/health",
        "timestamp": datetime.now(),
    }


# ============================================================================
# DEVELOPMENT SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    uvicorn.run("asset_inventory.main:app", host="0.0.0.0", port=8000, log_level="info")
