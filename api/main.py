"""
CRM API - Main Application.

FastAPI application with CORS enabled for frontend communication.
Domain errors are turned into `{"success": false, "message": ...}` responses
by the exception handlers registered here.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
from api import __version__
from domain.errors import (
    CRMError,
    Conflict,
    Forbidden,
    InvalidInput,
    InvalidOperation,
    NoChange,
    NotFound,
    Unauthorized,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title="CRM API",
    description="REST API for managing leads, sales, contracts and payments",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Credentials (the session cookie) require explicit origins, not "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_ERROR = {
    InvalidInput: 400,
    InvalidOperation: 400,
    NoChange: 400,
    Unauthorized: 401,
    Forbidden: 403,
    NotFound: 404,
    Conflict: 409,
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(CRMError)
def handle_crm_error(request: Request, exc: CRMError):
    status_code = next(
        (code for error_cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_cls)),
        400,
    )
    if status_code == 409:
        logger.warning("Request conflict", extra={"path": request.url.path, "reason": exc.message})
    return _error(status_code, exc.message)


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return _error(400, "Invalid request")
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return _error(400, f"{location}: {message}" if location else message)


@app.exception_handler(RuntimeError)
def handle_runtime_error(request: Request, exc: RuntimeError):
    logger.error("Request failed", extra={"path": request.url.path}, exc_info=exc)
    return _error(500, "Internal server error")


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "crm-api",
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "CRM API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


# Import and include routers
from api.routers import auth, leads, sales  # noqa: E402

app.include_router(auth.router, prefix="/api/v1", tags=["Auth"])
app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
