"""
FastAPI application entry point for the reminders backend.

This module initializes the FastAPI application with:
- Rate limiting (slowapi) shared by all routers
- CORS middleware for frontend development
- Exception handlers for consistent error responses
- Shutdown handling for per-user reminder sessions
- Logging configuration

Environment Variables:
    REMINDERS_DB_URL: SQLAlchemy database URL
    REMINDERS_ENV: Environment (production/development, default: development)
    REMINDERS_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL, default: INFO)
    REMINDERS_CORS_ORIGINS: Comma-separated allowed origins
"""

import os
from contextlib import asynccontextmanager
from typing import Dict, Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from backend.src.config.settings import get_settings
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.services.reminder_session import get_reminder_session_manager
from backend.src.utils.logging_config import init_logging, get_logger
from backend.src.utils.rate_limit import limiter


APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events:
    - Startup: Report push configuration
    - Shutdown: Stop every running reminder session

    Args:
        app: FastAPI application instance

    Yields:
        Control to the application
    """
    # Startup
    logger = get_logger("api")
    logger.info("Starting reminders backend application")

    settings = get_settings()
    if settings.vapid_configured:
        logger.info("Web Push enabled")
    else:
        logger.warning("VAPID keys not configured; push delivery is disabled")

    yield

    # Shutdown
    logger.info("Shutting down reminders backend application")
    await get_reminder_session_manager().stop_all()


# Initialize logging before creating app
init_logging()

# Create FastAPI application
app = FastAPI(
    title="Reminders API",
    description="Task reminders, in-app notifications and Web Push delivery.",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Configure CORS middleware for frontend development
_cors_origins = os.environ.get(
    "REMINDERS_CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors.

    Args:
        request: HTTP request
        exc: FastAPI RequestValidationError

    Returns:
        JSON response with validation error details
    """
    logger = get_logger("api")
    logger.warning(
        "Validation error",
        extra={
            "path": request.url.path,
            "method": request.method,
        }
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "message": "Request validation failed",
            "details": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                for e in exc.errors()
            ],
        }
    )


@app.exception_handler(ValidationError)
async def service_validation_exception_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """Handle business-rule validation failures raised by services."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation Error",
            "message": exc.message,
            "field": exc.field,
        }
    )


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(
    request: Request, exc: NotFoundError
) -> JSONResponse:
    """Handle lookups of resources that do not exist."""
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "Not Found",
            "message": str(exc),
        }
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """
    Handle SQLAlchemy database errors.

    Args:
        request: HTTP request
        exc: SQLAlchemy exception

    Returns:
        JSON response with database error message
    """
    logger = get_logger("db")
    logger.error(
        "Database error",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Database Error",
            "message": "An error occurred while accessing the database. "
                      "Please try again later.",
        }
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Handle all other unhandled exceptions.

    Args:
        request: HTTP request
        exc: Unhandled exception

    Returns:
        JSON response with generic error message
    """
    logger = get_logger("api")
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error": str(exc),
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred. Please try again later.",
        }
    )


# Health check endpoint


@app.get("/health", tags=["Health"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Health status and application information
    """
    return {
        "status": "healthy",
        "service": "reminders-backend",
        "version": APP_VERSION,
        "push_configured": get_settings().vapid_configured,
        "reminder_sessions": len(get_reminder_session_manager().active_users()),
    }


# API routers
from backend.src.api import notifications, reminders

app.include_router(notifications.router, prefix="/api")
app.include_router(reminders.router, prefix="/api")
