"""
CivicVoice Backend Application

Civic issue reporting with an official status workflow, plus community
surveys with one vote per resident.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.exceptions import AppError
from core.middleware import REQUEST_ID_HEADER, RequestContextMiddleware, SecurityHeadersMiddleware

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong!"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await create_start_app_handler(app)()
    yield
    # Shutdown
    await create_stop_app_handler(app)()


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    content = {"status": "error", "message": message}
    content.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def register_exception_handlers(application: FastAPI) -> None:
    """Render every failure as ``{status: "error", message}``."""

    @application.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        if exc.is_operational:
            logger.info(
                "request_failed",
                error_type=exc.kind,
                status_code=exc.status_code,
                message=exc.message,
            )
            return _error(exc.status_code, exc.message)

        logger.error("internal_error", error_type=exc.kind, message=exc.message)
        return _error(exc.status_code, GENERIC_ERROR_MESSAGE, detail=exc.message if settings.DEBUG else None)

    @application.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        response = _error(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", errors=exc.errors())

    @application.exception_handler(ValidationError)
    async def model_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation failed",
            errors=exc.errors(include_url=False, include_context=False),
        )

    # Add global exception handler to ensure CORS headers are present on error responses
    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler to catch unhandled exceptions.

        Storage outages and bugs are logged in full but never shown to the
        client unless DEBUG is on.
        """
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )

        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            GENERIC_ERROR_MESSAGE,
            detail=f"{type(exc).__name__}: {exc}" if settings.DEBUG else None,
        )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Civic issue reporting and community surveys",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - processed in reverse)
    # 1. Security headers - added to all responses
    application.add_middleware(SecurityHeadersMiddleware)

    # 2. Request context - binds the request ID for structured logs
    application.add_middleware(RequestContextMiddleware)

    # 3. CORS - restricted to specific methods and headers
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            REQUEST_ID_HEADER,
        ],
        expose_headers=[REQUEST_ID_HEADER],
    )

    # 4. GZip compression for responses
    application.add_middleware(GZipMiddleware, minimum_size=1000)

    # Include routers
    application.include_router(api_v1_router, prefix="/api/v1")

    register_exception_handlers(application)

    return application


app = create_application()


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers and monitoring."""
    return {"status": "healthy", "service": "civicvoice-api"}


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
    }
