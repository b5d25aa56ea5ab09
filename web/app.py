"""
FastAPI application for the property listings API.

Production deployment configuration via environment variables.
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.listings import (
    AuthorizationError,
    ConflictError,
    ListingError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from utils.config import Config
from utils.logging import configure_logging
from web.admin_routes import router as admin_router
from web.property_routes import router as property_router
from web.submission_routes import router as submission_router


logger = logging.getLogger(__name__)

# =============================================================================
# Environment Configuration
# =============================================================================

IS_PRODUCTION = os.getenv("PRODUCTION", "").lower() == "true"

APP_VERSION = "0.1.0"

# Most specific first; the first isinstance match wins
ERROR_STATUS = (
    (ValidationError, 422),
    (ConflictError, 409),
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (TransientError, 503),
)


def status_for(error: ListingError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def error_body(error: ListingError) -> dict:
    return {
        "error": error.code,
        "detail": error.message,
        "fields": list(getattr(error, "errors", [])),
    }


def create_app(config: Config = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or Config.load()
    configure_logging(config.log_level)

    app = FastAPI(
        title="UAE Property Listings",
        description="Property request intake, admin approval and listing browse API",
        version=APP_VERSION,
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=config.debug and not IS_PRODUCTION,
    )

    # Healthchecks perform no IO and are registered before anything else
    @app.get("/", include_in_schema=False)
    def root():
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        return {"status": "healthy"}

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials="*" not in config.cors_origins,
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )

    @app.exception_handler(ListingError)
    async def listing_error_handler(request: Request, exc: ListingError):
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=status, content=error_body(exc))

    app.include_router(submission_router)
    app.include_router(property_router)
    app.include_router(admin_router)

    @app.get("/api/health")
    def api_health():
        return {
            "status": "healthy",
            "version": APP_VERSION,
            "environment": "production" if IS_PRODUCTION else "development",
            "store_backend": config.store_backend,
        }

    return app


# Create app instance for uvicorn
app = create_app()
