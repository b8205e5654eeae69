"""Application factory for creating and configuring the FastAPI application.

This module provides a factory function to create a properly configured FastAPI application
with all necessary middleware, exception handlers, and routers registered.
"""

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from medportal.adapters.api.v1 import api_router
from medportal.core.config.settings import settings
from medportal.core.handlers import register_exception_handlers
from medportal.core.lifecycle import create_lifespan_manager
from medportal.core.middleware import configure_middleware
from medportal.core.ratelimiter import get_limiter


def create_application() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Credential rotation service of the medportal healthcare portal.",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=create_lifespan_manager(),
        default_response_class=JSONResponse,
    )

    # SlowAPIMiddleware reads the limiter from app state.
    app.state.limiter = get_limiter()

    configure_middleware(app)
    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api/v1")

    return app
