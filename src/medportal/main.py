"""Main application entry point for the FastAPI application.

This module serves as the central entry point for the application.
It initializes the application and creates the FastAPI instance using
the application factory pattern.

Run with ``uvicorn medportal.main:app``.
"""

import uvicorn

from medportal.core.application import create_application
from medportal.core.config.settings import settings
from medportal.core.initialization import initialize_application

initialize_application()

app = create_application()


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    uvicorn.run(
        "medportal.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
