"""HTTP middleware stack.

Registration order matters: Starlette runs the middleware added last first, so
the request context is bound before the global limiter and CORS see the request.
"""

import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from medportal.core.config.settings import settings
from medportal.utils.i18n import get_request_language

REQUEST_ID_HEADER = "X-Request-ID"
AUTH_PATH_PREFIX = "/api/v1/auth"


def configure_middleware(app: FastAPI) -> None:
    """Attach CORS, the slowapi limiter and the request context middleware to ``app``."""
    # Auth cookies travel with credentials, so origins must be explicit.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept-Language", REQUEST_ID_HEADER],
        expose_headers=["Retry-After", REQUEST_ID_HEADER],
    )
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(request_context_middleware)


async def request_context_middleware(request: Request, call_next):
    """Bind per-request log context and decorate the response.

    * ``request.state.language`` and ``Content-Language`` carry the resolved locale.
    * A request id (taken from ``X-Request-ID`` or generated) is bound to every
      structlog event emitted while handling the request and echoed back.
    * Responses under ``/api/v1/auth`` carry tokens and are marked ``no-store``.
    """
    language = get_request_language(request)
    request.state.language = language
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)
    try:
        response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()

    response.headers["Content-Language"] = language
    response.headers[REQUEST_ID_HEADER] = request_id
    if request.url.path.startswith(AUTH_PATH_PREFIX):
        response.headers["Cache-Control"] = "no-store"
        response.headers["Pragma"] = "no-cache"
    return response
