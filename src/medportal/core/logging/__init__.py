"""
Structured logging for medportal.

structlog is configured once at start-up. Events are rendered as JSON when
``LOG_JSON`` is set and as coloured console lines otherwise. Request-scoped
values bound through ``structlog.contextvars`` (request id, path) are merged into
every event, and a redaction step keeps credentials out of the output.
"""

import logging
from typing import Any, MutableMapping

import structlog

from medportal.core.config.settings import settings

REDACTED = "[redacted]"

# Event keys whose values are credentials and must never be rendered.
SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "token",
        "password",
        "authorization",
        "cookie",
        "jwt_secret_key",
    }
)


def redact_sensitive(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace the values of credential-bearing keys with a placeholder."""
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configures structlog and the standard library root logger.

    Standard library logging is routed at the same level so uvicorn and
    SQLAlchemy output lands next to application events.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        redact_sensitive,
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger(settings.PROJECT_NAME)
