"""Process-level setup that must happen before the application object is built."""

from dotenv import load_dotenv

from medportal.core.config.settings import settings
from medportal.core.logging import configure_logging, logger
from medportal.utils.i18n import setup_i18n


def initialize_application() -> None:
    """Load ``.env``, configure structlog and load the message catalogues.

    Variables already present in the environment win over ``.env`` entries.
    """
    load_dotenv(override=False)
    configure_logging(log_level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    setup_i18n()

    if settings.LEGACY_REFRESH_ENABLED:
        logger.warning(
            "legacy_refresh_enabled",
            detail="fingerprint-less refresh requests are served without rotation",
        )
