"""Entry point: load settings, configure logging, start polling."""

import logging
import sys

from plexcaster.bot import create_application
from plexcaster.config import get_settings
from plexcaster.domain.exceptions import ConfigurationError
from plexcaster.infrastructure.observability import configure_logging

logger = logging.getLogger(__name__)


def main() -> int:
    """Run the bot until interrupted.

    Returns:
        Process exit code
    """
    settings = get_settings()
    configure_logging(
        log_level=settings.observability.level,
        json_format=settings.observability.json_format,
        app_name=settings.app_name,
    )

    try:
        settings.validate_required()
    except ConfigurationError as e:
        logger.critical("%s", e.message)
        return 1

    logger.info("Starting %s", settings.app_name)
    application = create_application(settings)
    application.run_polling(allowed_updates=["message", "callback_query"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
