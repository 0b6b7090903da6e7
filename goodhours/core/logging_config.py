"""Logging setup shared by the API process and scripts."""

import logging
import sys

from goodhours.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def setup_logging() -> logging.Logger:
    """Configure root logging once and return the application logger."""
    global _configured
    if not _configured:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(settings.log_level.upper())
        # SQLAlchemy engine echo is controlled by SQL_DEBUG instead
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        _configured = True
    return logging.getLogger("goodhours")
