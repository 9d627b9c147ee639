"""
Logging Configuration

Console logging for the API process. Modules log through
`logging.getLogger(__name__)`; this only wires handlers and levels.
"""

import logging.config

from gsos.core.config import settings


def build_logging_config(level: str | None = None) -> dict:
    """Return a dictConfig for the API process."""
    log_level = (level or settings.log_level).upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "{asctime} {levelname} [{name}:{lineno}] {message}",
                "style": "{",
            },
        },
        "handlers": {
            "console": {
                "level": log_level,
                "class": "logging.StreamHandler",
                "formatter": "detailed",
            },
        },
        "loggers": {
            "gsos": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
            # SQL echo is controlled by DB_ECHO, keep the pool quiet otherwise
            "sqlalchemy.engine": {
                "level": "WARNING",
            },
        },
        "root": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Apply the logging configuration."""
    logging.config.dictConfig(build_logging_config(level))
