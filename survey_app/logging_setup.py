"""Central logging configuration for the application.

Applies a root stdout handler so all module loggers emit without per-module
setup. Keeps uvicorn loggers on the same handler and avoids duplicate
handlers on reloads.
"""
from __future__ import annotations
import copy
import logging
import os
from logging.config import dictConfig

_DICT_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "INFO",
            "formatter": "default",
            "stream": "ext://sys.stdout",
        }
    },
    "root": {"level": "INFO", "handlers": ["console"]},
    "loggers": {
        "survey_app": {"level": "INFO"},
        "sqlalchemy.engine": {"level": "WARNING"},
        "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.error": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
    },
}


def configure_logging(level: str | None = None) -> None:
    """Configure application-wide logging once.

    ``level`` (or ``LOG_LEVEL``) sets the ``survey_app`` logger level. If the
    root logger already has handlers, nothing is changed.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    config = copy.deepcopy(_DICT_CONFIG)
    resolved = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    config["loggers"]["survey_app"]["level"] = resolved
    config["handlers"]["console"]["level"] = resolved if resolved == "DEBUG" else "INFO"
    dictConfig(config)
