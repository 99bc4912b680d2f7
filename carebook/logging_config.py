"""
logging_config.py
=================
Configures stdlib logging for the service: console output plus an "out" log
and an "error" log under LOG_DIR, both rotated by size.
"""

import logging
import logging.config
import os

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def build_logging_config(log_dir: str = None, level: str = None) -> dict:
    """Return the dictConfig used by configure_logging()."""
    log_dir = log_dir or config.LOG_DIR
    level = level or config.LOG_LEVEL
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
                "level": level,
            },
            "out_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "default",
                "level": "INFO",
                "filename": os.path.join(log_dir, "carebook-out.log"),
                "maxBytes": 10 * 1024 * 1024,
                "backupCount": 5,
                "encoding": "utf-8",
            },
            "error_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "default",
                "level": "ERROR",
                "filename": os.path.join(log_dir, "carebook-error.log"),
                "maxBytes": 10 * 1024 * 1024,
                "backupCount": 5,
                "encoding": "utf-8",
            },
        },
        "loggers": {
            "sqlalchemy.engine": {"level": "WARNING"},
        },
        "root": {
            "level": level,
            "handlers": ["console", "out_file", "error_file"],
        },
    }


def configure_logging(log_dir: str = None, level: str = None):
    """Create the log directory and install the logging configuration."""
    log_dir = log_dir or config.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_dir, level))
