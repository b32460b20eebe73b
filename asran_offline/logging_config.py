"""Logging configuration for the ASRAN offline cache service."""

import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, Dict

from .config import settings


def setup_logging(debug: bool | None = None, logs_dir: Path = Path("logs")) -> None:
    """Set up logging configuration for the gateway and the cache controller."""
    if debug is None:
        debug = settings.debug

    app_level = "DEBUG" if debug else "INFO"
    http_level = "INFO" if debug else "WARNING"
    uvicorn_level = "INFO" if debug else "WARNING"

    logs_dir.mkdir(parents=True, exist_ok=True)

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "detailed" if debug else "default",
                "stream": sys.stdout,
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "detailed",
                "filename": logs_dir / "asran-offline.log",
                "maxBytes": 10 * 1024 * 1024,  # 10MB
                "backupCount": 5,
            },
            "error_file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "detailed",
                "filename": logs_dir / "asran-offline-error.log",
                "maxBytes": 10 * 1024 * 1024,  # 10MB
                "backupCount": 5,
                "level": "ERROR",
            },
        },
        "root": {
            "handlers": ["console", "file", "error_file"],
            "level": "INFO",
        },
        "loggers": {
            "asran_offline": {"level": app_level},
            # Request lines from the origin client are only useful when debugging
            "httpx": {"level": http_level},
            "uvicorn": {"level": uvicorn_level},
        },
    }

    logging.config.dictConfig(logging_config)

    logger = logging.getLogger("asran_offline")
    logger.info(f"Logging configured - Debug mode: {debug}")
    logger.info(f"Log files: {logs_dir}/asran-offline.log, {logs_dir}/asran-offline-error.log")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)
