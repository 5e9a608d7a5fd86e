"""
Logging setup
"""
import logging
import logging.config
import sys
from typing import Any, Dict

from .config import Settings


def setup_logging(settings: Settings) -> logging.Logger:
    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": "detailed",
                "stream": sys.stdout,
            },
        },
        "loggers": {
            "bcc_invoices": {
                "level": settings.LOG_LEVEL,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
        },
    }
    logging.config.dictConfig(logging_config)

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger = logging.getLogger("bcc_invoices")
    logger.info("Logging configured (level=%s, env=%s)", settings.LOG_LEVEL, settings.ENVIRONMENT)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"bcc_invoices.{name}")
