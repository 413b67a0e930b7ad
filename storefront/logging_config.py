from __future__ import annotations
import logging.config
from typing import Any


def logging_dict_config(level: str = "INFO") -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"std": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}},
        "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "std"}},
        "loggers": {"storefront": {"handlers": ["console"], "level": level.upper(), "propagate": False}},
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(logging_dict_config(level))
