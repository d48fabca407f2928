"""
restrules library containing logging helper functionality
"""

import logging
import logging.config
from typing import Optional

from ..schemas import config


def configure_logging(conf: config.LoggingConfig) -> logging.Logger:
    """
    Apply the logging configuration and return the project's top-level logger
    """

    logging.config.dictConfig(conf.model_dump())
    return logging.getLogger("restrules")


def enforce_logger(logger: Optional[logging.Logger] = None, name: Optional[str] = None) -> logging.Logger:
    """
    Enforce availability of a working logger, falling back to the named one
    """

    if logger is not None and isinstance(logger, logging.Logger):
        return logger
    elif logger is not None:
        raise TypeError(f"Expected 'logging.Logger', got {type(logger)}")
    log = logging.getLogger(name or __name__)
    log.debug(f"No logger specified for function call; using {log.name!r}.")
    return log


class NoDebugFilter(logging.Filter):
    """
    Logging filter that drops DEBUG records of the named logger, passing anything else
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if super().filter(record):
            return record.levelno > logging.DEBUG
        return True
