"""
Logging helpers.

Library modules log through ``logging.getLogger(__name__)`` and never
attach handlers themselves. Entry points call :func:`get_logger` once on
the package logger so every ``copula_risk.*`` record shares one handler.
"""

import logging
from typing import Set

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

_configured_loggers: Set[str] = set()


def get_logger(name: str = "copula_risk", level: int = logging.INFO) -> logging.Logger:
    """
    Return a logger with the package-wide format.

    Parameters
    ----------
    name : str
        Logger name (default: the package logger).
    level : int
        Level applied when the logger is configured for the first time.

    Returns
    -------
    logging.Logger
    """
    logger = logging.getLogger(name)

    if name in _configured_loggers:
        return logger

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(level)

    _configured_loggers.add(name)
    return logger
