"""
Loggers for the latopt modules.

Each module calls ``get_logger(__name__)`` once at import. The verbosity of
the whole package is read from ``LATOPT_LOG_LEVEL`` (a standard level name such
as ``DEBUG`` or ``WARNING``); unknown names fall back to ``INFO``. Output
formatting and destinations belong to the application embedding the planner,
so no handler is ever installed here.
"""

import logging
import os

ENV_VAR = "LATOPT_LOG_LEVEL"


def _level_from_env() -> int:
    level = logging.getLevelName(os.environ.get(ENV_VAR, "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


_LEVEL = _level_from_env()


def get_logger(name: str) -> logging.Logger:
    """
    Fetch the logger for a latopt module.

    Args:
        name: Dotted module name, normally ``__name__``

    Returns:
        Logger set to the package level, without handlers
    """
    logger = logging.getLogger(name)
    logger.setLevel(_LEVEL)
    return logger
