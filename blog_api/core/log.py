from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _level_from_string(level: str) -> int:
    value = logging.getLevelName((level or "INFO").upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logging(level: str) -> logging.Logger:
    """
    Attach one stream handler to the package logger. Idempotent, so repeated
    app creation (tests) does not stack handlers.
    """
    logger = logging.getLogger("blog_api")
    logger.setLevel(_level_from_string(level))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    return logger
