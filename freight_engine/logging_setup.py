import logging
import os
import sys

LOGGER_NAME = "freight-engine"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str | None = None, stream=None) -> logging.Logger:
    """Configure the project logger; *level* defaults to ``LOG_LEVEL`` (INFO)."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).strip().upper())

    # reload contexts (uvicorn --reload, repeated CLI calls) must not stack handlers
    if not any(getattr(h, "_freight_engine", False) for h in logger.handlers):
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler._freight_engine = True
        logger.addHandler(handler)
    return logger
