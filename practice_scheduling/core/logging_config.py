"""Logging configuration"""
import logging
import sys

from practice_scheduling.core import config


NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "sqlalchemy.orm",
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
)


def setup_logging(verbose: bool = True) -> None:
    """Configure application logging"""
    if verbose:
        level = getattr(logging, config.LOG_LEVEL, logging.INFO)
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if not verbose:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.ERROR)
