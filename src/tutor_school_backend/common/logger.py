'''
Application logger. Every module logs through the single `log` instance.
'''
import logging
import sys

from .config import settings


def setup_logger(name: str = "TS-backend", level: str = settings.LOG_LEVEL) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(module)s - %(levelname)s\n - %(message)s'
        ))
        logger.addHandler(handler)

    return logger


log = setup_logger()
