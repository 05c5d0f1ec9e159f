import logging
import sys
from typing import TextIO


NOISY_LOGGERS = ("httpx", "httpcore", "yfinance", "urllib3", "peewee")


def setup_logging(level: str = "INFO", stream: TextIO = sys.stdout) -> None:
    """
    Configure centralized application logging.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(stream)],
    )

    # Provider libraries log every request at INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve a namespaced logger.
    """
    return logging.getLogger(name)
