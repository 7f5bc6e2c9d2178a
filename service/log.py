import logging
import sys

from service.constants import APP_NAME

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# The prediction client polls every job about once per second
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """
    Configure the root logger to write to stdout.

    Args:
        level: Log level name; unknown names fall back to INFO
        debug: Force DEBUG and include line numbers in every record
    """
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(DEBUG_LOG_FORMAT if debug else LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Replace handlers so repeated setup (reloads, tests) does not duplicate output
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger for a module, or the application logger when no name is given"""
    return logging.getLogger(name or APP_NAME)
