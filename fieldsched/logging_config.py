# fieldsched/logging_config.py
#
# Centralized logging configuration for the scheduler

import logging
import sys
import os

_CONFIGURED = False


def setup_logging(log_level: str = None):
    """
    Setup console logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
                   Defaults to INFO, or from LOG_LEVEL env var
    """
    global _CONFIGURED

    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    # uvicorn reload and test collection import us more than once
    if not _CONFIGURED:
        formatter = logging.Formatter(
            fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
        _CONFIGURED = True

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("gql").setLevel(logging.WARNING)

    return root_logger
