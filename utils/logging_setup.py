"""Logging configuration for the command line front end"""

import logging
import os
from typing import Optional

from settings import DEBUG_LOG_FILE, LOG_LEVEL

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that are too chatty at DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access")


def setup_logging(
    level: Optional[str] = None,
    debug: bool = False,
    log_file: str = DEBUG_LOG_FILE,
) -> logging.Logger:
    """
    Configure the root logger.

    Without debug, only a console handler at ``level`` is installed. In
    debug mode everything is logged at DEBUG to the console and appended
    to ``log_file``.

    Args:
        level: Level name (defaults to LOG_LEVEL)
        debug: Whether debug mode is enabled
        log_file: Path of the debug log file

    Returns:
        The root logger
    """
    root_logger = logging.getLogger()

    # Clear existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    if debug:
        root_logger.setLevel(logging.DEBUG)
    else:
        level_name = (level or LOG_LEVEL).upper()
        root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if debug:
        log_path = os.path.abspath(log_file)
        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')  # 'a' to append
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        root_logger.info(f"Debug logging enabled - appending to {log_path}")
    else:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
