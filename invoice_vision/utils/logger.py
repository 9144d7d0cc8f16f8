"""
Logging configuration for the invoice vision service.
"""

import os
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

SERVICE_NAME = "invoice-vision"


def setup_logger(service_name: str = SERVICE_NAME, enable_file_logging: Optional[bool] = None) -> logging.Logger:
    """
    Set up the service logger.

    Console output honours LOG_LEVEL (default INFO). When file logging is on,
    DEBUG and above also go to a rotating file under logs/.

    Args:
        service_name: Logger name, also used for the log file name
        enable_file_logging: Force enable/disable file logging. If None, reads from DEBUG_LOG env var.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(service_name)

    # Clear any existing handlers
    logger.handlers.clear()

    if enable_file_logging is None:
        debug_log = os.getenv("DEBUG_LOG", "false").lower()
        enable_file_logging = debug_log in ("true", "1", "yes", "on")

    console_level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(console_level, int):
        console_level = logging.INFO

    if enable_file_logging:
        logs_dir = Path("logs")
        logs_dir.mkdir(exist_ok=True)

        log_file = logs_dir / f"{service_name}.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    ))
    console_handler.setLevel(console_level)
    logger.addHandler(console_handler)

    logger.setLevel(logging.DEBUG if enable_file_logging else console_level)

    # Prevent duplicate logs in parent loggers
    logger.propagate = False

    return logger
