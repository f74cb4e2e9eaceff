"""Logging configuration for Pixel Forge"""
from __future__ import annotations

import logging
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

ROOT_LOGGER_NAME = "pixel_forge"
DEBUG_ENV_VAR = "PIXEL_FORGE_DEBUG"


class SafeRotatingFileHandler(logging.handlers.RotatingFileHandler):
    """Rotating file handler that tolerates its directory disappearing."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            super().emit(record)
        except OSError:
            # Log directory was cleaned up (e.g., in tests)
            pass

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        try:
            return bool(super().shouldRollover(record))
        except OSError:
            return False


def setup_logging(
    log_dir: Path | None = None, log_level: str = "INFO"
) -> logging.Logger:
    """
    Configure engine-wide logging.

    Args:
        log_dir: Directory for log files (defaults to ~/.pixel_forge/logs)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        Configured logger instance
    """
    if os.environ.get(DEBUG_ENV_VAR, "").lower() in ("1", "true", "yes"):
        log_level = "DEBUG"

    if log_dir is None:
        log_dir = Path.home() / ".pixel_forge" / "logs"

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(
        logging.Formatter("%(levelname)s - %(name)s - %(message)s")
    )
    logger.addHandler(console_handler)

    log_file = log_dir / "pixel_forge.log"
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = SafeRotatingFileHandler(
            log_file, maxBytes=5_000_000, backupCount=3  # 5MB
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
            )
        )
        logger.addHandler(file_handler)
    except OSError:
        # Console-only logging if the log directory is unusable
        logger.warning(f"Could not open log file {log_file}, logging to console only")

    logger.info("=" * 80)
    logger.info(
        f"Pixel Forge Session Started - {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')}"
    )
    logger.info(f"Log Level: {log_level}")
    logger.info(f"Log File: {log_file}")
    logger.info("=" * 80)

    if log_level.upper() == "DEBUG":
        logger.debug(f"Debug mode enabled via {DEBUG_ENV_VAR} environment variable")

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        module_name: Name of the module requesting the logger

    Returns:
        Logger instance for the module
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")

    # setup_logging() was never called (library use, tests): console only
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    if not root_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(
            logging.Formatter("%(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(console_handler)
        root_logger.setLevel(logging.DEBUG)

        # Keep propagation so pytest's caplog can capture messages
        root_logger.propagate = True

    return logger
