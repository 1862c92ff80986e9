"""
Logging utilities for the DPSK manager
Console logging goes to stderr with color support, stdout is left for results
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import colorlog

ROOT_LOGGER = "dpsk_manager"


def setup_logging(
    name: str = ROOT_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    use_color: bool = True
) -> logging.Logger:
    """
    Set up logging with optional file output and color support.

    Calling it again on a configured logger only updates the level and
    attaches the log file if one was not attached before.

    Args:
        name: Logger name (the package logger by default)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        use_color: Use colored console output

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers
    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
               for h in logger.handlers):
        if use_color:
            formatter = colorlog.ColoredFormatter(
                "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s: %(message)s",
                log_colors={
                    'DEBUG': 'cyan',
                    'INFO': 'green',
                    'WARNING': 'yellow',
                    'ERROR': 'red',
                    'CRITICAL': 'red,bg_white',
                }
            )
        else:
            formatter = logging.Formatter(
                "%(levelname)-8s %(name)s: %(message)s"
            )

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    return logger


def default_log_file(name: str = ROOT_LOGGER) -> Optional[Path]:
    """Daily log file under DPSK_MANAGER_HOME, or None when it is not set."""
    home = os.getenv("DPSK_MANAGER_HOME")
    if not home:
        return None
    return Path(home) / "logs" / f"{name}_{datetime.now().strftime('%Y%m%d')}.log"


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger below the package logger.

    The package logger is configured on first use so library modules log
    consistently even when no CLI entry point ran setup_logging().

    Args:
        name: Logger name, typically __name__

    Returns:
        Logger instance
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        setup_logging(ROOT_LOGGER, logging.INFO, default_log_file())

    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
