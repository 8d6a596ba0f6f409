"""Logging utilities for the digest pipeline."""

import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logger(
    name: str,
    log_level: str = "INFO",
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    log_file: Optional[str] = None,
    overwrite: bool = False
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Args:
        name: Logger name (typically "digest_core" or __name__)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log message format
        log_file: Optional path to log file
        overwrite: If True, overwrite log file instead of appending (default: False)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper()))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        mode = 'w' if overwrite else 'a'
        file_handler = logging.FileHandler(log_file, mode=mode)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_from_config(pipeline_config) -> logging.Logger:
    """
    Configure the package logger from a PipelineConfig.

    Args:
        pipeline_config: digest_core.config.PipelineConfig

    Returns:
        The configured "digest_core" logger
    """
    return setup_logger(
        "digest_core",
        log_level=pipeline_config.log_level,
        log_format=pipeline_config.log_format,
        log_file=pipeline_config.log_file,
    )
