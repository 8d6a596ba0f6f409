"""Shared utilities: logging setup, retry policy, error sanitization."""

from .logger import setup_logger, setup_from_config
from .retry import retry_with_exponential_backoff, compute_backoff_delay
from .security import sanitize_error, mask_api_key

__all__ = [
    "setup_logger",
    "setup_from_config",
    "retry_with_exponential_backoff",
    "compute_backoff_delay",
    "sanitize_error",
    "mask_api_key",
]
