"""
Custom exception hierarchy for digest_core.

Provides typed exceptions for the aggregation, clustering and retrieval
engines and for the collaborators they talk to.

Exception Hierarchy:
    DigestCoreError (base)
    ├── ValidationError → ConfigurationError, DimensionMismatchError,
    │                     EmptyInputError, DigestShapeError
    ├── ProviderError → EmbeddingProviderError, NoValidInputError, RateLimitError,
    │                   StorageError → VectorStoreError
    └── RetrievalError → PartialTopicFailure

Usage:
    from digest_core.exceptions import DimensionMismatchError, ProviderError

    try:
        vector = aggregate_embeddings(embeddings)
    except DimensionMismatchError as e:
        logger.error(f"Cannot aggregate article: {e}")
        raise
"""

from typing import Any, Dict, Optional


class DigestCoreError(Exception):
    """Base exception for all digest_core errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {type(self.cause).__name__}: {self.cause})"
        return self.message


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(DigestCoreError):
    """Error validating input data or configuration."""
    pass


class ConfigurationError(ValidationError):
    """Error in configuration (missing keys, invalid values)."""
    pass


class DimensionMismatchError(ValidationError, ValueError):
    """Embeddings of differing length were compared or combined."""

    def __init__(self, expected: int, actual: int, index: Optional[int] = None):
        location = f" at index {index}" if index is not None else ""
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}{location}",
            details={"expected": expected, "actual": actual, "index": index},
        )
        self.expected = expected
        self.actual = actual
        self.index = index


class EmptyInputError(ValidationError, ValueError):
    """Aggregating or averaging an empty set of vectors."""
    pass


class DigestShapeError(ValidationError):
    """Generated cluster digest does not have the required shape."""
    pass


# =============================================================================
# Provider Errors (Embedding Provider, Vector Store backends)
# =============================================================================

class ProviderError(DigestCoreError):
    """Error from an external collaborator (embedding API, vector database)."""
    pass


class EmbeddingProviderError(ProviderError):
    """Embedding provider request failed."""
    pass


class NoValidInputError(ProviderError):
    """Every candidate text was rejected by the provider's length limit."""
    pass


class RateLimitError(ProviderError):
    """Provider rate limit exceeded."""
    pass


# =============================================================================
# Storage Errors
# =============================================================================

class StorageError(ProviderError):
    """Error in the storage layer."""
    pass


class VectorStoreError(StorageError):
    """Error in vector store operations."""
    pass


# =============================================================================
# Retrieval Errors
# =============================================================================

class RetrievalError(DigestCoreError):
    """Error in retrieval pipeline."""
    pass


class PartialTopicFailure(RetrievalError):
    """One topic of a multi-topic fan-out failed. Non-fatal."""

    def __init__(self, topic: str, cause: Exception):
        super().__init__(
            f"Retrieval failed for topic '{topic}'",
            details={"topic": topic},
            cause=cause,
        )
        self.topic = topic


# =============================================================================
# Helper functions
# =============================================================================

def wrap_exception(
    exception: Exception,
    target_type: type = DigestCoreError,
    message: Optional[str] = None
) -> DigestCoreError:
    """
    Wrap a generic exception in a typed digest_core exception.

    Args:
        exception: Original exception
        target_type: Type of DigestCoreError to create
        message: Optional custom message (defaults to str(exception))

    Returns:
        Typed DigestCoreError with original exception as cause
    """
    if isinstance(exception, target_type):
        return exception
    msg = message or str(exception)
    return target_type(
        message=msg,
        details={"original_type": type(exception).__name__},
        cause=exception
    )


def is_recoverable(exception: Exception) -> bool:
    """
    Check if an exception is recoverable (the caller may retry or continue).

    Unrecoverable exceptions:
    - KeyboardInterrupt, SystemExit
    - MemoryError, RecursionError
    - ConfigurationError (fix config first)
    - DimensionMismatchError (data is inconsistent, retrying won't help)
    - NoValidInputError (same input will be rejected again)
    """
    unrecoverable_types = (
        KeyboardInterrupt,
        SystemExit,
        MemoryError,
        RecursionError,
        ConfigurationError,
        DimensionMismatchError,
        NoValidInputError,
    )
    return not isinstance(exception, unrecoverable_types)
