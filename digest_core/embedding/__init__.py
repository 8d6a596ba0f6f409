"""Embedding provider interface and the OpenAI implementation."""

from .provider import EmbeddingProvider
from .openai_provider import OpenAIEmbeddingProvider, is_transient_api_error

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "is_transient_api_error",
]
