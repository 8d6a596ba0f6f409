"""
OpenAI embedding provider.

Uses the async OpenAI client. Texts whose estimated token count exceeds the
model input limit are skipped before the request is made; rate limits (429)
and server errors (5xx) are retried with exponential backoff.
"""

import logging
import math
from typing import List, Optional

import numpy as np
import openai
from openai import AsyncOpenAI

from digest_core.config import EmbeddingConfig
from digest_core.embedding.provider import EmbeddingProvider
from digest_core.exceptions import (
    ConfigurationError,
    EmbeddingProviderError,
    NoValidInputError,
    RateLimitError,
)
from digest_core.utils.retry import retry_with_exponential_backoff
from digest_core.utils.security import sanitize_error

logger = logging.getLogger(__name__)


def is_transient_api_error(error: Exception) -> bool:
    """Rate limits, 5xx responses and connection failures are worth retrying."""
    if isinstance(error, openai.RateLimitError):
        return True
    if isinstance(error, openai.APIStatusError):
        return error.status_code >= 500
    return isinstance(error, openai.APIConnectionError)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Embedding provider backed by the OpenAI embeddings endpoint.

    Example:
        >>> provider = OpenAIEmbeddingProvider(EmbeddingConfig(api_key="sk-..."))
        >>> vectors = await provider.embed(["first text", "second text"])
        >>> len(vectors[0])
        1536
    """

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize provider.

        Args:
            config: EmbeddingConfig (defaults to text-embedding-3-small)
            client: Pre-built AsyncOpenAI client (tests pass a mock here)

        Raises:
            ConfigurationError: If neither a client nor an API key is available
        """
        self.config = config or EmbeddingConfig()

        if client is None:
            if not self.config.api_key:
                raise ConfigurationError(
                    "OPENAI_API_KEY is required for the OpenAI embedding provider"
                )
            # Retries are handled here, not inside the SDK
            client = AsyncOpenAI(api_key=self.config.api_key, max_retries=0)
        self.client = client

        self._request_with_retry = retry_with_exponential_backoff(
            max_retries=self.config.max_retries,
            exceptions=(openai.OpenAIError,),
            retry_condition=is_transient_api_error,
        )(self._request)

        logger.info(
            f"OpenAIEmbeddingProvider initialized: model={self.config.model}, "
            f"dimensions={self.dimensions}, batch_size={self.config.batch_size}"
        )

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    def estimate_tokens(self, text: str) -> int:
        """Rough token estimate (about 4 characters per token for English)."""
        return math.ceil(len(text) / self.config.chars_per_token)

    def accepts(self, text: str) -> bool:
        return self.estimate_tokens(text) <= self.config.max_input_tokens

    async def _request(self, batch: List[str]):
        return await self.client.embeddings.create(
            model=self.config.model,
            input=batch,
            encoding_format="float",
        )

    async def embed(self, texts: List[str]) -> List[np.ndarray]:
        if not texts:
            return []

        valid_texts = []
        for i, text in enumerate(texts):
            if self.accepts(text):
                valid_texts.append(text)
            else:
                logger.warning(
                    f"Skipping text {i}: ~{self.estimate_tokens(text)} tokens exceeds "
                    f"limit of {self.config.max_input_tokens}"
                )

        if not valid_texts:
            raise NoValidInputError(
                "No valid texts to embed (all exceed the token limit)",
                details={"input_count": len(texts)},
            )

        vectors: List[np.ndarray] = []
        batch_size = self.config.batch_size
        total_batches = (len(valid_texts) - 1) // batch_size + 1

        for start in range(0, len(valid_texts), batch_size):
            batch = valid_texts[start:start + batch_size]
            logger.debug(f"Embedding batch {start // batch_size + 1}/{total_batches}")

            try:
                response = await self._request_with_retry(batch)
            except openai.RateLimitError as e:
                raise RateLimitError(
                    f"OpenAI rate limit exceeded: {sanitize_error(e)}", cause=e
                ) from e
            except openai.OpenAIError as e:
                raise EmbeddingProviderError(
                    f"OpenAI embedding request failed: {sanitize_error(e)}",
                    details={"model": self.config.model, "batch_size": len(batch)},
                    cause=e,
                ) from e

            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(np.asarray(item.embedding, dtype=np.float64) for item in ordered)

        return vectors
