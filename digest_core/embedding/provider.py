"""
Embedding provider interface.

Engines receive a provider instance in their constructor; tests substitute
a fake that maps text to deterministic vectors.
"""

from abc import ABC, abstractmethod
from typing import List

import numpy as np


class EmbeddingProvider(ABC):
    """
    Maps text to fixed-dimension float vectors.

    Implementations:
    - OpenAIEmbeddingProvider: OpenAI embeddings API (AsyncOpenAI)

    Contract for embed():
    - Empty input returns []
    - Texts over the provider's length limit are skipped with a warning,
      so the result may be shorter than the input
    - If every text is over the limit, NoValidInputError is raised
    - Transport and API failures surface as ProviderError subclasses
    """

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of every vector this provider returns."""
        pass

    @abstractmethod
    async def embed(self, texts: List[str]) -> List[np.ndarray]:
        """
        Embed a list of texts.

        Args:
            texts: Texts to embed

        Returns:
            One vector per accepted text, in input order
        """
        pass

    def accepts(self, text: str) -> bool:
        """Whether text is within the provider's input limit."""
        return True

    async def embed_single(self, text: str) -> np.ndarray:
        """Embed one text."""
        vectors = await self.embed([text])
        return vectors[0]
