"""
Abstract Vector Store Adapter Interface

Defines the contract that all vector store implementations must follow.
The clustering and retrieval engines depend only on this interface, so the
backend (PostgreSQL + pgvector, in-memory) can be swapped without code
changes.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from digest_core.models import CollectionInfo, DocumentUnit, ScoredResult
from digest_core.storage.filters import ArticleFilter


class VectorStoreAdapter(ABC):
    """
    Abstract interface for article vector storage backends.

    Key Design Principles:
    - One record per article: (id, embedding, text, metadata)
    - Upserts are idempotent by id
    - Similarity is cosine; results carry distance = 1 - cosine similarity
    - All operations are async (network-bound backends)
    """

    @abstractmethod
    async def upsert(self, units: List[DocumentUnit]) -> None:
        """
        Insert or overwrite articles, keyed by id.

        Upserting the same id twice leaves exactly one record, holding the
        latest embedding, text and metadata.

        Example:
            >>> await store.upsert([unit_a, unit_b])
            >>> (await store.collection_info()).count
            2
        """
        pass

    @abstractmethod
    async def query_by_vector(
        self,
        vector: np.ndarray,
        top_k: int,
        metadata_filter: Optional[ArticleFilter] = None,
    ) -> List[ScoredResult]:
        """
        Nearest neighbours to ``vector`` by cosine distance.

        Args:
            vector: Query vector (same dimensionality as the collection)
            top_k: Maximum number of results
            metadata_filter: Optional metadata predicate

        Returns:
            Results sorted by ascending distance (descending relevance_score)

        Example:
            >>> results = await store.query_by_vector(
            ...     query_vec,
            ...     top_k=10,
            ...     metadata_filter=ArticleFilter(sources=["Ars Technica"]),
            ... )
            >>> results[0].relevance_score
            0.83
        """
        pass

    @abstractmethod
    async def get_all_with_embeddings(self, limit: int) -> List[DocumentUnit]:
        """
        Bulk-fetch up to ``limit`` articles with their embeddings.

        Used by the clustering engine. Order is backend-defined.
        """
        pass

    @abstractmethod
    async def delete_by_ids(self, ids: List[str]) -> None:
        """Delete articles by id. Unknown ids are ignored."""
        pass

    @abstractmethod
    async def collection_info(self) -> CollectionInfo:
        """
        Get collection statistics.

        Returns:
            CollectionInfo(count=number of articles, dimension=vector length)
        """
        pass

    async def close(self) -> None:
        """Release backend resources (connection pools). No-op by default."""
        return None
