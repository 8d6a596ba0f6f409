"""
In-memory vector store.

Brute-force cosine search over a dict of articles. Used for local runs and
tests; evaluates ArticleFilter in Python.
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from digest_core.exceptions import DimensionMismatchError
from digest_core.models import CollectionInfo, DocumentUnit, ScoredResult
from digest_core.similarity import as_vector
from digest_core.storage.filters import ArticleFilter
from digest_core.storage.vector_store_adapter import VectorStoreAdapter

logger = logging.getLogger(__name__)


class InMemoryVectorStore(VectorStoreAdapter):
    """
    Vector store backed by a Python dict (insertion ordered).

    Args:
        dimensions: Expected vector length. If None, fixed by the first upsert.
    """

    def __init__(self, dimensions: Optional[int] = None):
        self.dimensions = dimensions
        self._units: Dict[str, DocumentUnit] = {}

    def _check_dimension(self, vector: np.ndarray, index: Optional[int] = None) -> None:
        if self.dimensions is not None and vector.shape[0] != self.dimensions:
            raise DimensionMismatchError(
                expected=self.dimensions, actual=vector.shape[0], index=index
            )

    async def upsert(self, units: List[DocumentUnit]) -> None:
        for i, unit in enumerate(units):
            vector = as_vector(unit.embedding)
            if self.dimensions is None:
                self.dimensions = vector.shape[0]
            self._check_dimension(vector, index=i)

        for unit in units:
            # Overwriting an existing key keeps its original position
            self._units[unit.id] = unit

        logger.debug(f"Upserted {len(units)} articles ({len(self._units)} total)")

    async def query_by_vector(
        self,
        vector: np.ndarray,
        top_k: int,
        metadata_filter: Optional[ArticleFilter] = None,
    ) -> List[ScoredResult]:
        query = as_vector(vector)
        self._check_dimension(query)

        candidates = [
            unit for unit in self._units.values()
            if metadata_filter is None or metadata_filter.matches(unit.metadata)
        ]
        if not candidates or top_k <= 0:
            return []

        matrix = np.vstack([as_vector(unit.embedding) for unit in candidates])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        sims = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        # Stable sort keeps insertion order among equal distances
        order = np.argsort(-sims, kind="stable")[:top_k]
        return [
            ScoredResult(
                id=candidates[i].id,
                text=candidates[i].text,
                metadata=candidates[i].metadata,
                distance=float(1.0 - sims[i]),
            )
            for i in order
        ]

    async def get_all_with_embeddings(self, limit: int) -> List[DocumentUnit]:
        return list(self._units.values())[:limit]

    async def delete_by_ids(self, ids: List[str]) -> None:
        for unit_id in ids:
            self._units.pop(unit_id, None)

    async def collection_info(self) -> CollectionInfo:
        return CollectionInfo(count=len(self._units), dimension=self.dimensions or 0)
