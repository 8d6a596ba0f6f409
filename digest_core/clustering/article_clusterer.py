"""
Topic clustering of embedded articles.

Partitions DocumentUnits into k groups by k-means over their embeddings
(text and metadata ride along as payload), picks the member closest to each
centroid as its representative, and scores the partition with the
silhouette coefficient.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from digest_core.clustering.kmeans import run_kmeans, silhouette_score
from digest_core.config import ClusteringConfig
from digest_core.exceptions import ConfigurationError
from digest_core.models import Cluster, ClusteringResult, DocumentUnit
from digest_core.retrieval.time_window import TimeWindow, parse_time_window
from digest_core.similarity import cosine_similarity, stack_vectors
from digest_core.storage.vector_store_adapter import VectorStoreAdapter

logger = logging.getLogger(__name__)


def find_representative(members: Sequence[DocumentUnit], centroid: np.ndarray) -> DocumentUnit:
    """Member with the highest cosine similarity to the centroid; ties go to the first seen."""
    best = members[0]
    best_similarity = -np.inf
    for unit in members:
        similarity = cosine_similarity(unit.embedding, centroid)
        if similarity > best_similarity:
            best_similarity = similarity
            best = unit
    return best


class ArticleClusterer:
    """
    K-means clustering engine for articles.

    The vector store is only needed for the bulk-fetch entry points
    (cluster_all, cluster_recent); cluster_units works on any snapshot.
    """

    def __init__(
        self,
        store: Optional[VectorStoreAdapter] = None,
        config: Optional[ClusteringConfig] = None,
    ):
        """
        Initialize clusterer.

        Args:
            store: Vector store for bulk fetches
            config: Clustering configuration
        """
        self.store = store
        self.config = config or ClusteringConfig()
        logger.info(
            f"ArticleClusterer initialized: k={self.config.n_clusters}, "
            f"max_iterations={self.config.max_iterations}, tolerance={self.config.tolerance}"
        )

    def cluster_units(
        self,
        units: Sequence[DocumentUnit],
        k: Optional[int] = None,
        max_iterations: Optional[int] = None,
        tolerance: Optional[float] = None,
    ) -> ClusteringResult:
        """
        Cluster articles into at most k groups.

        Args:
            units: Articles with embeddings
            k: Requested cluster count (default: config.n_clusters)
            max_iterations: K-means iteration cap (default: config.max_iterations)
            tolerance: Centroid shift convergence threshold (default: config.tolerance)

        Returns:
            ClusteringResult with clusters sorted by descending size. Empty
            input gives an empty result. Groups that end up empty are dropped,
            so cluster_count can be below k.

        Raises:
            DimensionMismatchError: If embeddings differ in length
            ValueError: If k < 1
        """
        k = self.config.n_clusters if k is None else k
        max_iterations = self.config.max_iterations if max_iterations is None else max_iterations
        tolerance = self.config.tolerance if tolerance is None else tolerance

        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")

        logger.info(f"Clustering {len(units)} articles into {k} clusters...")

        if not units:
            return ClusteringResult.empty()

        embeddings = stack_vectors([unit.embedding for unit in units])

        effective_k = min(k, len(units))
        if effective_k < k:
            logger.warning(
                f"Reduced cluster count to {effective_k} (fewer articles than requested k={k})"
            )

        kmeans = run_kmeans(
            embeddings,
            effective_k,
            max_iterations=max_iterations,
            tolerance=tolerance,
            random_state=self.config.random_state,
        )

        groups: Dict[int, List[int]] = {}
        for index, label in enumerate(kmeans.labels):
            groups.setdefault(int(label), []).append(index)

        clusters = []
        for cluster_id in range(effective_k):
            indices = groups.get(cluster_id)
            if not indices:
                logger.debug(f"Dropping empty cluster {cluster_id}")
                continue

            members = [units[i] for i in indices]
            centroid = embeddings[indices].mean(axis=0)
            clusters.append(Cluster(
                id=cluster_id,
                centroid=centroid,
                members=members,
                representative=find_representative(members, centroid),
            ))

        # sorted() is stable, so equal sizes keep cluster id order
        clusters = sorted(clusters, key=lambda c: c.size, reverse=True)

        score = None
        if len(clusters) > 1:
            score = silhouette_score(embeddings, kmeans.labels)

        logger.info(
            f"Created {len(clusters)} clusters (sizes: {[c.size for c in clusters]}), "
            f"silhouette={score if score is None else round(score, 4)}"
        )

        return ClusteringResult(
            clusters=clusters,
            total_units=len(units),
            cluster_count=len(clusters),
            silhouette_score=score,
        )

    def _require_store(self) -> VectorStoreAdapter:
        if self.store is None:
            raise ConfigurationError("ArticleClusterer needs a vector store for bulk clustering")
        return self.store

    async def cluster_all(
        self,
        limit: Optional[int] = None,
        k: Optional[int] = None,
    ) -> ClusteringResult:
        """
        Bulk-fetch up to ``limit`` articles (no time filter) and cluster them.

        Args:
            limit: Articles to fetch (default: config.fetch_limit)
            k: Requested cluster count (default: config.n_clusters)
        """
        limit = self.config.fetch_limit if limit is None else limit
        units = await self._require_store().get_all_with_embeddings(limit)

        if not units:
            logger.warning("No articles found to cluster")
            return ClusteringResult.empty()

        logger.info(f"Found {len(units)} articles to cluster")
        return self.cluster_units(units, k=k)

    async def cluster_recent(
        self,
        window: Union[str, TimeWindow] = TimeWindow.HOURS_24,
        limit: Optional[int] = None,
        k: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ClusteringResult:
        """
        Bulk-fetch articles, keep those published within ``window``, and cluster them.

        Args:
            window: Look-back window label ("1h" ... "7d")
            limit: Articles to fetch before filtering (default: config.fetch_limit)
            k: Requested cluster count (default: config.n_clusters)
            now: Reference instant (default: current UTC time)
        """
        time_window = parse_time_window(window)
        limit = self.config.fetch_limit if limit is None else limit
        units = await self._require_store().get_all_with_embeddings(limit)

        if not units:
            logger.warning("No articles found to cluster")
            return ClusteringResult.empty()

        cutoff = time_window.cutoff(now)
        recent = [unit for unit in units if unit.metadata.published_date >= cutoff]
        logger.info(f"Found {len(recent)} articles from last {time_window.value}")

        if not recent:
            logger.warning("No recent articles found to cluster")
            return ClusteringResult.empty()

        return self.cluster_units(recent, k=k)
