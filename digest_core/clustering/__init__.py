"""
Topic clustering for embedded articles.

This module groups articles by embedding similarity, enabling:
- Topic sections in the daily digest
- Representative article selection per topic
- Cluster quality reporting (silhouette score)

Algorithm: in-house k-means (k-means++ seeding, Euclidean distance) so
results are reproducible for a fixed random_state.
"""

from .article_clusterer import ArticleClusterer, find_representative
from .digest_payload import (
    average_relevance,
    build_cluster_payload,
    format_article_references,
    parse_takeaways,
    validate_cluster_digest,
)
from .kmeans import KMeansResult, initialize_centroids, run_kmeans, silhouette_score

# Import ClusteringConfig from centralized config
from digest_core.config import ClusteringConfig

__all__ = [
    "ArticleClusterer",
    "ClusteringConfig",
    "KMeansResult",
    "average_relevance",
    "build_cluster_payload",
    "find_representative",
    "format_article_references",
    "initialize_centroids",
    "parse_takeaways",
    "run_kmeans",
    "silhouette_score",
    "validate_cluster_digest",
]
