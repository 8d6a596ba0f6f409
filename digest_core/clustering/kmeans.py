"""
In-house k-means with k-means++ seeding and silhouette scoring.

Everything operates on a dense (N x D) float matrix with Euclidean
distance. Seeding is driven by ``np.random.default_rng(random_state)``, so a
fixed seed gives a reproducible partition.
"""

import logging
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class KMeansResult:
    """Raw k-means output."""

    labels: np.ndarray  # (N,) cluster index per row, in [0, k)
    centroids: np.ndarray  # (k, D)
    iterations: int
    converged: bool


def squared_distances(points: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """(N x K) matrix of squared Euclidean distances."""
    sq = (
        np.sum(points ** 2, axis=1)[:, None]
        - 2.0 * points @ centers.T
        + np.sum(centers ** 2, axis=1)[None, :]
    )
    # Rounding can push exact zeros slightly negative
    return np.maximum(sq, 0.0)


def pairwise_distances(points: np.ndarray) -> np.ndarray:
    """(N x N) matrix of Euclidean distances."""
    dist = np.sqrt(squared_distances(points, points))
    np.fill_diagonal(dist, 0.0)
    return dist


def initialize_centroids(
    embeddings: np.ndarray,
    n_clusters: int,
    random_state: int = 42,
) -> np.ndarray:
    """
    k-means++ seeding.

    The first centroid is a uniformly random row; each next one is drawn with
    probability proportional to its squared distance from the nearest
    centroid chosen so far.

    Args:
        embeddings: Data matrix (N x D)
        n_clusters: Number of centroids to produce (<= N)
        random_state: RNG seed for reproducibility
    """
    n_samples = embeddings.shape[0]
    if n_clusters > n_samples:
        raise ValueError("Number of clusters cannot exceed number of samples")

    rng = np.random.default_rng(random_state)

    centroids = np.zeros((n_clusters, embeddings.shape[1]), dtype=np.float64)
    centroids[0] = embeddings[rng.integers(0, n_samples)]

    for i in range(1, n_clusters):
        closest = squared_distances(embeddings, centroids[:i]).min(axis=1)
        total = closest.sum()
        if total > 0:
            idx = rng.choice(n_samples, p=closest / total)
        else:
            # All points coincide with a centroid already
            idx = rng.integers(0, n_samples)
        centroids[i] = embeddings[idx]

    return centroids


def run_kmeans(
    embeddings: np.ndarray,
    n_clusters: int,
    max_iterations: int = 100,
    tolerance: float = 1e-6,
    random_state: int = 42,
) -> KMeansResult:
    """
    Lloyd's algorithm from k-means++ seeds.

    Stops when the total centroid shift drops to ``tolerance`` or below, or
    after ``max_iterations``. A centroid that loses all its points keeps its
    previous position.
    """
    data = np.asarray(embeddings, dtype=np.float64)
    centroids = initialize_centroids(data, n_clusters, random_state)
    labels = np.zeros(data.shape[0], dtype=int)
    converged = False

    iteration = 0
    for iteration in range(1, max_iterations + 1):
        labels = np.argmin(squared_distances(data, centroids), axis=1)

        new_centroids = centroids.copy()
        for c in range(n_clusters):
            mask = labels == c
            if np.any(mask):
                new_centroids[c] = data[mask].mean(axis=0)

        delta = np.linalg.norm(new_centroids - centroids)
        centroids = new_centroids

        logger.debug(f"KMeans iter {iteration}: delta={delta:.6g}")
        if delta <= tolerance:
            converged = True
            break

    if not converged:
        logger.debug(f"KMeans stopped at max_iterations={max_iterations} without converging")

    return KMeansResult(
        labels=labels,
        centroids=centroids,
        iterations=iteration,
        converged=converged,
    )


def silhouette_score(embeddings: np.ndarray, labels: np.ndarray) -> float:
    """
    Mean silhouette over all rows.

    For row i in cluster A:
    - a = mean distance to the other members of A (0 for a singleton)
    - b = mean distance to the members of the other cluster whose centroid
      is nearest to row i
    - s = (b - a) / max(a, b), or 0 when max(a, b) == 0

    Requires at least two distinct labels. Result lies in [-1, 1].
    """
    data = np.asarray(embeddings, dtype=np.float64)
    cluster_ids = np.unique(labels)
    if cluster_ids.size < 2:
        raise ValueError("Silhouette score requires at least 2 clusters")

    distances = pairwise_distances(data)
    centroids = np.vstack([data[labels == c].mean(axis=0) for c in cluster_ids])
    to_centroids = squared_distances(data, centroids)

    scores = np.zeros(data.shape[0], dtype=np.float64)
    for i in range(data.shape[0]):
        own = int(np.searchsorted(cluster_ids, labels[i]))

        own_mask = labels == labels[i]
        own_count = int(own_mask.sum())
        a = distances[i, own_mask].sum() / (own_count - 1) if own_count > 1 else 0.0

        ranked = np.argsort(to_centroids[i], kind="stable")
        nearest = next(j for j in ranked if j != own)
        b = distances[i, labels == cluster_ids[nearest]].mean()

        denom = max(a, b)
        scores[i] = (b - a) / denom if denom > 0 else 0.0

    return float(np.clip(scores.mean(), -1.0, 1.0))
