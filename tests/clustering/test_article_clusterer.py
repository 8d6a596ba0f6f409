"""
Tests for ArticleClusterer.

Covers:
- Partition properties (every article in exactly one cluster)
- Size ordering and representatives
- k reduction, empty input, single cluster
- Bulk fetch entry points (cluster_all, cluster_recent)
"""

from datetime import timedelta

import numpy as np
import pytest

from digest_core.clustering import ArticleClusterer, ClusteringConfig
from digest_core.clustering.article_clusterer import find_representative
from digest_core.exceptions import ConfigurationError, DimensionMismatchError
from digest_core.storage.memory_store import InMemoryVectorStore


@pytest.fixture
def topic_units(make_unit):
    """Three topics of 6, 4 and 2 articles."""
    np.random.seed(42)
    units = []
    centers = {"ai": [5.0, 0.0, 0.0, 0.0], "chips": [0.0, 5.0, 0.0, 0.0], "space": [0.0, 0.0, 5.0, 0.0]}
    sizes = {"ai": 6, "chips": 4, "space": 2}
    for topic, size in sizes.items():
        for i in range(size):
            vector = np.array(centers[topic]) + np.random.randn(4) * 0.1
            units.append(make_unit(f"{topic}-{i}", vector, title=f"{topic} story {i}"))
    return units


@pytest.fixture
def clusterer():
    return ArticleClusterer(config=ClusteringConfig(n_clusters=3))


# ============================================================================
# cluster_units
# ============================================================================


def test_every_unit_in_exactly_one_cluster(clusterer, topic_units):
    result = clusterer.cluster_units(topic_units)

    member_ids = [u.id for c in result.clusters for u in c.members]
    assert sorted(member_ids) == sorted(u.id for u in topic_units)
    assert len(member_ids) == len(set(member_ids))
    assert result.total_units == 12


def test_clusters_sorted_by_size(clusterer, topic_units):
    result = clusterer.cluster_units(topic_units)

    assert [c.size for c in result.clusters] == [6, 4, 2]
    assert result.cluster_count == 3
    assert {u.id.split("-")[0] for u in result.clusters[0].members} == {"ai"}


def test_representative_is_a_member(clusterer, topic_units):
    result = clusterer.cluster_units(topic_units)

    for cluster in result.clusters:
        assert cluster.representative in cluster.members
        np.testing.assert_allclose(
            cluster.centroid,
            np.mean([u.embedding for u in cluster.members], axis=0),
        )


def test_silhouette_in_bounds(clusterer, topic_units):
    result = clusterer.cluster_units(topic_units)

    assert result.silhouette_score is not None
    assert -1.0 <= result.silhouette_score <= 1.0
    assert result.silhouette_score > 0.8


def test_k_reduced_to_unit_count(make_unit, caplog):
    units = [make_unit(f"u{i}", [float(i), float(i * i)]) for i in range(5)]

    with caplog.at_level("WARNING"):
        result = ArticleClusterer().cluster_units(units, k=100)

    assert result.cluster_count <= 5
    assert sum(c.size for c in result.clusters) == 5
    assert "Reduced cluster count to 5" in caplog.text


def test_empty_input(clusterer):
    result = clusterer.cluster_units([])

    assert result.clusters == []
    assert result.total_units == 0
    assert result.cluster_count == 0
    assert result.silhouette_score is None


def test_single_cluster_has_no_silhouette(clusterer, topic_units):
    result = clusterer.cluster_units(topic_units, k=1)

    assert result.cluster_count == 1
    assert result.clusters[0].size == 12
    assert result.silhouette_score is None


def test_identical_embeddings_collapse(make_unit, clusterer):
    units = [make_unit(f"u{i}", [1.0, 1.0]) for i in range(4)]
    result = clusterer.cluster_units(units, k=3)

    # Empty groups are dropped
    assert result.cluster_count == 1
    assert result.silhouette_score is None


def test_invalid_k(clusterer, topic_units):
    with pytest.raises(ValueError):
        clusterer.cluster_units(topic_units, k=0)


def test_dimension_mismatch(clusterer, make_unit):
    units = [make_unit("a", [1.0, 0.0]), make_unit("b", [1.0, 0.0, 0.0])]
    with pytest.raises(DimensionMismatchError):
        clusterer.cluster_units(units)


def test_reproducible(topic_units):
    first = ArticleClusterer(config=ClusteringConfig(n_clusters=4, random_state=3))
    second = ArticleClusterer(config=ClusteringConfig(n_clusters=4, random_state=3))

    ids_a = [[u.id for u in c.members] for c in first.cluster_units(topic_units).clusters]
    ids_b = [[u.id for u in c.members] for c in second.cluster_units(topic_units).clusters]
    assert ids_a == ids_b


def test_find_representative_tie_goes_to_first(make_unit):
    members = [make_unit("a", [1.0, 0.0]), make_unit("b", [2.0, 0.0]), make_unit("c", [0.0, 1.0])]
    assert find_representative(members, np.array([1.0, 0.0])).id == "a"


# ============================================================================
# Bulk fetch
# ============================================================================


@pytest.mark.asyncio
async def test_cluster_all(topic_units):
    store = InMemoryVectorStore()
    await store.upsert(topic_units)

    result = await ArticleClusterer(store, ClusteringConfig(n_clusters=3)).cluster_all()

    assert result.total_units == 12
    assert result.cluster_count == 3


@pytest.mark.asyncio
async def test_cluster_all_respects_limit(topic_units):
    store = InMemoryVectorStore()
    await store.upsert(topic_units)

    result = await ArticleClusterer(store, ClusteringConfig(n_clusters=2)).cluster_all(limit=5)
    assert result.total_units == 5


@pytest.mark.asyncio
async def test_cluster_all_empty_store():
    result = await ArticleClusterer(InMemoryVectorStore()).cluster_all()
    assert result.cluster_count == 0


@pytest.mark.asyncio
async def test_cluster_recent_filters_by_window(make_unit, now):
    store = InMemoryVectorStore()
    await store.upsert([
        make_unit("fresh-1", [1.0, 0.0], published_date=now - timedelta(hours=2)),
        make_unit("fresh-2", [0.0, 1.0], published_date=now - timedelta(hours=20)),
        make_unit("stale", [1.0, 1.0], published_date=now - timedelta(days=3)),
    ])

    result = await ArticleClusterer(store).cluster_recent("24h", k=2, now=now)

    assert result.total_units == 2
    member_ids = {u.id for c in result.clusters for u in c.members}
    assert member_ids == {"fresh-1", "fresh-2"}


@pytest.mark.asyncio
async def test_cluster_recent_nothing_recent(make_unit, now):
    store = InMemoryVectorStore()
    await store.upsert([make_unit("old", [1.0, 0.0], published_date=now - timedelta(days=10))])

    result = await ArticleClusterer(store).cluster_recent("7d", now=now)
    assert result.cluster_count == 0


@pytest.mark.asyncio
async def test_bulk_clustering_needs_store():
    with pytest.raises(ConfigurationError):
        await ArticleClusterer().cluster_all()
