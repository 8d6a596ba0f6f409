"""
Data model for the digest core.

Persisted records (chunks read from upstream JSON, article metadata stored as
JSONB next to the vector) are Pydantic models so they are validated at the
boundary. Runtime-only structures (clusters, scored results, stats) are plain
dataclasses.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from digest_core.config import HybridWeights

logger = logging.getLogger(__name__)

METADATA_SCHEMA_VERSION = 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    # Feeds without an offset are treated as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Upstream chunk records
# =============================================================================

class SourceItem(BaseModel):
    """Feed item a chunk was cut from. Accepts camelCase keys from chunk files."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    link: str
    pub_date: datetime
    source: str
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @field_validator("pub_date")
    @classmethod
    def _aware_pub_date(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class RawChunk(BaseModel):
    """Partial-document unit produced by the upstream chunker."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    chunk_index: int = Field(..., ge=0)
    content: str
    word_count: int = Field(..., ge=0)
    char_count: int = Field(..., ge=0)
    source_item: SourceItem
    timestamp: Optional[datetime] = None

    @property
    def source_url(self) -> str:
        return self.source_item.link


# =============================================================================
# Article records
# =============================================================================

class ArticleMetadata(BaseModel):
    """
    Closed, versioned metadata stored alongside every article vector.

    Unknown keys are rejected so a typo in a producer cannot silently flow
    into clustering or ranking.
    """

    model_config = ConfigDict(extra="forbid")

    schema_version: int = METADATA_SCHEMA_VERSION
    source: str
    source_url: str
    title: str
    published_date: datetime
    chunk_count: int = Field(1, ge=1)
    total_word_count: int = Field(0, ge=0)
    total_char_count: int = Field(0, ge=0)
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    content_type: str = "article"
    processed_date: Optional[datetime] = None
    embedded_date: Optional[datetime] = None
    article_id: Optional[str] = None

    @field_validator("published_date", "processed_date", "embedded_date")
    @classmethod
    def _aware_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return value
        return ensure_aware(value)

    @property
    def identity(self) -> str:
        """Document identity: explicit article id, else the source URL."""
        return self.article_id or self.source_url


@dataclass(frozen=True, eq=False)
class DocumentUnit:
    """One retrievable, embedded article. Never mutated; re-processing upserts by id."""

    id: str
    text: str
    embedding: np.ndarray
    metadata: ArticleMetadata

    @property
    def dimension(self) -> int:
        return int(len(self.embedding))


@dataclass(frozen=True)
class ScoredResult:
    """
    Article returned by a similarity query.

    relevance_score is 1 - cosine distance, so it can be negative for
    dissimilar vectors. The hybrid fields are only set by hybrid ranking.
    """

    id: str
    text: str
    metadata: ArticleMetadata
    distance: float
    hybrid_score: Optional[float] = None
    recency_score: Optional[float] = None
    diversity_score: Optional[float] = None
    quality_score: Optional[float] = None

    @property
    def relevance_score(self) -> float:
        return 1.0 - self.distance

    @property
    def source(self) -> str:
        return self.metadata.source


@dataclass
class CollectionInfo:
    """Size and dimensionality of the vector store collection."""

    count: int
    dimension: int


# =============================================================================
# Clustering
# =============================================================================

@dataclass
class Cluster:
    """Runtime-only topic group. Always has at least one member."""

    id: int
    centroid: np.ndarray
    members: List[DocumentUnit]
    representative: DocumentUnit

    @property
    def size(self) -> int:
        return len(self.members)


@dataclass
class ClusteringResult:
    """
    Result of a clustering run.

    Attributes:
        clusters: Non-empty clusters sorted by descending size
        total_units: Number of input units
        cluster_count: Number of returned clusters (may be below requested k)
        silhouette_score: Mean silhouette in [-1, 1]; None unless cluster_count > 1
        timestamp: When the run finished
    """

    clusters: List[Cluster]
    total_units: int
    cluster_count: int
    silhouette_score: Optional[float] = None
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def empty(cls) -> "ClusteringResult":
        return cls(clusters=[], total_units=0, cluster_count=0)


# =============================================================================
# Retrieval
# =============================================================================

@dataclass
class RetrievalOptions:
    """
    Options for semantic and comprehensive retrieval.

    quality_threshold drops (not clamps) results with relevance below it.
    hybrid_weights enables hybrid re-ranking in ArticleRetriever.retrieve().
    """

    limit: int = 50
    time_window: Optional[str] = None
    sources: Optional[List[str]] = None
    quality_threshold: Optional[float] = None
    diversity_filter: bool = False
    query: Optional[str] = None
    topics: Optional[List[str]] = None
    hybrid_weights: Optional[HybridWeights] = None

    def __post_init__(self):
        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")


# =============================================================================
# Aggregation pipeline
# =============================================================================

@dataclass
class AggregationResult:
    """One article built from its chunks and their embeddings."""

    article_id: str
    aggregated_embedding: np.ndarray
    combined_content: str
    chunk_count: int
    total_word_count: int
    total_char_count: int


@dataclass
class ProcessingStats:
    """Counters for one embed-and-upsert run."""

    total_chunks: int = 0
    processed_chunks: int = 0
    skipped_chunks: int = 0
    articles: int = 0
    successful_upserts: int = 0
    errors: int = 0
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


# =============================================================================
# Text generation hand-off
# =============================================================================

@dataclass(frozen=True)
class ClusterPayload:
    """Structured input handed to the text generation collaborator."""

    topic_seed_titles: List[str]
    member_texts: List[str]
    member_sources: List[str]


@dataclass(frozen=True)
class ClusterDigest:
    """Label, summary and takeaways returned by the text generation collaborator."""

    label: str
    summary_text: str
    takeaways: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ArticleReference:
    """Short reference to a cluster member for digest output."""

    title: str
    source: str
    url: str
    published_at: datetime
    excerpt: str
