"""
Unified configuration system for digest_core.

## Configuration Philosophy

**Single Source of Truth: config.json file**
- Deployment configuration lives in one JSON file, validated on startup by
  the Pydantic schema in digest_core.config_schema
- Secrets (OPENAI_API_KEY, DATABASE_URL) come from .env, never from JSON

**Runtime configs are plain dataclasses**
- Every engine takes its config (and its collaborators) as constructor
  arguments; nothing reaches for a global client
- Dataclass defaults reproduce the production settings, so the engines work
  in tests and notebooks without a config.json

## Usage

```python
from digest_core.config import get_default_config

config = get_default_config()           # fails if config.json is invalid
clusterer = ArticleClusterer(store, config.clustering)
```
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from digest_core.config_schema import (
    RootConfig,
    load_config as load_json_config,
    EmbeddingConfig as EmbeddingSchema,
    AggregationConfig as AggregationSchema,
    ClusteringConfig as ClusteringSchema,
    RetrievalConfig as RetrievalSchema,
    VectorStoreConfig as VectorStoreSchema,
    PipelineConfig as PipelineSchema,
)
from digest_core.utils.logger import setup_from_config

logger = logging.getLogger(__name__)

# Cached config instance - loaded on first get_config() call
_CONFIG: Optional[RootConfig] = None

EMBEDDING_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

TIME_WINDOWS = ("1h", "6h", "12h", "24h", "3d", "7d")


def get_config(reload: bool = False) -> RootConfig:
    """
    Get validated configuration from config.json.

    Loads and validates config.json on first call, then caches the result.

    Args:
        reload: Force reload config.json (default: False)

    Returns:
        Validated RootConfig instance

    Raises:
        FileNotFoundError: If config.json does not exist
        ValueError: If validation fails or required fields are missing
    """
    global _CONFIG

    if _CONFIG is None or reload:
        try:
            _CONFIG = load_json_config()
            logger.info("Configuration loaded and validated successfully from config.json")
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise

    return _CONFIG


@dataclass
class EmbeddingConfig:
    """Configuration for the embedding provider."""

    model: str = "text-embedding-3-small"
    api_key: Optional[str] = None
    batch_size: int = 20
    max_input_tokens: int = 8191
    chars_per_token: int = 4
    max_retries: int = 3

    def __post_init__(self):
        if self.model not in EMBEDDING_DIMENSIONS:
            raise ValueError(
                f"model must be one of {sorted(EMBEDDING_DIMENSIONS)}, got {self.model}"
            )
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_input_tokens <= 0:
            raise ValueError(f"max_input_tokens must be positive, got {self.max_input_tokens}")
        if self.chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {self.chars_per_token}")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @property
    def dimensions(self) -> int:
        return EMBEDDING_DIMENSIONS[self.model]

    @classmethod
    def from_config(cls, config: RootConfig) -> "EmbeddingConfig":
        """
        Load configuration from validated RootConfig.

        Needs the root (not just the embedding section) because the model
        name and API key live in other sections.
        """
        section: EmbeddingSchema = config.embedding
        return cls(
            model=config.models.embedding_model,
            api_key=config.secrets.openai_api_key,
            batch_size=section.batch_size,
            max_input_tokens=section.max_input_tokens,
            chars_per_token=section.chars_per_token,
            max_retries=section.max_retries,
        )


@dataclass
class AggregationConfig:
    """
    Configuration for chunk-to-article aggregation.

    position_decay is a heuristic, not a derived constant: chunk i gets weight
    1 / (1 + i * position_decay).
    """

    max_content_chars: int = 4000
    position_weighted: bool = True
    position_decay: float = 0.1
    batch_size: int = 20
    batch_delay_seconds: float = 1.0
    max_concurrent_batches: int = 1

    def __post_init__(self):
        if self.max_content_chars <= 0:
            raise ValueError(f"max_content_chars must be positive, got {self.max_content_chars}")
        if self.position_decay < 0:
            raise ValueError(f"position_decay must be >= 0, got {self.position_decay}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.batch_delay_seconds < 0:
            raise ValueError(
                f"batch_delay_seconds must be >= 0, got {self.batch_delay_seconds}"
            )
        if self.max_concurrent_batches < 1:
            raise ValueError(
                f"max_concurrent_batches must be >= 1, got {self.max_concurrent_batches}"
            )

    @classmethod
    def from_config(cls, section: AggregationSchema) -> "AggregationConfig":
        return cls(
            max_content_chars=section.max_content_chars,
            position_weighted=section.position_weighted,
            position_decay=section.position_decay,
            batch_size=section.batch_size,
            batch_delay_seconds=section.batch_delay_seconds,
            max_concurrent_batches=section.max_concurrent_batches,
        )


@dataclass
class ClusteringConfig:
    """Configuration for k-means article clustering."""

    n_clusters: int = 5
    max_iterations: int = 100
    tolerance: float = 1e-6
    random_state: int = 42
    fetch_limit: int = 100

    def __post_init__(self):
        if self.n_clusters < 1:
            raise ValueError(f"n_clusters must be >= 1, got {self.n_clusters}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {self.tolerance}")
        if self.fetch_limit < 1:
            raise ValueError(f"fetch_limit must be >= 1, got {self.fetch_limit}")

    @classmethod
    def from_config(cls, section: ClusteringSchema) -> "ClusteringConfig":
        return cls(
            n_clusters=section.n_clusters,
            max_iterations=section.max_iterations,
            tolerance=section.tolerance,
            random_state=section.random_state,
            fetch_limit=section.fetch_limit,
        )


@dataclass
class HybridWeights:
    """Weights for hybrid re-ranking (relevance, recency, source diversity)."""

    recency_weight: float = 0.3
    diversity_bonus: float = 0.1
    quality_weight: float = 0.6

    def __post_init__(self):
        for name in ("recency_weight", "diversity_bonus", "quality_weight"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")


@dataclass
class RetrievalConfig:
    """Configuration for the retrieval engine."""

    default_limit: int = 50
    default_time_window: str = "24h"
    probe_text: str = "recent technology and AI developments"
    overfetch_multiplier: int = 2
    quality_reference_words: int = 200
    topic_limit: int = 20
    hybrid_weights: HybridWeights = field(default_factory=HybridWeights)

    def __post_init__(self):
        if self.default_limit < 1:
            raise ValueError(f"default_limit must be >= 1, got {self.default_limit}")
        if self.default_time_window not in TIME_WINDOWS:
            raise ValueError(
                f"default_time_window must be one of {TIME_WINDOWS}, got {self.default_time_window}"
            )
        if not self.probe_text.strip():
            raise ValueError("probe_text must not be empty")
        if self.overfetch_multiplier < 1:
            raise ValueError(
                f"overfetch_multiplier must be >= 1, got {self.overfetch_multiplier}"
            )
        if self.quality_reference_words < 1:
            raise ValueError(
                f"quality_reference_words must be >= 1, got {self.quality_reference_words}"
            )

    @classmethod
    def from_config(cls, section: RetrievalSchema) -> "RetrievalConfig":
        return cls(
            default_limit=section.default_limit,
            default_time_window=section.default_time_window,
            probe_text=section.probe_text,
            overfetch_multiplier=section.overfetch_multiplier,
            quality_reference_words=section.quality_reference_words,
            hybrid_weights=HybridWeights(
                recency_weight=section.recency_weight,
                diversity_bonus=section.diversity_bonus,
                quality_weight=section.quality_weight,
            ),
        )


@dataclass
class VectorStoreConfig:
    """Configuration for the vector store backend."""

    backend: str = "memory"
    connection_string: Optional[str] = None
    table: str = "vectors.articles"
    dimensions: int = 1536
    pool_size: int = 10

    def __post_init__(self):
        if self.backend not in ("postgresql", "memory"):
            raise ValueError(f"backend must be 'postgresql' or 'memory', got {self.backend}")
        if self.backend == "postgresql" and not self.connection_string:
            raise ValueError("postgresql backend requires connection_string")
        if self.dimensions <= 0:
            raise ValueError(f"dimensions must be positive, got {self.dimensions}")

    @classmethod
    def from_config(cls, config: RootConfig) -> "VectorStoreConfig":
        section: VectorStoreSchema = config.vector_store
        return cls(
            backend=section.backend,
            connection_string=config.secrets.database_url,
            table=section.table,
            dimensions=section.dimensions,
            pool_size=section.pool_size,
        )


@dataclass
class PipelineConfig:
    """General pipeline configuration."""

    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None

    @classmethod
    def from_config(cls, section: PipelineSchema) -> "PipelineConfig":
        return cls(log_level=section.log_level, log_file=section.log_file)


@dataclass
class DigestConfig:
    """
    Unified digest_core configuration.
    """

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    @classmethod
    def from_config(cls, config: RootConfig) -> "DigestConfig":
        """
        Load all sub-configs from validated RootConfig.

        Args:
            config: Validated RootConfig instance

        Returns:
            DigestConfig instance with all sub-configs
        """
        return cls(
            embedding=EmbeddingConfig.from_config(config),
            aggregation=AggregationConfig.from_config(config.aggregation),
            clustering=ClusteringConfig.from_config(config.clustering),
            retrieval=RetrievalConfig.from_config(config.retrieval),
            vector_store=VectorStoreConfig.from_config(config),
            pipeline=PipelineConfig.from_config(config.pipeline),
        )


def get_default_config() -> DigestConfig:
    """
    Get the digest configuration from config.json.

    Raises:
        FileNotFoundError: If config.json does not exist
        ValueError: If validation fails
    """
    return DigestConfig.from_config(get_config())


def validate_config_on_startup() -> RootConfig:
    """
    Validate config.json at startup and exit with clear message if invalid.

    Call this at the top of every entrypoint script before any I/O begins.
    On success the "digest_core" logger is configured from the pipeline
    section (level and optional log file).

    Exits:
        sys.exit(1) with clear error message if config is invalid
    """
    import sys

    try:
        config = get_config()
    except FileNotFoundError:
        print("\nERROR: config.json not found!")
        print("\nPlease create config.json from config.json.example:")
        print("  cp config.json.example config.json")
        sys.exit(1)
    except ValueError as e:
        print("\nERROR: Invalid configuration in config.json!")
        print(f"\n{e}")
        print("\nSee config.json.example for reference")
        sys.exit(1)

    setup_from_config(PipelineConfig.from_config(config.pipeline))
    return config
