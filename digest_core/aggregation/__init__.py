"""
Chunk-to-article aggregation.

- embedding_aggregator: pure functions (aggregate vectors, combine text, ids)
- article_embedder: embed chunks, aggregate per article, upsert
"""

from .embedding_aggregator import (
    aggregate_embeddings,
    build_document_unit,
    calculate_total_char_count,
    calculate_total_word_count,
    combine_chunk_content,
    create_aggregation_result,
    generate_article_id,
    group_chunks_by_article,
    position_weights,
)
from .article_embedder import ArticleEmbedder, create_batches

__all__ = [
    "aggregate_embeddings",
    "build_document_unit",
    "calculate_total_char_count",
    "calculate_total_word_count",
    "combine_chunk_content",
    "create_aggregation_result",
    "generate_article_id",
    "group_chunks_by_article",
    "position_weights",
    "ArticleEmbedder",
    "create_batches",
]
