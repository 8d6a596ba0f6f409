"""
Chunk-to-article embedding aggregation.

Combines the chunk embeddings of one article into a single article-level
vector and the chunk texts into one bounded text. Chunk order is always
normalized by chunk_index before combining, whatever order the chunks
arrived in.
"""

import hashlib
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import numpy as np

from digest_core.exceptions import EmptyInputError, ValidationError
from digest_core.models import (
    AggregationResult,
    ArticleMetadata,
    DocumentUnit,
    RawChunk,
    utc_now,
)
from digest_core.similarity import as_vector, stack_vectors

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_CHARS = 4000
DEFAULT_POSITION_DECAY = 0.1
CHUNK_SEPARATOR = "\n\n"
TRUNCATION_SUFFIX = "..."
# Cut at the last space only if it keeps at least this share of the remaining budget
WORD_BOUNDARY_THRESHOLD = 0.8
ARTICLE_ID_PREFIX = "article_"
ARTICLE_ID_HASH_LENGTH = 16


def generate_article_id(source_url: str) -> str:
    """Deterministic article id: 'article_' + first 16 hex chars of SHA-256(url)."""
    digest = hashlib.sha256(source_url.encode("utf-8")).hexdigest()
    return f"{ARTICLE_ID_PREFIX}{digest[:ARTICLE_ID_HASH_LENGTH]}"


def position_weights(count: int, decay: float = DEFAULT_POSITION_DECAY) -> np.ndarray:
    """Normalized weights 1 / (1 + i * decay) for positions 0..count-1."""
    raw = 1.0 / (1.0 + np.arange(count, dtype=np.float64) * decay)
    return raw / raw.sum()


def aggregate_embeddings(
    embeddings: Sequence[Sequence[float]],
    position_weighted: bool = True,
    decay: float = DEFAULT_POSITION_DECAY,
) -> np.ndarray:
    """
    Aggregate chunk embeddings into one article embedding.

    Earlier chunks (lede, abstract) get a higher weight when position_weighted
    is set. A single embedding is returned as a copy, unweighted.

    Args:
        embeddings: Chunk embeddings in chunk order
        position_weighted: Weight element i by 1 / (1 + i * decay) instead of uniformly
        decay: Position weight decay

    Returns:
        Weighted mean vector

    Raises:
        EmptyInputError: If embeddings is empty
        DimensionMismatchError: If any embedding differs in length from the first
    """
    if len(embeddings) == 0:
        raise EmptyInputError("Cannot aggregate empty embeddings list")

    if len(embeddings) == 1:
        return as_vector(embeddings[0]).copy()

    matrix = stack_vectors(embeddings)
    if position_weighted:
        weights = position_weights(matrix.shape[0], decay)
    else:
        weights = np.full(matrix.shape[0], 1.0 / matrix.shape[0])

    return weights @ matrix


def combine_chunk_content(
    chunks: Sequence[RawChunk],
    max_chars: int = DEFAULT_MAX_CONTENT_CHARS,
) -> str:
    """
    Join chunk texts (sorted by chunk_index) with blank lines, bounded by max_chars.

    The chunk that overflows the budget is cut to the remaining space, then
    back to its last space when that still uses more than 80% of the
    remaining space, and gets "..." appended. Nothing is appended after a
    truncated chunk. When the separator alone would use up the budget, the
    next chunk is dropped and "..." is appended instead. The result never
    exceeds max_chars + len("...").
    """
    if not chunks:
        return ""

    combined = ""
    for chunk in sorted(chunks, key=lambda c: c.chunk_index):
        if len(combined) >= max_chars:
            break

        if combined:
            if len(combined) + len(CHUNK_SEPARATOR) >= max_chars:
                combined += TRUNCATION_SUFFIX
                break
            combined += CHUNK_SEPARATOR

        remaining = max_chars - len(combined)
        if len(chunk.content) <= remaining:
            combined += chunk.content
            continue

        truncated = chunk.content[:remaining]
        last_space = truncated.rfind(" ")
        if last_space > remaining * WORD_BOUNDARY_THRESHOLD:
            truncated = truncated[:last_space]
        combined += truncated + TRUNCATION_SUFFIX
        break

    return combined


def group_chunks_by_article(chunks: Sequence[RawChunk]) -> Dict[str, List[RawChunk]]:
    """Group chunks by source URL (first-seen order), each group sorted by chunk_index."""
    groups: Dict[str, List[RawChunk]] = {}
    for chunk in chunks:
        groups.setdefault(chunk.source_url, []).append(chunk)

    for url, article_chunks in groups.items():
        groups[url] = sorted(article_chunks, key=lambda c: c.chunk_index)

    return groups


def calculate_total_word_count(chunks: Sequence[RawChunk]) -> int:
    return sum(chunk.word_count for chunk in chunks)


def calculate_total_char_count(chunks: Sequence[RawChunk]) -> int:
    return sum(chunk.char_count for chunk in chunks)


def create_aggregation_result(
    article_url: str,
    chunks: Sequence[RawChunk],
    embeddings: Sequence[Sequence[float]],
    max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
    position_weighted: bool = True,
    decay: float = DEFAULT_POSITION_DECAY,
) -> AggregationResult:
    """
    Build an AggregationResult from an article's chunks and their embeddings.

    embeddings[i] belongs to chunks[i]; pairs are sorted by chunk_index
    before aggregating.

    Raises:
        ValidationError: If chunk and embedding counts differ
        EmptyInputError: If there are no chunks
    """
    if len(chunks) != len(embeddings):
        raise ValidationError(
            f"Chunk count ({len(chunks)}) does not match embedding count ({len(embeddings)})",
            details={"article_url": article_url},
        )
    if len(chunks) == 0:
        raise EmptyInputError("Cannot create aggregation result from empty chunks list")

    pairs = sorted(zip(chunks, embeddings), key=lambda pair: pair[0].chunk_index)
    sorted_chunks = [chunk for chunk, _ in pairs]
    sorted_embeddings = [embedding for _, embedding in pairs]

    return AggregationResult(
        article_id=generate_article_id(article_url),
        aggregated_embedding=aggregate_embeddings(
            sorted_embeddings, position_weighted=position_weighted, decay=decay
        ),
        combined_content=combine_chunk_content(sorted_chunks, max_content_chars),
        chunk_count=len(chunks),
        total_word_count=calculate_total_word_count(sorted_chunks),
        total_char_count=calculate_total_char_count(sorted_chunks),
    )


def build_document_unit(
    article_url: str,
    chunks: Sequence[RawChunk],
    embeddings: Sequence[Sequence[float]],
    max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
    position_weighted: bool = True,
    decay: float = DEFAULT_POSITION_DECAY,
    embedded_at: Optional[datetime] = None,
) -> DocumentUnit:
    """
    Build the DocumentUnit for one article.

    chunks and embeddings pair up one-to-one (see create_aggregation_result).
    Article-level metadata comes from the source item of the lowest-index
    chunk. The id is derived from the URL, so re-processing the same article
    yields the same id and upserts over the previous record.
    """
    result = create_aggregation_result(
        article_url,
        chunks,
        embeddings,
        max_content_chars=max_content_chars,
        position_weighted=position_weighted,
        decay=decay,
    )
    first = min(chunks, key=lambda c: c.chunk_index).source_item

    metadata = ArticleMetadata(
        source=first.source,
        source_url=article_url,
        title=first.title,
        published_date=first.pub_date,
        chunk_count=result.chunk_count,
        total_word_count=result.total_word_count,
        total_char_count=result.total_char_count,
        categories=list(first.categories),
        tags=list(first.tags),
        content_type="article",
        processed_date=first.pub_date,
        embedded_date=embedded_at or utc_now(),
        article_id=result.article_id,
    )

    return DocumentUnit(
        id=result.article_id,
        text=result.combined_content,
        embedding=result.aggregated_embedding,
        metadata=metadata,
    )
