"""
Embed chunks and upsert article-level vectors.

Pipeline:
1. Embed chunk texts in batches (throttled, optionally a few batches in flight)
2. Group chunks by article URL and aggregate their embeddings
3. Upsert one DocumentUnit per article into the vector store

A failed embedding or upsert batch is logged and counted and the run
continues; unrecoverable errors (configuration, dimension mismatch) abort
it. An article none of whose chunks were embedded is skipped.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from digest_core.aggregation.embedding_aggregator import (
    build_document_unit,
    group_chunks_by_article,
)
from digest_core.config import AggregationConfig
from digest_core.embedding.provider import EmbeddingProvider
from digest_core.exceptions import (
    EmbeddingProviderError,
    VectorStoreError,
    is_recoverable,
    wrap_exception,
)
from digest_core.models import DocumentUnit, ProcessingStats, RawChunk, utc_now
from digest_core.storage.vector_store_adapter import VectorStoreAdapter
from digest_core.utils.security import sanitize_error

logger = logging.getLogger(__name__)


def create_batches(items: Sequence, batch_size: int) -> List[list]:
    """Split items into consecutive batches of at most batch_size."""
    return [list(items[i:i + batch_size]) for i in range(0, len(items), batch_size)]


class ArticleEmbedder:
    """
    Turns raw chunks into article vectors in the vector store.

    Example:
        >>> embedder = ArticleEmbedder(provider, store, AggregationConfig())
        >>> stats = await embedder.embed_and_upsert(chunks)
        >>> stats.successful_upserts
        2
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        store: VectorStoreAdapter,
        config: Optional[AggregationConfig] = None,
    ):
        self.provider = provider
        self.store = store
        self.config = config or AggregationConfig()

    async def embed_and_upsert(self, chunks: Sequence[RawChunk]) -> ProcessingStats:
        """
        Embed chunks, aggregate per article and upsert.

        Args:
            chunks: Raw chunks, possibly from many articles, in any order

        Returns:
            ProcessingStats for the run

        Raises:
            DimensionMismatchError: If chunk embeddings of one article differ in length
            ConfigurationError: If the provider or store is misconfigured
        """
        stats = ProcessingStats(total_chunks=len(chunks))
        if not chunks:
            logger.warning("No chunks to embed")
            stats.finished_at = utc_now()
            return stats

        logger.info(
            f"Embedding {len(chunks)} chunks from "
            f"{len({c.source_url for c in chunks})} articles"
        )

        chunk_embeddings = await self._embed_chunks(chunks, stats)
        units = self._build_units(chunks, chunk_embeddings)
        stats.articles = len(units)

        if units:
            await self._upsert_units(units, stats)
        else:
            logger.warning("No articles to upsert after aggregation")

        stats.finished_at = utc_now()
        logger.info(
            f"Embedding run complete in {stats.duration_seconds:.2f}s: "
            f"{stats.processed_chunks}/{stats.total_chunks} chunks embedded, "
            f"{stats.skipped_chunks} skipped, {stats.successful_upserts} articles upserted, "
            f"{stats.errors} errors"
        )
        return stats

    async def _embed_chunks(
        self,
        chunks: Sequence[RawChunk],
        stats: ProcessingStats,
    ) -> Dict[str, np.ndarray]:
        """Embed all chunks; returns chunk id -> embedding for the ones that succeeded."""
        batches = create_batches(chunks, self.config.batch_size)
        semaphore = asyncio.Semaphore(self.config.max_concurrent_batches)
        chunk_embeddings: Dict[str, np.ndarray] = {}

        async def embed_batch(batch_index: int, batch: List[RawChunk]) -> None:
            async with semaphore:
                accepted = [c for c in batch if self.provider.accepts(c.content)]
                rejected = len(batch) - len(accepted)
                if rejected:
                    logger.warning(
                        f"Batch {batch_index + 1}: {rejected} chunks exceed the provider input limit"
                    )
                    stats.skipped_chunks += rejected

                if accepted:
                    logger.debug(
                        f"Embedding batch {batch_index + 1}/{len(batches)}: {len(accepted)} chunks"
                    )
                    try:
                        vectors = await self.provider.embed([c.content for c in accepted])
                    except Exception as e:
                        if not is_recoverable(e):
                            raise
                        error = wrap_exception(e, EmbeddingProviderError)
                        logger.error(
                            f"Embedding batch {batch_index + 1} failed: {sanitize_error(error.message)}"
                        )
                        stats.errors += 1
                        stats.skipped_chunks += len(accepted)
                    else:
                        for chunk, vector in zip(accepted, vectors):
                            chunk_embeddings[chunk.id] = vector
                        stats.processed_chunks += len(accepted)

                # Rate limiting: hold the slot while pausing
                if batch_index < len(batches) - 1 and self.config.batch_delay_seconds > 0:
                    await asyncio.sleep(self.config.batch_delay_seconds)

        await asyncio.gather(*(embed_batch(i, batch) for i, batch in enumerate(batches)))
        return chunk_embeddings

    def _build_units(
        self,
        chunks: Sequence[RawChunk],
        chunk_embeddings: Dict[str, np.ndarray],
    ) -> List[DocumentUnit]:
        units = []
        for url, article_chunks in group_chunks_by_article(chunks).items():
            embedded = [c for c in article_chunks if c.id in chunk_embeddings]
            if not embedded:
                logger.warning(f"No embeddings found for article: {article_chunks[0].source_item.title}")
                continue

            units.append(build_document_unit(
                url,
                embedded,
                [chunk_embeddings[c.id] for c in embedded],
                max_content_chars=self.config.max_content_chars,
                position_weighted=self.config.position_weighted,
                decay=self.config.position_decay,
            ))

        logger.info(f"Aggregated {len(chunks)} chunks into {len(units)} articles")
        return units

    async def _upsert_units(self, units: List[DocumentUnit], stats: ProcessingStats) -> None:
        batches = create_batches(units, self.config.batch_size)
        for batch_index, batch in enumerate(batches):
            try:
                await self.store.upsert(batch)
                stats.successful_upserts += len(batch)
                logger.debug(f"Article batch {batch_index + 1}/{len(batches)} upserted")
            except Exception as e:
                if not is_recoverable(e):
                    raise
                error = wrap_exception(e, VectorStoreError)
                logger.error(f"Article batch {batch_index + 1} failed: {sanitize_error(error.message)}")
                stats.errors += 1

            if batch_index < len(batches) - 1 and self.config.batch_delay_seconds > 0:
                await asyncio.sleep(self.config.batch_delay_seconds)
