"""
Article Retriever

Three query strategies against the vector store, all funnelled through the
same post-processing (dedup -> optional diversity cap -> optional hybrid
re-rank -> limit):

A. Recency: generic probe vector + published_after filter
B. Semantic: embedded free-text query + optional time/source filters
C. Topic fan-out: strategy B per topic, merged and de-duplicated

Every strategy over-fetches (limit x overfetch_multiplier) so that later
filtering still has enough candidates.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Union

from digest_core.config import RetrievalConfig
from digest_core.embedding.provider import EmbeddingProvider
from digest_core.exceptions import DimensionMismatchError, PartialTopicFailure
from digest_core.models import RetrievalOptions, ScoredResult
from digest_core.retrieval.ranking import (
    apply_diversity_filter,
    combine_and_rank,
    remove_duplicates,
)
from digest_core.retrieval.time_window import TimeWindow, parse_time_window
from digest_core.storage.filters import ArticleFilter
from digest_core.storage.vector_store_adapter import VectorStoreAdapter
from digest_core.utils.security import sanitize_error

logger = logging.getLogger(__name__)


@dataclass
class TopicRetrieval:
    """Merged topic fan-out results plus the topics that failed."""

    results: List[ScoredResult]
    failures: List[PartialTopicFailure] = field(default_factory=list)


class ArticleRetriever:
    """
    Retrieval engine over an article vector store.

    Collaborators are injected; the retriever holds no per-call state, so
    one instance can serve concurrent calls.

    Example:
        >>> retriever = ArticleRetriever(store, provider)
        >>> results = await retriever.retrieve(RetrievalOptions(
        ...     query="open-source LLM releases",
        ...     limit=10,
        ...     time_window="3d",
        ...     hybrid_weights=HybridWeights(),
        ... ))
    """

    def __init__(
        self,
        store: VectorStoreAdapter,
        provider: EmbeddingProvider,
        config: Optional[RetrievalConfig] = None,
    ):
        self.store = store
        self.provider = provider
        self.config = config or RetrievalConfig()

    def _fetch_size(self, limit: int) -> int:
        return limit * self.config.overfetch_multiplier

    # ============================================================================
    # Strategy A: Recency
    # ============================================================================

    async def retrieve_recent(
        self,
        window: Union[str, TimeWindow, None] = None,
        limit: Optional[int] = None,
        extra_filter: Optional[ArticleFilter] = None,
        now: Optional[datetime] = None,
    ) -> List[ScoredResult]:
        """
        Articles published within ``window``, scored against a generic probe text.

        Args:
            window: Look-back window (default: config.default_time_window)
            limit: Maximum results (default: config.default_limit)
            extra_filter: Additional metadata predicate; its fields override the cutoff
            now: Reference instant (default: current UTC time)

        Returns:
            At most ``limit`` results, most relevant first
        """
        time_window = parse_time_window(window or self.config.default_time_window)
        limit = self.config.default_limit if limit is None else limit

        logger.info(f"Retrieving recent articles from last {time_window.value}...")

        metadata_filter = ArticleFilter(published_after=time_window.cutoff(now)).merged_with(extra_filter)
        probe = await self.provider.embed_single(self.config.probe_text)
        results = await self.store.query_by_vector(
            probe, self._fetch_size(limit), metadata_filter
        )

        logger.info(f"Retrieved {len(results)} recent articles from {time_window.value}")
        return list(results[:limit])

    # ============================================================================
    # Strategy B: Semantic
    # ============================================================================

    async def retrieve_by_query(
        self,
        text: str,
        options: Optional[RetrievalOptions] = None,
        now: Optional[datetime] = None,
    ) -> List[ScoredResult]:
        """
        Semantic search for ``text``.

        Args:
            text: Free-text query
            options: limit, time_window, sources, quality_threshold, diversity_filter
            now: Reference instant for the time window

        Returns:
            At most options.limit results. Results with relevance below
            quality_threshold are dropped.
        """
        options = options or RetrievalOptions(limit=self.config.default_limit)
        logger.info(f"Querying for: {text!r} (limit={options.limit})")

        metadata_filter = ArticleFilter()
        if options.time_window:
            metadata_filter.published_after = parse_time_window(options.time_window).cutoff(now)
        if options.sources:
            metadata_filter.sources = list(options.sources)

        vector = await self.provider.embed_single(text)
        results = await self.store.query_by_vector(
            vector,
            self._fetch_size(options.limit),
            None if metadata_filter.is_empty() else metadata_filter,
        )

        if options.quality_threshold is not None:
            results = [r for r in results if r.relevance_score >= options.quality_threshold]

        if options.diversity_filter:
            results = apply_diversity_filter(results, options.limit)
        else:
            results = list(results[:options.limit])

        logger.info(f"Found {len(results)} relevant articles for query: {text!r}")
        return results

    # ============================================================================
    # Strategy C: Topic fan-out
    # ============================================================================

    async def retrieve_by_topics_detailed(
        self,
        topics: Sequence[str],
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> TopicRetrieval:
        """
        Run semantic search per topic and merge.

        Each topic gets ceil(limit / len(topics)) results with diversity
        filtering on. A failing topic is logged and reported in ``failures``;
        the other topics still contribute. Embedding dimension mismatches
        are not treated as topic failures and propagate.
        """
        limit = self.config.topic_limit if limit is None else limit
        if not topics:
            return TopicRetrieval(results=[])

        logger.info(f"Retrieving articles for {len(topics)} topics: {list(topics)}")
        per_topic = math.ceil(limit / len(topics))

        combined: List[ScoredResult] = []
        failures: List[PartialTopicFailure] = []
        for topic in topics:
            try:
                combined.extend(await self.retrieve_by_query(
                    topic,
                    RetrievalOptions(limit=per_topic, diversity_filter=True),
                    now=now,
                ))
            except DimensionMismatchError:
                raise
            except Exception as e:
                failure = PartialTopicFailure(topic, e)
                logger.warning(f"{failure.message}: {sanitize_error(e)}")
                failures.append(failure)

        results = apply_diversity_filter(remove_duplicates(combined), limit)
        logger.info(f"Retrieved {len(results)} articles across {len(topics)} topics")
        return TopicRetrieval(results=results, failures=failures)

    async def retrieve_by_topics(
        self,
        topics: Sequence[str],
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[ScoredResult]:
        """Topic fan-out results (see retrieve_by_topics_detailed)."""
        return (await self.retrieve_by_topics_detailed(topics, limit, now=now)).results

    # ============================================================================
    # Comprehensive entry point
    # ============================================================================

    async def retrieve(
        self,
        options: Optional[RetrievalOptions] = None,
        now: Optional[datetime] = None,
    ) -> List[ScoredResult]:
        """
        Dispatch on options: query -> semantic, else topics -> fan-out, else recency.

        The output is always de-duplicated, hybrid-ranked when
        options.hybrid_weights is set, and cut to options.limit.
        """
        options = options or RetrievalOptions(
            limit=self.config.default_limit,
            time_window=self.config.default_time_window,
        )

        if options.query:
            results = await self.retrieve_by_query(options.query, options, now=now)
        elif options.topics:
            results = await self.retrieve_by_topics(options.topics, options.limit, now=now)
        else:
            extra_filter = ArticleFilter(sources=list(options.sources)) if options.sources else None
            results = await self.retrieve_recent(
                options.time_window, options.limit, extra_filter=extra_filter, now=now
            )

        results = remove_duplicates(results)

        if options.hybrid_weights is not None:
            results = combine_and_rank(
                results,
                options.hybrid_weights,
                now=now,
                quality_reference_words=self.config.quality_reference_words,
            )

        results = results[:options.limit]
        logger.info(f"Retrieved {len(results)} total relevant articles")
        return results
