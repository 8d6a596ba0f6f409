"""
Post-processing of retrieval results: de-duplication, per-source diversity
capping and hybrid re-ranking.

All functions are pure; they return new lists and never mutate their input.
"""

import logging
import math
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from digest_core.config import HybridWeights
from digest_core.models import ScoredResult, ensure_aware, utc_now

logger = logging.getLogger(__name__)

DEFAULT_QUALITY_REFERENCE_WORDS = 200


def _by_relevance(results: Sequence[ScoredResult]) -> List[ScoredResult]:
    # Stable: equal scores keep their input order
    return sorted(results, key=lambda r: r.relevance_score, reverse=True)


def remove_duplicates(results: Sequence[ScoredResult]) -> List[ScoredResult]:
    """
    Keep the first occurrence of each article, preserving order.

    Identity is metadata.article_id when present, otherwise metadata.source_url.
    """
    seen = set()
    unique = []
    for result in results:
        key = result.metadata.identity
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
    return unique


def apply_diversity_filter(results: Sequence[ScoredResult], limit: int) -> List[ScoredResult]:
    """
    Spread results across sources.

    Each source contributes at most max(1, limit // number_of_sources) of its
    best items. If that leaves fewer than ``limit`` items, the best of the
    rest (any source, matched by id) fill the gap. The cap is computed once
    up front. Output is sorted by descending relevance and truncated to
    ``limit``.
    """
    if not results or limit <= 0:
        return []

    groups: Dict[str, List[ScoredResult]] = {}
    for result in results:
        groups.setdefault(result.source, []).append(result)

    max_per_source = max(1, limit // len(groups))

    selected: List[ScoredResult] = []
    for source_results in groups.values():
        selected.extend(_by_relevance(source_results)[:max_per_source])

    remaining = limit - len(selected)
    if remaining > 0:
        selected_ids = {r.id for r in selected}
        leftovers = [r for r in results if r.id not in selected_ids]
        selected.extend(_by_relevance(leftovers)[:remaining])

    return _by_relevance(selected)[:limit]


def quality_score(word_count: int, reference_words: int = DEFAULT_QUALITY_REFERENCE_WORDS) -> float:
    """Content length score: word_count / reference_words, capped at 1."""
    return min(max(word_count, 0) / reference_words, 1.0)


def combine_and_rank(
    results: Sequence[ScoredResult],
    weights: Optional[HybridWeights] = None,
    now: Optional[datetime] = None,
    quality_reference_words: int = DEFAULT_QUALITY_REFERENCE_WORDS,
) -> List[ScoredResult]:
    """
    Re-rank by hybrid score.

    Per result:
    - recency_score: position of published_date in [oldest in batch, now], in [0, 1];
      1 for every item when the span is zero
    - diversity_score: 1 / ln(freq + 1), freq = results in this batch from the same source
    - quality_score: min(total_word_count / quality_reference_words, 1)
    - hybrid_score = relevance * quality_weight + recency * recency_weight
      + diversity * diversity_bonus

    relevance_score is kept as is. Sorted by descending hybrid_score.
    """
    if not results:
        return []

    weights = weights or HybridWeights()
    now = ensure_aware(now) if now else utc_now()

    oldest = min(r.metadata.published_date for r in results)
    time_range = (now - oldest).total_seconds()
    source_counts = Counter(r.source for r in results)

    ranked = []
    for result in results:
        if time_range > 0:
            offset = (result.metadata.published_date - oldest).total_seconds()
            recency = min(max(offset / time_range, 0.0), 1.0)
        else:
            recency = 1.0

        diversity = 1.0 / math.log(source_counts[result.source] + 1)
        quality = quality_score(result.metadata.total_word_count, quality_reference_words)

        hybrid = (
            result.relevance_score * weights.quality_weight
            + recency * weights.recency_weight
            + diversity * weights.diversity_bonus
        )

        ranked.append(replace(
            result,
            hybrid_score=hybrid,
            recency_score=recency,
            diversity_score=diversity,
            quality_score=quality,
        ))

    ranked.sort(key=lambda r: r.hybrid_score, reverse=True)
    logger.debug(f"Ranked {len(ranked)} results by hybrid score")
    return ranked
