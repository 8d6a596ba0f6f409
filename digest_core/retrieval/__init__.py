"""
Article retrieval: recency, semantic and topic fan-out strategies with
de-duplication, per-source diversity capping and hybrid re-ranking.
"""

from .article_retriever import ArticleRetriever, TopicRetrieval
from .ranking import (
    apply_diversity_filter,
    combine_and_rank,
    quality_score,
    remove_duplicates,
)
from .time_window import TIME_WINDOW_MS, TimeWindow, parse_time_window

__all__ = [
    "ArticleRetriever",
    "TopicRetrieval",
    "apply_diversity_filter",
    "combine_and_rank",
    "quality_score",
    "remove_duplicates",
    "TIME_WINDOW_MS",
    "TimeWindow",
    "parse_time_window",
]
