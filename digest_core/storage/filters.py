"""
Metadata predicate for vector store queries.

The same filter is rendered to SQL for PostgreSQL and evaluated in Python
by the in-memory store, so both backends agree on what matches.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from digest_core.models import ArticleMetadata


@dataclass
class ArticleFilter:
    """
    Metadata filter for article queries.

    Supports filtering by:
    - published_after / published_before: Inclusive bounds on published_date
    - sources: Source name must be one of these
    - categories: Article must carry ANY of these categories
    - min_word_count: Minimum total word count

    Example:
        >>> article_filter = ArticleFilter(
        ...     published_after=datetime.now(timezone.utc) - timedelta(hours=24),
        ...     sources=["Hacker News", "The Verge"],
        ... )
        >>> results = await store.query_by_vector(vec, top_k=20, metadata_filter=article_filter)
    """

    published_after: Optional[datetime] = None
    published_before: Optional[datetime] = None
    sources: Optional[List[str]] = None
    categories: Optional[List[str]] = None
    min_word_count: Optional[int] = None

    def to_sql_conditions(self, param_offset: int = 0) -> tuple[str, List[Any]]:
        """
        Convert filter to SQL WHERE conditions and parameters.

        Args:
            param_offset: Number of parameters already used by the query ($1..$n)

        Returns:
            Tuple of (SQL condition string, list of parameter values)
        """
        conditions = []
        params: List[Any] = []
        param_idx = param_offset + 1

        if self.published_after is not None:
            conditions.append(f"(metadata->>'published_date')::timestamptz >= ${param_idx}")
            params.append(self.published_after)
            param_idx += 1

        if self.published_before is not None:
            conditions.append(f"(metadata->>'published_date')::timestamptz <= ${param_idx}")
            params.append(self.published_before)
            param_idx += 1

        if self.sources:
            conditions.append(f"metadata->>'source' = ANY(${param_idx}::text[])")
            params.append(list(self.sources))
            param_idx += 1

        if self.categories:
            # metadata->'categories' ?| ARRAY['ai', 'security']
            conditions.append(f"metadata->'categories' ?| ${param_idx}::text[]")
            params.append(list(self.categories))
            param_idx += 1

        if self.min_word_count is not None:
            conditions.append(f"(metadata->>'total_word_count')::int >= ${param_idx}")
            params.append(self.min_word_count)
            param_idx += 1

        return " AND ".join(conditions) if conditions else "", params

    def matches(self, metadata: ArticleMetadata) -> bool:
        """Evaluate the filter against one article's metadata."""
        if self.published_after is not None and metadata.published_date < self.published_after:
            return False
        if self.published_before is not None and metadata.published_date > self.published_before:
            return False
        if self.sources and metadata.source not in self.sources:
            return False
        if self.categories and not set(self.categories) & set(metadata.categories):
            return False
        if self.min_word_count is not None and metadata.total_word_count < self.min_word_count:
            return False
        return True

    def is_empty(self) -> bool:
        """Check if filter has any conditions."""
        return not any([
            self.published_after is not None,
            self.published_before is not None,
            self.sources,
            self.categories,
            self.min_word_count is not None,
        ])

    def merged_with(self, other: Optional["ArticleFilter"]) -> "ArticleFilter":
        """Combine with another filter; fields set on ``other`` win."""
        if other is None:
            return self
        return ArticleFilter(
            published_after=other.published_after if other.published_after is not None else self.published_after,
            published_before=other.published_before if other.published_before is not None else self.published_before,
            sources=other.sources or self.sources,
            categories=other.categories or self.categories,
            min_word_count=other.min_word_count if other.min_word_count is not None else self.min_word_count,
        )
