"""
Shared fixtures: article/chunk factories and a deterministic embedding provider.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

import numpy as np
import pytest

from digest_core.embedding.provider import EmbeddingProvider
from digest_core.exceptions import EmbeddingProviderError
from digest_core.models import (
    ArticleMetadata,
    DocumentUnit,
    RawChunk,
    ScoredResult,
    SourceItem,
)
from digest_core.storage.memory_store import InMemoryVectorStore

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakeEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic provider for tests.

    Known texts map to fixed vectors; unknown texts get a vector seeded from
    their SHA-256 digest. Texts in ``failing_texts`` raise
    EmbeddingProviderError; texts longer than ``max_chars`` are rejected.
    """

    def __init__(
        self,
        dimensions: int = 4,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        failing_texts: Sequence[str] = (),
        max_chars: Optional[int] = None,
    ):
        self._dimensions = dimensions
        self.vectors = {k: np.asarray(v, dtype=np.float64) for k, v in (vectors or {}).items()}
        self.failing_texts = set(failing_texts)
        self.max_chars = max_chars
        self.calls: List[List[str]] = []

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def accepts(self, text: str) -> bool:
        return self.max_chars is None or len(text) <= self.max_chars

    def vector_for(self, text: str) -> np.ndarray:
        if text in self.vectors:
            return self.vectors[text].copy()
        seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:8], 16)
        return np.random.default_rng(seed).normal(size=self._dimensions)

    async def embed(self, texts: List[str]) -> List[np.ndarray]:
        self.calls.append(list(texts))
        if not texts:
            return []
        for text in texts:
            if text in self.failing_texts:
                raise EmbeddingProviderError(f"provider rejected {text!r}")
        return [self.vector_for(t) for t in texts if self.accepts(t)]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_metadata():
    """Factory for ArticleMetadata with sensible defaults."""

    def _make(
        source: str = "Hacker News",
        source_url: str = "https://example.com/a",
        title: str = "Title",
        published_date: Optional[datetime] = None,
        total_word_count: int = 400,
        article_id: Optional[str] = None,
        categories: Sequence[str] = (),
    ) -> ArticleMetadata:
        return ArticleMetadata(
            source=source,
            source_url=source_url,
            title=title,
            published_date=published_date or NOW - timedelta(hours=1),
            total_word_count=total_word_count,
            total_char_count=total_word_count * 6,
            categories=list(categories),
            article_id=article_id,
        )

    return _make


@pytest.fixture
def make_unit(make_metadata):
    """Factory for DocumentUnit; id defaults to the URL-derived article id style."""

    def _make(
        unit_id: str,
        embedding: Sequence[float],
        source: str = "Hacker News",
        published_date: Optional[datetime] = None,
        text: Optional[str] = None,
        title: Optional[str] = None,
        total_word_count: int = 400,
    ) -> DocumentUnit:
        metadata = make_metadata(
            source=source,
            source_url=f"https://example.com/{unit_id}",
            title=title if title is not None else f"Article {unit_id}",
            published_date=published_date,
            total_word_count=total_word_count,
            article_id=unit_id,
        )
        return DocumentUnit(
            id=unit_id,
            text=text if text is not None else f"Body of {unit_id}",
            embedding=np.asarray(embedding, dtype=np.float64),
            metadata=metadata,
        )

    return _make


@pytest.fixture
def make_result(make_metadata):
    """Factory for ScoredResult with a given relevance score."""

    def _make(
        result_id: str,
        relevance: float,
        source: str = "Hacker News",
        source_url: Optional[str] = None,
        article_id: Optional[str] = "default",
        published_date: Optional[datetime] = None,
        total_word_count: int = 400,
    ) -> ScoredResult:
        metadata = make_metadata(
            source=source,
            source_url=source_url or f"https://example.com/{result_id}",
            title=f"Article {result_id}",
            published_date=published_date,
            total_word_count=total_word_count,
            article_id=result_id if article_id == "default" else article_id,
        )
        return ScoredResult(
            id=result_id,
            text=f"Body of {result_id}",
            metadata=metadata,
            distance=1.0 - relevance,
        )

    return _make


@pytest.fixture
def make_chunk():
    """Factory for RawChunk."""

    def _make(
        url: str,
        index: int,
        content: str,
        chunk_id: Optional[str] = None,
        source: str = "The Verge",
        title: str = "Some article",
        pub_date: Optional[datetime] = None,
    ) -> RawChunk:
        return RawChunk(
            id=chunk_id or f"{url}#{index}",
            chunk_index=index,
            content=content,
            word_count=len(content.split()),
            char_count=len(content),
            source_item=SourceItem(
                id=url,
                title=title,
                link=url,
                pub_date=pub_date or NOW - timedelta(hours=2),
                source=source,
                categories=["tech"],
            ),
            timestamp=NOW,
        )

    return _make


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def memory_store():
    return InMemoryVectorStore()


@pytest.fixture
def provider_factory():
    """The FakeEmbeddingProvider class, for tests that need custom vectors."""
    return FakeEmbeddingProvider
