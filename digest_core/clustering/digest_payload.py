"""
Hand-off between clusters and the text generation collaborator.

The core never generates language. It turns each cluster into a structured
payload, and checks the shape of the (label, summary, takeaways) triple that
comes back.
"""

import logging
import re
from typing import Any, List, Mapping, Sequence, Union

import numpy as np

from digest_core.exceptions import DigestShapeError
from digest_core.models import ArticleReference, Cluster, ClusterDigest, ClusterPayload
from digest_core.similarity import cosine_similarity

logger = logging.getLogger(__name__)

MAX_TAKEAWAYS = 5
EXCERPT_LENGTH = 200
DEFAULT_MAX_ARTICLES = 10

# "1. ", "2) ", "- ", "• " list markers
_LIST_MARKER = re.compile(r"^(\d+[.)]\s*|[-•*]\s*)")


def build_cluster_payload(cluster: Cluster) -> ClusterPayload:
    """Titles, texts and sources of the cluster members, in member order."""
    return ClusterPayload(
        topic_seed_titles=[u.metadata.title for u in cluster.members if u.metadata.title],
        member_texts=[u.text for u in cluster.members],
        member_sources=[u.metadata.source for u in cluster.members],
    )


def parse_takeaways(text: str) -> List[str]:
    """Split a numbered or bulleted list into items, stripping the markers."""
    items = []
    for line in text.splitlines():
        item = _LIST_MARKER.sub("", line.strip(), count=1).strip()
        if item:
            items.append(item)
    return items


def validate_cluster_digest(raw: Union[ClusterDigest, Mapping[str, Any]]) -> ClusterDigest:
    """
    Check the shape of a generated digest.

    Content is not judged. The label must be non-empty, and at most
    MAX_TAKEAWAYS takeaways are kept (extra ones are dropped). Takeaways may
    arrive as a list or as one numbered-list string.

    Raises:
        DigestShapeError: If the label is missing/empty or fields have the wrong type
    """
    if isinstance(raw, ClusterDigest):
        label, summary, takeaways = raw.label, raw.summary_text, raw.takeaways
    elif isinstance(raw, Mapping):
        label = raw.get("label")
        summary = raw.get("summary_text", "")
        takeaways = raw.get("takeaways", [])
    else:
        raise DigestShapeError(f"Unsupported digest type: {type(raw).__name__}")

    if not isinstance(label, str) or not label.strip():
        raise DigestShapeError("Cluster digest label must be a non-empty string")
    if summary is None:
        summary = ""
    if not isinstance(summary, str):
        raise DigestShapeError("Cluster digest summary_text must be a string")

    if isinstance(takeaways, str):
        takeaways = parse_takeaways(takeaways)
    elif takeaways is None:
        takeaways = []
    elif not isinstance(takeaways, Sequence) or not all(isinstance(t, str) for t in takeaways):
        raise DigestShapeError("Cluster digest takeaways must be a list of strings")

    cleaned = [t.strip() for t in takeaways if t.strip()]
    if len(cleaned) > MAX_TAKEAWAYS:
        logger.debug(f"Dropping {len(cleaned) - MAX_TAKEAWAYS} takeaways beyond {MAX_TAKEAWAYS}")

    return ClusterDigest(
        label=label.strip(),
        summary_text=summary.strip(),
        takeaways=cleaned[:MAX_TAKEAWAYS],
    )


def format_article_references(
    cluster: Cluster,
    max_articles: int = DEFAULT_MAX_ARTICLES,
    excerpt_length: int = EXCERPT_LENGTH,
) -> List[ArticleReference]:
    """References for the first ``max_articles`` members, with short excerpts."""
    references = []
    for unit in cluster.members[:max_articles]:
        excerpt = unit.text[:excerpt_length]
        if len(unit.text) > excerpt_length:
            excerpt += "..."
        references.append(ArticleReference(
            title=unit.metadata.title or "Untitled",
            source=unit.metadata.source or "Unknown",
            url=unit.metadata.source_url,
            published_at=unit.metadata.published_date,
            excerpt=excerpt,
        ))
    return references


def average_relevance(cluster: Cluster) -> float:
    """Mean cosine similarity of the members to the cluster centroid (0.0 if empty)."""
    if not cluster.members:
        return 0.0
    return float(np.mean([cosine_similarity(u.embedding, cluster.centroid) for u in cluster.members]))
