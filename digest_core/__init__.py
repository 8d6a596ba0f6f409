"""
digest_core: clustering and retrieval core of the news digest pipeline.

- aggregation: chunk embeddings -> one article vector + bounded text
- clustering: k-means topic clusters with representatives and silhouette score
- retrieval: recency / semantic / topic retrieval with dedup, diversity and hybrid ranking
- storage, embedding: vector store and embedding provider collaborators
"""

__version__ = "0.1.0"
