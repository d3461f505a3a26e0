"""Precedent retrieval: similarity index, vector stores and clause library."""

from core.retrieval.similarity_index import SimilarityIndex
from core.retrieval.vector_store import (
    ClauseLibrary,
    InMemoryVectorStore,
    PgVectorStore,
    VectorStore,
)

__all__ = [
    "ClauseLibrary",
    "InMemoryVectorStore",
    "PgVectorStore",
    "SimilarityIndex",
    "VectorStore",
]
