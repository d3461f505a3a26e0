"""Embedding providers for clause text."""

from core.embeddings.provider import (
    CachingEmbeddingProvider,
    EmbeddingProvider,
    HashingEmbeddingProvider,
    OpenAIEmbeddingProvider,
    create_embedding_provider,
)

__all__ = [
    "CachingEmbeddingProvider",
    "EmbeddingProvider",
    "HashingEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "create_embedding_provider",
]
