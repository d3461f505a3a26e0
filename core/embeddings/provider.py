"""Embedding providers.

An EmbeddingProvider maps text to a fixed-length float vector. Providers are
pure for a given configuration: the same text always yields the same vector,
which is what makes CachingEmbeddingProvider valid.
"""

import hashlib
import logging
import re
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional

import numpy as np
from openai import OpenAI

from app.config import get_settings
from core.cost_tracker import CapabilityType, CostTracker, ExecutionStatus
from core.errors import EmbeddingError

logger = logging.getLogger("clauseguard.embeddings")


class EmbeddingProvider(ABC):
    """Abstract base class for embedding backends."""

    BACKEND: str = "base"

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of every vector this provider returns."""

    @abstractmethod
    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts.

        Returns vectors positionally aligned with ``texts``. All-or-nothing:
        either every text is embedded or EmbeddingError is raised.
        """

    def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        return self.embed_many([text])[0]


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI embeddings API provider.

    Example:
        provider = OpenAIEmbeddingProvider(model="text-embedding-3-small", dimensions=768)
        vector = provider.embed("Client may terminate at any time.")
    """

    BACKEND = "openai"
    BATCH_SIZE = 256

    def __init__(
        self,
        model: str | None = None,
        dimensions: int | None = None,
        api_key: str | None = None,
        client: Optional[OpenAI] = None,
        cost_tracker: CostTracker | None = None,
    ) -> None:
        settings = get_settings()
        self.model = model or settings.embedding_model
        self._dimensions = dimensions or settings.embedding_dimensions
        self._api_key = api_key
        self._client = client
        self.cost_tracker = cost_tracker or CostTracker(logger_name="clauseguard.embeddings")

    @property
    def client(self) -> OpenAI:
        """Get or create OpenAI client (lazy initialization)."""
        if self._client is None:
            api_key = self._api_key or get_settings().openai_api_key
            if not api_key or api_key == "your_openai_api_key_here":
                raise EmbeddingError("OpenAI API key not configured. Set OPENAI_API_KEY in .env")
            self._client = OpenAI(api_key=api_key)
        return self._client

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        vectors: list[list[float]] = []
        for offset in range(0, len(texts), self.BATCH_SIZE):
            batch = texts[offset:offset + self.BATCH_SIZE]
            vectors.extend(self._embed_batch(batch, offset))
        return vectors

    def _embed_batch(self, batch: list[str], offset: int) -> list[list[float]]:
        start_time = time.time()
        try:
            response = self.client.embeddings.create(
                model=self.model,
                input=batch,
                dimensions=self._dimensions,
            )
        except EmbeddingError:
            raise
        except Exception as e:
            self.cost_tracker.log_execution(self.cost_tracker.create_log(
                capability=CapabilityType.EMBEDDING,
                clause_id=f"batch_{offset}",
                model=self.model,
                input_tokens=0,
                output_tokens=0,
                execution_time_ms=int((time.time() - start_time) * 1000),
                status=ExecutionStatus.FAILURE,
                error_message=str(e),
            ))
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(batch):
            raise EmbeddingError(f"Expected {len(batch)} embeddings, got {len(data)}")

        vectors = [list(item.embedding) for item in data]
        for vector in vectors:
            if len(vector) != self._dimensions:
                raise EmbeddingError(
                    f"Provider returned vector of length {len(vector)}, expected {self._dimensions}"
                )

        usage = getattr(response, "usage", None)
        self.cost_tracker.log_execution(self.cost_tracker.create_log(
            capability=CapabilityType.EMBEDDING,
            clause_id=f"batch_{offset}",
            model=self.model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=0,
            execution_time_ms=int((time.time() - start_time) * 1000),
            status=ExecutionStatus.SUCCESS,
            extra_data={"texts": len(batch)},
        ))
        return vectors


class HashingEmbeddingProvider(EmbeddingProvider):
    """Deterministic feature-hashing embeddings.

    Token unigrams and bigrams are hashed into ``dimensions`` buckets with a
    signed hash, then L2-normalised. Texts sharing vocabulary land close in
    cosine space; no network or model download is needed.
    """

    BACKEND = "hashing"
    TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

    def __init__(self, dimensions: int = 256) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _features(self, text: str) -> list[str]:
        tokens = self.TOKEN_PATTERN.findall(text.lower())
        bigrams = [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
        return tokens + bigrams

    def _vectorize(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dimensions, dtype=np.float64)
        for feature in self._features(text):
            digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "little")
            bucket = value % self._dimensions
            sign = 1.0 if (value >> 63) & 1 == 0 else -1.0
            vector[bucket] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        return [self._vectorize(text).tolist() for text in texts]


class CachingEmbeddingProvider(EmbeddingProvider):
    """LRU cache in front of another provider, keyed on text.

    ``embed_many`` only sends cache misses upstream (each distinct text once).
    """

    def __init__(self, inner: EmbeddingProvider, max_size: int = 2048) -> None:
        self.inner = inner
        self.BACKEND = inner.BACKEND
        self.max_size = max_size
        self._cache: OrderedDict[str, list[float]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @property
    def dimensions(self) -> int:
        return self.inner.dimensions

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        results: dict[str, list[float]] = {}
        missing: list[str] = []

        with self._lock:
            for text in texts:
                if text in results:
                    continue
                cached = self._cache.get(text)
                if cached is not None:
                    self._cache.move_to_end(text)
                    results[text] = cached
                    self.hits += 1
                elif text not in missing:
                    missing.append(text)
                    self.misses += 1

        if missing:
            fetched = self.inner.embed_many(missing)
            with self._lock:
                for text, vector in zip(missing, fetched):
                    results[text] = vector
                    self._cache[text] = vector
                    self._cache.move_to_end(text)
                while len(self._cache) > self.max_size:
                    self._cache.popitem(last=False)

        return [list(results[text]) for text in texts]

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


def create_embedding_provider(settings=None, cost_tracker: CostTracker | None = None) -> EmbeddingProvider:
    """Build the configured provider, wrapped in an LRU cache."""
    settings = settings or get_settings()
    backend = settings.embedding_backend.lower().strip()
    if backend == "openai":
        inner: EmbeddingProvider = OpenAIEmbeddingProvider(
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            cost_tracker=cost_tracker,
        )
    elif backend == "hashing":
        inner = HashingEmbeddingProvider(dimensions=settings.embedding_dimensions)
    else:
        raise ValueError(f"Unknown embedding backend: {settings.embedding_backend!r}")
    logger.info(f"Embedding provider: {backend} ({inner.dimensions} dims)")
    return CachingEmbeddingProvider(inner)
