"""Vector store backends and the precedent clause library.

A VectorStore is the durable backing of the SimilarityIndex: it persists
``(clause_id, text, type, favorability, explanation, vector)`` rows and
replays them into the index at startup.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Sequence

from app.models.clause import ClauseRecord, ClauseType, SimilarClause
from core.embeddings.provider import EmbeddingProvider
from core.errors import EmbeddingTimeoutError, InvalidQueryError
from core.retrieval.similarity_index import SimilarityIndex
from core.retry import RetryConfig, call_with_retry

logger = logging.getLogger("clauseguard.vector_store")

VectorRow = tuple[ClauseRecord, list[float]]


class VectorStore(ABC):
    """Async persistence port for indexed clauses."""

    @abstractmethod
    async def upsert(self, record: ClauseRecord, vector: Sequence[float]) -> None:
        """Insert or replace the row for ``record.id``."""

    @abstractmethod
    async def delete(self, clause_id: str) -> bool:
        """Delete a row. Returns False if it did not exist."""

    @abstractmethod
    async def load_all(self) -> list[VectorRow]:
        """Return every row, oldest write first."""


class InMemoryVectorStore(VectorStore):
    """Process-local store; rows are lost on restart."""

    def __init__(self) -> None:
        self._rows: dict[str, VectorRow] = {}

    async def upsert(self, record: ClauseRecord, vector: Sequence[float]) -> None:
        # Re-insert so iteration order tracks the latest write
        self._rows.pop(record.id, None)
        self._rows[record.id] = (record, list(vector))

    async def delete(self, clause_id: str) -> bool:
        return self._rows.pop(clause_id, None) is not None

    async def load_all(self) -> list[VectorRow]:
        return list(self._rows.values())


def to_pgvector(vector: Sequence[float]) -> str:
    """Format a vector as a pgvector text literal."""
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"


def from_pgvector(value: Any) -> list[float]:
    """Parse a pgvector text literal (or an already-decoded sequence)."""
    if isinstance(value, str):
        return [float(v) for v in json.loads(value)]
    return [float(v) for v in value]


class PgVectorStore(VectorStore):
    """PostgreSQL + pgvector store using an asyncpg pool."""

    TABLE = "clause_library"

    def __init__(self, pool: Any, dimensions: int) -> None:
        """Initialize with a database connection pool."""
        self.pool = pool
        self.dimensions = dimensions

    async def ensure_tables(self) -> None:
        """Ensure the pgvector extension and clause table exist."""
        async with self.pool.acquire() as conn:
            await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    clause_id VARCHAR(255) PRIMARY KEY,
                    clause_text TEXT NOT NULL,
                    clause_type VARCHAR(50) NOT NULL,
                    is_favorable BOOLEAN NOT NULL DEFAULT FALSE,
                    explanation TEXT NOT NULL DEFAULT '',
                    embedding vector({int(self.dimensions)}) NOT NULL,
                    updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
                )
            """)
            await conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.TABLE}_type
                ON {self.TABLE}(clause_type)
            """)

    async def upsert(self, record: ClauseRecord, vector: Sequence[float]) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                INSERT INTO {self.TABLE} (
                    clause_id, clause_text, clause_type, is_favorable, explanation, embedding
                )
                VALUES ($1, $2, $3, $4, $5, $6::vector)
                ON CONFLICT (clause_id) DO UPDATE SET
                    clause_text = EXCLUDED.clause_text,
                    clause_type = EXCLUDED.clause_type,
                    is_favorable = EXCLUDED.is_favorable,
                    explanation = EXCLUDED.explanation,
                    embedding = EXCLUDED.embedding,
                    updated_at = NOW()
                """,
                record.id,
                record.clause_text,
                record.clause_type.value,
                record.is_favorable,
                record.explanation,
                to_pgvector(vector),
            )

    async def delete(self, clause_id: str) -> bool:
        async with self.pool.acquire() as conn:
            status = await conn.execute(
                f"DELETE FROM {self.TABLE} WHERE clause_id = $1",
                clause_id,
            )
        return status.endswith(" 1")

    async def load_all(self) -> list[VectorRow]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT clause_id, clause_text, clause_type, is_favorable, explanation,
                       embedding::text AS embedding
                FROM {self.TABLE}
                ORDER BY updated_at, clause_id
                """
            )

        result: list[VectorRow] = []
        for row in rows:
            try:
                clause_type = ClauseType(row["clause_type"])
            except ValueError:
                logger.warning(f"Unknown clause type {row['clause_type']!r} for {row['clause_id']}")
                clause_type = ClauseType.OTHER
            record = ClauseRecord(
                id=row["clause_id"],
                clause_text=row["clause_text"],
                clause_type=clause_type,
                is_favorable=row["is_favorable"],
                explanation=row["explanation"] or "",
            )
            result.append((record, from_pgvector(row["embedding"])))
        return result


class ClauseLibrary:
    """Precedent clause corpus: embeds, indexes and persists clauses.

    Example:
        library = ClauseLibrary(provider, SimilarityIndex(provider.dimensions), InMemoryVectorStore())
        await library.add_clause(record)
        similar = await library.find_similar("Client may terminate at will.", k=3)
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        index: SimilarityIndex | None = None,
        store: VectorStore | None = None,
        timeout_seconds: float = 15.0,
        retry: RetryConfig | None = None,
    ) -> None:
        self.embedding_provider = embedding_provider
        self.index = index or SimilarityIndex(embedding_provider.dimensions)
        self.store = store or InMemoryVectorStore()
        self.timeout_seconds = timeout_seconds
        self.retry = retry or RetryConfig()
        if self.index.dimensions != embedding_provider.dimensions:
            raise ValueError(
                f"Index dimensions {self.index.dimensions} != provider dimensions "
                f"{embedding_provider.dimensions}"
            )

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        return await call_with_retry(
            self.embedding_provider.embed_many,
            texts,
            timeout=self.timeout_seconds,
            retry_config=self.retry,
            timeout_error=EmbeddingTimeoutError,
            label="Library embedding",
        )

    async def load(self) -> int:
        """Hydrate the index from the store. Returns the number of clauses loaded."""
        rows = await self.store.load_all()
        return self.index.hydrate(rows)

    async def add_clause(self, record: ClauseRecord) -> None:
        """Embed, persist and index one clause (write-through).

        The index only changes once the store accepted the row.
        """
        [vector] = await self._embed([record.clause_text])
        self.index.validate(vector)
        await self.store.upsert(record, vector)
        self.index.index(record, vector)

    async def add_clauses(self, records: list[ClauseRecord]) -> int:
        """Embed in one batch, then persist and index each clause."""
        if not records:
            return 0
        vectors = await self._embed([r.clause_text for r in records])
        for vector in vectors:
            self.index.validate(vector)
        for record, vector in zip(records, vectors):
            await self.store.upsert(record, vector)
            self.index.index(record, vector)
        return len(records)

    async def remove_clause(self, clause_id: str) -> bool:
        removed = self.index.remove(clause_id)
        stored = await self.store.delete(clause_id)
        return removed or stored

    def query(self, vector: Sequence[float], k: int) -> list[SimilarClause]:
        return self.index.query(vector, k)

    async def find_similar(self, clause_text: str, k: int) -> list[SimilarClause]:
        """Embed ``clause_text`` and return its ``k`` nearest precedents.

        Raises:
            InvalidQueryError: If ``k <= 0`` (checked before embedding).
            EmbeddingError: If the provider fails.
        """
        if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
            raise InvalidQueryError(f"k must be a positive integer, got {k!r}")
        [vector] = await self._embed([clause_text])
        return self.index.query(vector, k)

    def __len__(self) -> int:
        return len(self.index)
