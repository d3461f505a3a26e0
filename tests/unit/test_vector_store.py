"""Unit tests for vector stores and the precedent clause library."""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.models.clause import ClauseRecord, ClauseType
from core.embeddings.provider import HashingEmbeddingProvider
from core.errors import DimensionMismatchError, EmbeddingTimeoutError, InvalidQueryError
from core.retrieval.similarity_index import SimilarityIndex
from core.retrieval.vector_store import (
    ClauseLibrary,
    InMemoryVectorStore,
    PgVectorStore,
    from_pgvector,
    to_pgvector,
)
from core.retry import RetryConfig


PRECEDENTS = [
    ClauseRecord(
        id="term-at-will",
        clause_text="Client may terminate this Agreement at any time without notice.",
        clause_type=ClauseType.TERMINATION,
        is_favorable=False,
        explanation="At-will termination leaves work unpaid.",
    ),
    ClauseRecord(
        id="pay-net30",
        clause_text="Client shall pay each invoice within thirty days of receipt.",
        clause_type=ClauseType.PAYMENT,
        is_favorable=True,
        explanation="Standard prompt payment.",
    ),
]


def make_pool(conn: AsyncMock) -> MagicMock:
    """asyncpg-style pool whose acquire() yields ``conn``."""
    acquire = MagicMock()
    acquire.__aenter__ = AsyncMock(return_value=conn)
    acquire.__aexit__ = AsyncMock(return_value=False)
    pool = MagicMock()
    pool.acquire.return_value = acquire
    return pool


class TestPgVectorLiterals:
    """Tests for vector text conversion."""

    def test_to_pgvector(self):
        assert to_pgvector([1, 0.5, -2.0]) == "[1.0,0.5,-2.0]"

    def test_from_pgvector_text(self):
        assert from_pgvector("[1,0.5,-2]") == [1.0, 0.5, -2.0]

    def test_from_pgvector_sequence(self):
        assert from_pgvector((1, 2)) == [1.0, 2.0]


class TestInMemoryVectorStore:
    """Tests for the process-local store."""

    @pytest.mark.asyncio
    async def test_upsert_replaces_and_reorders(self):
        store = InMemoryVectorStore()
        await store.upsert(PRECEDENTS[0], [1.0, 0.0])
        await store.upsert(PRECEDENTS[1], [0.0, 1.0])
        await store.upsert(PRECEDENTS[0], [0.5, 0.5])

        rows = await store.load_all()
        assert [r.id for r, _ in rows] == ["pay-net30", "term-at-will"]
        assert rows[1][1] == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_delete(self):
        store = InMemoryVectorStore()
        await store.upsert(PRECEDENTS[0], [1.0])
        assert await store.delete("term-at-will") is True
        assert await store.delete("term-at-will") is False


class TestPgVectorStore:
    """Tests for the pgvector store with a mocked asyncpg pool."""

    @pytest.mark.asyncio
    async def test_ensure_tables(self):
        conn = AsyncMock()
        store = PgVectorStore(make_pool(conn), dimensions=768)

        await store.ensure_tables()

        statements = [call.args[0] for call in conn.execute.call_args_list]
        assert "CREATE EXTENSION IF NOT EXISTS vector" in statements[0]
        assert "vector(768)" in statements[1]

    @pytest.mark.asyncio
    async def test_upsert(self):
        conn = AsyncMock()
        store = PgVectorStore(make_pool(conn), dimensions=2)

        await store.upsert(PRECEDENTS[0], [0.25, 0.75])

        args = conn.execute.call_args.args
        assert "ON CONFLICT (clause_id) DO UPDATE" in args[0]
        assert "$6::vector" in args[0]
        assert args[1:] == (
            "term-at-will",
            PRECEDENTS[0].clause_text,
            "termination",
            False,
            "At-will termination leaves work unpaid.",
            "[0.25,0.75]",
        )

    @pytest.mark.asyncio
    async def test_delete_status(self):
        conn = AsyncMock()
        conn.execute.return_value = "DELETE 0"
        store = PgVectorStore(make_pool(conn), dimensions=2)

        assert await store.delete("missing") is False

    @pytest.mark.asyncio
    async def test_load_all(self):
        conn = AsyncMock()
        conn.fetch.return_value = [
            {
                "clause_id": "a",
                "clause_text": "Payment within 30 days.",
                "clause_type": "payment",
                "is_favorable": True,
                "explanation": None,
                "embedding": "[0.1,0.9]",
            },
            {
                "clause_id": "b",
                "clause_text": "Force majeure applies.",
                "clause_type": "force_majeure",
                "is_favorable": False,
                "explanation": "Legacy row",
                "embedding": "[1,0]",
            },
        ]
        store = PgVectorStore(make_pool(conn), dimensions=2)

        rows = await store.load_all()

        assert rows[0][0].clause_type == ClauseType.PAYMENT
        assert rows[0][0].explanation == ""
        assert rows[0][1] == [0.1, 0.9]
        assert rows[1][0].clause_type == ClauseType.OTHER
        assert "ORDER BY updated_at" in conn.fetch.call_args.args[0]


class TestClauseLibrary:
    """Tests for the write-through precedent library."""

    @pytest.mark.asyncio
    async def test_add_and_find(self):
        library = ClauseLibrary(HashingEmbeddingProvider(dimensions=64))
        assert await library.add_clauses(PRECEDENTS) == 2

        results = await library.find_similar(PRECEDENTS[0].clause_text, k=1)

        assert results[0].id == "term-at-will"
        assert results[0].similarity == pytest.approx(1.0)
        assert len(library) == 2

    @pytest.mark.asyncio
    async def test_persisted_rows_reload(self):
        provider = HashingEmbeddingProvider(dimensions=64)
        store = InMemoryVectorStore()
        await ClauseLibrary(provider, store=store).add_clause(PRECEDENTS[1])

        reloaded = ClauseLibrary(provider, store=store)
        assert await reloaded.load() == 1
        results = await reloaded.find_similar(PRECEDENTS[1].clause_text, k=3)
        assert [r.id for r in results] == ["pay-net30"]

    @pytest.mark.asyncio
    async def test_remove_clause(self):
        library = ClauseLibrary(HashingEmbeddingProvider(dimensions=64))
        await library.add_clauses(PRECEDENTS)

        assert await library.remove_clause("pay-net30") is True
        assert await library.remove_clause("pay-net30") is False
        assert len(library) == 1

    @pytest.mark.asyncio
    async def test_invalid_k_checked_before_embedding(self):
        provider = MagicMock()
        provider.dimensions = 8
        library = ClauseLibrary(provider)

        with pytest.raises(InvalidQueryError):
            await library.find_similar("anything", k=0)
        provider.embed_many.assert_not_called()

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError):
            ClauseLibrary(HashingEmbeddingProvider(dimensions=64), index=SimilarityIndex(32))


class TestClauseLibraryWrites:
    """Tests for embedding policy and store/index consistency."""

    NO_RETRY = RetryConfig(max_retries=0)

    @staticmethod
    def mock_provider(dimensions: int = 64) -> MagicMock:
        provider = MagicMock()
        provider.dimensions = dimensions
        return provider

    @pytest.mark.asyncio
    async def test_failed_upsert_leaves_index_empty(self):
        """A clause the store rejected is not searchable."""
        store = InMemoryVectorStore()
        store.upsert = AsyncMock(side_effect=ConnectionError("database unavailable"))
        library = ClauseLibrary(HashingEmbeddingProvider(dimensions=64), store=store)

        with pytest.raises(ConnectionError):
            await library.add_clause(PRECEDENTS[0])

        assert len(library) == 0
        assert "term-at-will" not in library.index

    @pytest.mark.asyncio
    async def test_wrong_dimensions_not_persisted(self):
        provider = self.mock_provider()
        provider.embed_many.return_value = [[0.5] * 32]
        store = InMemoryVectorStore()
        library = ClauseLibrary(provider, store=store)

        with pytest.raises(DimensionMismatchError):
            await library.add_clause(PRECEDENTS[0])

        assert await store.load_all() == []
        assert len(library) == 0

    @pytest.mark.asyncio
    async def test_transient_embedding_error_retried(self):
        vectors = HashingEmbeddingProvider(dimensions=64).embed_many([PRECEDENTS[0].clause_text])
        provider = self.mock_provider()
        provider.embed_many.side_effect = [ConnectionError("connection reset by peer"), vectors]
        library = ClauseLibrary(provider, retry=RetryConfig(max_retries=1, initial_delay_seconds=0.001))

        await library.add_clause(PRECEDENTS[0])

        assert provider.embed_many.call_count == 2
        assert len(library) == 1

    @pytest.mark.asyncio
    async def test_embedding_timeout(self):
        provider = self.mock_provider()
        provider.embed_many.side_effect = lambda texts: time.sleep(0.2) or [[0.1] * 64]
        library = ClauseLibrary(provider, timeout_seconds=0.01, retry=self.NO_RETRY)

        with pytest.raises(EmbeddingTimeoutError):
            await library.find_similar("Client may terminate at will.", k=1)
        assert len(library) == 0
