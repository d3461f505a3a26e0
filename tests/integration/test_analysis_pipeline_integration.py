"""Integration tests for the contract analysis pipeline.

Tests cover:
- End-to-end analysis of a freelance contract with the offline keyword judge
- Precedent lookup with hashing embeddings and an in-memory vector store
- Degraded runs where one clause's backend call fails
- Contract records and clause rows in the document store

No network access is needed: the keyword judge and hashing embeddings run
locally.
"""

from typing import Any

import pytest
import pytest_asyncio

from app.config import Settings
from app.models.analysis import ContractType
from app.models.clause import ClauseRecord, ClauseType, RiskLevel
from app.models.document import ContractStatus
from core.embeddings.provider import HashingEmbeddingProvider
from core.pipeline.orchestrator import AnalysisPipeline, PipelineOptions, build_pipeline
from core.retry import RetryConfig
from core.retrieval.vector_store import ClauseLibrary, InMemoryVectorStore
from core.workers.base_worker import ClassificationContext
from core.workers.classifier import ClauseClassifier
from core.workers.keyword_judge import KeywordClauseJudge


FREELANCE_CONTRACT = """FREELANCE SERVICES AGREEMENT

This Freelance Services Agreement is entered into between Acme Studios Ltd ("Client") and Jane Doe ("Contractor").

1. Services. Contractor will design and build the marketing website described in Schedule A.

2. Payment. Client shall pay each invoice within 90 days of receipt, at Client's sole discretion as to the amount of each payment.

3. Termination. Client may terminate this Agreement at any time without notice and without further payment to Contractor.

4. Intellectual Property. All intellectual property, including any pre-existing materials of the Contractor, shall be assigned to Client upon creation.

5. Liability. Contractor shall indemnify Client against any and all claims arising from the Services.

6. Confidentiality. Contractor shall keep Client information confidential for two years after termination.

7. Governing Law. This Agreement is governed by the laws of Client's home state.
"""

BALANCED_CONTRACT = """1. Payment. Client shall pay each invoice within 30 days of receipt.

2. Termination. Either party may terminate this Agreement with 30 days written notice.
"""

PRECEDENTS = [
    ClauseRecord(
        id="term-1",
        clause_text="Client may terminate this Agreement at any time without notice.",
        clause_type=ClauseType.TERMINATION,
        is_favorable=False,
        explanation="At-will termination leaves work in progress unpaid.",
    ),
    ClauseRecord(
        id="pay-1",
        clause_text="Invoices are payable within thirty days by bank transfer.",
        clause_type=ClauseType.PAYMENT,
        is_favorable=True,
        explanation="Standard prompt payment.",
    ),
]


def position_of(text: str, marker: str) -> int:
    return text.index(marker)


class FailingOnIndemnityJudge(KeywordClauseJudge):
    """Keyword judge whose backend call fails for indemnity clauses."""

    BACKEND = "failing-indemnity"

    def classify(self, clause_text: str, context: ClassificationContext) -> dict[str, Any]:
        if "indemnify" in clause_text:
            raise RuntimeError("model returned an empty completion")
        return super().classify(clause_text, context)


@pytest.fixture
def keyword_pipeline() -> AnalysisPipeline:
    return AnalysisPipeline(ClauseClassifier(KeywordClauseJudge()))


@pytest_asyncio.fixture
async def precedent_library() -> ClauseLibrary:
    library = ClauseLibrary(HashingEmbeddingProvider(dimensions=256), store=InMemoryVectorStore())
    await library.add_clauses(PRECEDENTS)
    return library


class TestKeywordAnalysis:
    """End-to-end analysis with the offline judge."""

    @pytest.mark.asyncio
    async def test_one_sided_freelance_contract(self, keyword_pipeline):
        result = await keyword_pipeline.analyze(FREELANCE_CONTRACT, filename="acme.txt")
        analysis = result.analysis

        assert analysis.contract_type == ContractType.FREELANCE_AGREEMENT
        assert analysis.overall_risk == RiskLevel.HIGH
        assert analysis.risk_score >= 70
        assert result.degraded is False

        by_position = {c.position: c for c in analysis.flagged_clauses}
        termination = by_position[position_of(FREELANCE_CONTRACT, "3. Termination")]
        assert termination.clause_type == ClauseType.TERMINATION
        assert termination.risk_level == RiskLevel.HIGH

        confidentiality = by_position[position_of(FREELANCE_CONTRACT, "6. Confidentiality")]
        assert confidentiality.risk_level == RiskLevel.LOW

        jurisdiction = by_position[position_of(FREELANCE_CONTRACT, "7. Governing Law")]
        assert jurisdiction.clause_type == ClauseType.JURISDICTION
        assert jurisdiction.risk_level == RiskLevel.MEDIUM

        # Services clause and preamble carry no risk signal
        assert position_of(FREELANCE_CONTRACT, "1. Services") not in by_position
        assert 0 not in by_position

    @pytest.mark.asyncio
    async def test_flagged_clauses_in_document_order(self, keyword_pipeline):
        result = await keyword_pipeline.analyze(FREELANCE_CONTRACT)
        positions = [c.position for c in result.analysis.flagged_clauses]
        assert positions == sorted(positions)
        assert len(positions) == 6

    @pytest.mark.asyncio
    async def test_priorities_start_with_worst_clause(self, keyword_pipeline):
        result = await keyword_pipeline.analyze(FREELANCE_CONTRACT)
        analysis = result.analysis

        assert analysis.negotiation_priorities[0].startswith("Termination:")
        assert "Confidentiality terms carry low risk." in analysis.positive_points
        assert "Main risk drivers: Termination" in analysis.summary

    @pytest.mark.asyncio
    async def test_balanced_contract_is_low_risk(self, keyword_pipeline):
        result = await keyword_pipeline.analyze(BALANCED_CONTRACT, contract_type_hint="service agreement")
        analysis = result.analysis

        assert analysis.overall_risk == RiskLevel.LOW
        assert analysis.negotiation_priorities == []
        assert analysis.contract_type == ContractType.SERVICE_AGREEMENT
        assert "No high or medium risk clauses were found." in analysis.summary


class TestDocumentStore:
    """Contract records written by the pipeline."""

    @pytest.mark.asyncio
    async def test_records_and_rows(self, keyword_pipeline):
        result = await keyword_pipeline.analyze(FREELANCE_CONTRACT, filename="acme.txt")
        store = keyword_pipeline.document_store

        contract = await store.get_contract(result.contract_id)
        assert contract.analysis_status == ContractStatus.COMPLETED
        assert contract.clause_count == 8
        assert contract.contract_type == ContractType.FREELANCE_AGREEMENT

        rows = await store.get_clauses(result.contract_id)
        assert [r.position_in_doc for r in rows] == [c.position for c in result.analysis.flagged_clauses]

    @pytest.mark.asyncio
    async def test_contracts_listed_newest_first(self, keyword_pipeline):
        first = await keyword_pipeline.analyze(BALANCED_CONTRACT, filename="first.txt")
        second = await keyword_pipeline.analyze(FREELANCE_CONTRACT, filename="second.txt")

        contracts = await keyword_pipeline.document_store.list_contracts()
        assert [c.id for c in contracts] == [second.contract_id, first.contract_id]


class TestDegradedRun:
    """A failing clause does not sink the document."""

    @pytest.mark.asyncio
    async def test_failed_clause_is_reported(self):
        pipeline = AnalysisPipeline(
            ClauseClassifier(FailingOnIndemnityJudge()),
            options=PipelineOptions(retry=RetryConfig(max_retries=0)),
        )

        result = await pipeline.analyze(FREELANCE_CONTRACT)

        liability_pos = position_of(FREELANCE_CONTRACT, "5. Liability")
        assert result.degraded is True
        assert [f.position for f in result.failures] == [liability_pos]
        assert "empty completion" in result.failures[0].reason
        assert liability_pos not in [c.position for c in result.analysis.flagged_clauses]
        assert result.analysis.overall_risk == RiskLevel.HIGH


class TestPrecedentLookup:
    """Similarity search against a precedent corpus."""

    @pytest.mark.asyncio
    async def test_precedents_attached_to_clauses(self, precedent_library):
        pipeline = AnalysisPipeline(
            ClauseClassifier(KeywordClauseJudge()),
            embedding_provider=precedent_library.embedding_provider,
            library=precedent_library,
            options=PipelineOptions(enable_similarity=True, similarity_as_context=True, similarity_top_k=1),
        )

        result = await pipeline.analyze(FREELANCE_CONTRACT)

        termination_pos = position_of(FREELANCE_CONTRACT, "3. Termination")
        assert result.similar_clauses[termination_pos][0].id == "term-1"
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_query_endpoint_semantics(self, precedent_library):
        pipeline = AnalysisPipeline(
            ClauseClassifier(KeywordClauseJudge()),
            embedding_provider=precedent_library.embedding_provider,
            library=precedent_library,
        )

        results = await pipeline.find_similar_clauses(PRECEDENTS[0].clause_text, 2)

        assert [r.id for r in results][0] == "term-1"
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].similarity >= results[1].similarity


class TestOfflinePipelineFromSettings:
    """Pipeline built from settings with local backends only."""

    @pytest.mark.asyncio
    async def test_build_and_analyze(self):
        settings = Settings(
            classifier_backend="keyword",
            embedding_backend="hashing",
            embedding_dimensions=128,
            enable_similarity=True,
        )
        pipeline = build_pipeline(settings)
        await pipeline.library.add_clauses(PRECEDENTS)

        result = await pipeline.analyze(FREELANCE_CONTRACT)

        assert result.analysis.overall_risk == RiskLevel.HIGH
        assert result.similar_clauses
        summary = pipeline.cost_tracker.get_batch_summary(str(result.contract_id))
        assert summary.total_cost_usd == 0.0
