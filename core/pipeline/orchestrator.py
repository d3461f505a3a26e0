"""Pipeline Orchestrator - drives one contract through the analysis stages.

Flow per document:
1. Segment the text into clauses
2. Fan out per-clause classification (bounded by a semaphore)
3. Optionally embed clauses concurrently and look up similar precedents
4. Aggregate flagged clauses into a ContractAnalysis

Per-clause failures are recorded and skipped (degraded mode) unless strict
mode is on, in which case the first failure aborts the document. Contract
status transitions are reported to the DocumentStore throughout.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from uuid import UUID

from app.config import Settings, get_settings
from app.models.analysis import ClauseFailure, ContractAnalysis, ContractType
from app.models.clause import ClauseRow, FlaggedClause, SimilarClause
from app.models.document import Contract, ContractStatus
from core.aggregation.aggregator import AggregationWeights, AnalysisAggregator
from core.cost_tracker import CostTracker
from core.decomposition.clause_segmenter import ClauseSegmenter, RawClause
from core.embeddings.provider import EmbeddingProvider, create_embedding_provider
from core.errors import (
    AnalysisCancelledError,
    ClassificationError,
    ClassificationTimeoutError,
    ContractAnalysisError,
    EmbeddingError,
    EmbeddingTimeoutError,
    InvalidQueryError,
)
from core.pipeline.document_store import DocumentStore, InMemoryDocumentStore
from core.pipeline.run import PipelineRun, PipelineState
from core.retrieval.vector_store import ClauseLibrary
from core.retry import RetryConfig, call_with_retry
from core.utils.risk_taxonomy import detect_contract_type
from core.workers.classifier import ClauseClassifier, build_context
from core.workers.worker_registry import ClassifierRegistry

logger = logging.getLogger("clauseguard.pipeline")


@dataclass
class PipelineOptions:
    """Runtime knobs for one pipeline instance."""
    max_concurrency: int = 5
    classification_timeout_seconds: float = 30.0
    embedding_timeout_seconds: float = 15.0
    strict_mode: bool = False
    enable_similarity: bool = False
    similarity_as_context: bool = False
    similarity_top_k: int = 3
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineOptions":
        return cls(
            max_concurrency=settings.max_concurrency,
            classification_timeout_seconds=settings.classification_timeout_seconds,
            embedding_timeout_seconds=settings.embedding_timeout_seconds,
            strict_mode=settings.strict_mode,
            enable_similarity=settings.enable_similarity,
            similarity_as_context=settings.similarity_as_context,
            similarity_top_k=settings.similarity_top_k,
            retry=RetryConfig(
                max_retries=settings.max_retries,
                initial_delay_seconds=settings.retry_backoff_seconds,
            ),
        )


@dataclass
class AnalysisResult:
    """Analysis plus everything the caller needs to judge its completeness."""
    analysis: ContractAnalysis
    contract_id: UUID
    run: PipelineRun
    failures: list[ClauseFailure] = field(default_factory=list)
    similar_clauses: dict[int, list[SimilarClause]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failures)


class AnalysisPipeline:
    """Contract analysis pipeline.

    Example:
        pipeline = AnalysisPipeline(ClauseClassifier(KeywordClauseJudge()))
        result = await pipeline.analyze(contract_text, contract_type_hint="freelance")
        print(result.analysis.overall_risk, result.degraded)
    """

    def __init__(
        self,
        classifier: ClauseClassifier,
        segmenter: ClauseSegmenter | None = None,
        aggregator: AnalysisAggregator | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        library: ClauseLibrary | None = None,
        document_store: DocumentStore | None = None,
        options: PipelineOptions | None = None,
        cost_tracker: CostTracker | None = None,
    ) -> None:
        self.classifier = classifier
        self.segmenter = segmenter or ClauseSegmenter()
        self.aggregator = aggregator or AnalysisAggregator()
        self.embedding_provider = embedding_provider
        self.options = options or PipelineOptions()
        if library is None and embedding_provider is not None:
            library = ClauseLibrary(
                embedding_provider,
                timeout_seconds=self.options.embedding_timeout_seconds,
                retry=self.options.retry,
            )
        self.library = library
        self.document_store = document_store or InMemoryDocumentStore()
        self.cost_tracker = cost_tracker
        if self.options.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

    def create_run(self) -> PipelineRun:
        """Create a run handle; pass it to ``analyze`` to be able to cancel."""
        return PipelineRun()

    @property
    def similarity_enabled(self) -> bool:
        return self.options.enable_similarity and self.embedding_provider is not None and self.library is not None

    async def analyze(
        self,
        contract_text: str,
        contract_type_hint: str | ContractType | None = None,
        filename: str = "contract.txt",
        run: PipelineRun | None = None,
    ) -> AnalysisResult:
        """Analyze one contract.

        Raises:
            EmptyDocumentError: Text is empty or whitespace-only.
            EmptyAnalysisError: Segmentation produced no clauses.
            ClassificationError: Strict mode and a clause failed.
            AnalysisCancelledError: The run was cancelled.
        """
        run = run or self.create_run()
        hinted_type = ContractType.normalize(contract_type_hint)
        contract = Contract(
            title=PurePath(filename).stem or filename,
            filename=filename,
            file_size=len(contract_text.encode("utf-8")) if contract_text else 0,
            contract_type=hinted_type,
        )
        await self.document_store.create_contract(contract)
        run.contract_id = contract.id
        logger.info(f"Analysis started for contract {contract.id} ({filename})")

        try:
            result = await self._run_stages(contract, contract_text, hinted_type, run)
        except ContractAnalysisError as e:
            await self._mark_failed(contract.id, run, e.code, e.message)
            raise
        except asyncio.CancelledError:
            await self._mark_failed(contract.id, run, AnalysisCancelledError.code, "Analysis task cancelled")
            raise
        except Exception as e:
            await self._mark_failed(contract.id, run, "InternalError", str(e))
            raise

        if self.cost_tracker is not None:
            self.cost_tracker.log_batch_summary(str(contract.id))
        return result

    async def _run_stages(
        self,
        contract: Contract,
        contract_text: str,
        hinted_type: ContractType | None,
        run: PipelineRun,
    ) -> AnalysisResult:
        clauses = self.segmenter.segment(contract_text)
        run.transition(PipelineState.SEGMENTED)
        contract_type = hinted_type or detect_contract_type(contract_text)
        logger.info(f"Contract {contract.id}: {len(clauses)} clauses, type {contract_type.value}")

        self._raise_if_cancelled(run)
        run.transition(PipelineState.CLASSIFYING)
        await self.document_store.update_status(contract.id, ContractStatus.PROCESSING, clause_count=len(clauses))

        warnings: list[str] = []
        vectors: list[list[float]] | None = None
        embed_task: asyncio.Task | None = None
        if self.similarity_enabled and clauses:
            embed_task = asyncio.create_task(self._embed_clauses(clauses))

        try:
            precedents: dict[int, list[SimilarClause]] = {}
            if embed_task is not None and self.options.similarity_as_context:
                vectors = await self._collect_embeddings(embed_task, warnings)
                embed_task = None
                precedents = self._lookup_precedents(clauses, vectors)

            flagged, failures = await self._classify_all(clauses, contract_type, precedents, run)

            if self.similarity_enabled and clauses:
                run.transition(PipelineState.EMBEDDING)
                if embed_task is not None:
                    vectors = await self._collect_embeddings(embed_task, warnings)
                    embed_task = None
                if not precedents:
                    precedents = self._lookup_precedents(clauses, vectors)
        finally:
            if embed_task is not None and not embed_task.done():
                embed_task.cancel()

        self._raise_if_cancelled(run)
        run.transition(PipelineState.AGGREGATING)
        analysis = self.aggregator.aggregate(flagged, contract_type, len(clauses), len(failures))

        rows = [ClauseRow.from_flagged(contract.id, clause) for clause in analysis.flagged_clauses]
        await self.document_store.save_clauses(contract.id, rows)
        await self.document_store.update_status(
            contract.id,
            ContractStatus.COMPLETED,
            analysis=analysis,
            clause_count=len(clauses),
        )
        run.transition(PipelineState.COMPLETED)

        if failures:
            logger.warning(f"Contract {contract.id} completed degraded: {len(failures)} clause failures")
        logger.info(f"Contract {contract.id} completed: {analysis.overall_risk.value} ({analysis.risk_score})")

        return AnalysisResult(
            analysis=analysis,
            contract_id=contract.id,
            run=run,
            failures=failures,
            similar_clauses=precedents,
            warnings=warnings,
        )

    def _raise_if_cancelled(self, run: PipelineRun) -> None:
        if run.cancelled:
            raise AnalysisCancelledError("Analysis cancelled")

    async def _mark_failed(self, contract_id: UUID, run: PipelineRun, code: str, message: str) -> None:
        run.fail(code)
        reason = code if message in ("", code) else f"{code}: {message}"
        logger.error(f"Contract {contract_id} failed: {reason}")
        await self.document_store.update_status(contract_id, ContractStatus.FAILED, failure_reason=reason)

    async def _classify_clause(
        self,
        clause: RawClause,
        contract_type: ContractType,
        precedents: list[SimilarClause],
        semaphore: asyncio.Semaphore,
        run: PipelineRun,
    ) -> FlaggedClause | None:
        async with semaphore:
            self._raise_if_cancelled(run)
            context = build_context(clause, contract_type, precedents)
            try:
                judgement = await call_with_retry(
                    self.classifier.request_judgement,
                    clause,
                    context,
                    timeout=self.options.classification_timeout_seconds,
                    retry_config=self.options.retry,
                    timeout_error=ClassificationTimeoutError,
                    label=f"Classification of clause at {clause.position}",
                )
            except ClassificationError as e:
                if e.position is None:
                    e.position = clause.position
                raise
            except Exception as e:
                raise ClassificationError(
                    f"Classification failed: {e}", position=clause.position
                ) from e

        return self.classifier.reconcile(clause, judgement)

    async def _classify_all(
        self,
        clauses: list[RawClause],
        contract_type: ContractType,
        precedents: dict[int, list[SimilarClause]],
        run: PipelineRun,
    ) -> tuple[list[FlaggedClause], list[ClauseFailure]]:
        """Fan out classification and join all outcomes, in position order."""
        if not clauses:
            return [], []

        semaphore = asyncio.Semaphore(self.options.max_concurrency)
        tasks = [
            asyncio.create_task(
                self._classify_clause(clause, contract_type, precedents.get(clause.position, []), semaphore, run)
            )
            for clause in clauses
        ]
        cancel_waiter = asyncio.create_task(run.wait_cancelled())
        pending = set(tasks)

        try:
            while pending:
                done, _ = await asyncio.wait(pending | {cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if cancel_waiter in done:
                    raise AnalysisCancelledError("Analysis cancelled")
                for task in done:
                    pending.discard(task)
                    error = task.exception()
                    if isinstance(error, AnalysisCancelledError):
                        raise error
                    if error is not None and self.options.strict_mode:
                        raise error
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            cancel_waiter.cancel()
            await asyncio.gather(*tasks, cancel_waiter, return_exceptions=True)

        flagged: list[FlaggedClause] = []
        failures: list[ClauseFailure] = []
        for clause, task in zip(clauses, tasks):
            error = task.exception()
            if error is None:
                outcome = task.result()
                if outcome is not None:
                    flagged.append(outcome)
                continue
            code = error.code if isinstance(error, ContractAnalysisError) else ClassificationError.code
            message = error.message if isinstance(error, ContractAnalysisError) else str(error)
            logger.warning(f"Clause at {clause.position} failed ({code}): {message}")
            failures.append(ClauseFailure(position=clause.position, error_type=code, reason=message))

        flagged.sort(key=lambda c: c.position)
        return flagged, failures

    async def _embed_clauses(self, clauses: list[RawClause]) -> list[list[float]]:
        return await call_with_retry(
            self.embedding_provider.embed_many,
            [clause.text for clause in clauses],
            timeout=self.options.embedding_timeout_seconds,
            retry_config=self.options.retry,
            timeout_error=EmbeddingTimeoutError,
            label="Clause embedding",
        )

    async def _collect_embeddings(self, task: asyncio.Task, warnings: list[str]) -> list[list[float]] | None:
        """Await the embedding task; failures become warnings, never errors."""
        try:
            return await task
        except ContractAnalysisError as e:
            warnings.append(f"{e.code}: {e.message}")
            logger.warning(f"Embedding skipped: {e.code}: {e.message}")
        except Exception as e:
            warnings.append(f"{EmbeddingError.code}: {e}")
            logger.warning(f"Embedding skipped: {e}")
        return None

    def _lookup_precedents(
        self,
        clauses: list[RawClause],
        vectors: list[list[float]] | None,
    ) -> dict[int, list[SimilarClause]]:
        if vectors is None or self.library is None or len(self.library) == 0:
            return {}
        return {
            clause.position: self.library.query(vector, self.options.similarity_top_k)
            for clause, vector in zip(clauses, vectors)
        }

    async def find_similar_clauses(self, clause_text: str, k: int) -> list[SimilarClause]:
        """Return the ``k`` precedent clauses most similar to ``clause_text``.

        Raises:
            InvalidQueryError: If ``k <= 0`` or the text is empty.
            EmbeddingError: If no embedding provider is configured or it fails.
        """
        if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
            raise InvalidQueryError(f"k must be a positive integer, got {k!r}")
        if not clause_text or not clause_text.strip():
            raise InvalidQueryError("clause_text must not be empty")
        if self.embedding_provider is None or self.library is None:
            raise EmbeddingError("Similarity search is not configured")

        [vector] = await call_with_retry(
            self.embedding_provider.embed_many,
            [clause_text],
            timeout=self.options.embedding_timeout_seconds,
            retry_config=self.options.retry,
            timeout_error=EmbeddingTimeoutError,
            label="Query embedding",
        )
        return self.library.query(vector, k)

    async def embed_text(self, text: str) -> list[float]:
        """Embed arbitrary text with the pipeline's timeout and retry policy."""
        if self.embedding_provider is None:
            raise EmbeddingError("Embedding provider is not configured")
        [vector] = await call_with_retry(
            self.embedding_provider.embed_many,
            [text],
            timeout=self.options.embedding_timeout_seconds,
            retry_config=self.options.retry,
            timeout_error=EmbeddingTimeoutError,
            label="Text embedding",
        )
        return vector


def build_pipeline(
    settings: Settings | None = None,
    document_store: DocumentStore | None = None,
    library: ClauseLibrary | None = None,
) -> AnalysisPipeline:
    """Build a pipeline from settings."""
    settings = settings or get_settings()
    tracker = CostTracker(logger_name="clauseguard.cost_tracker")

    backend_name = settings.classifier_backend.lower().strip()
    if backend_name == "openai":
        backend = ClassifierRegistry.create(
            backend_name,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            cost_tracker=tracker,
        )
    else:
        backend = ClassifierRegistry.create(backend_name)

    options = PipelineOptions.from_settings(settings)
    embedding_provider = library.embedding_provider if library else create_embedding_provider(settings, tracker)
    if library is None:
        library = ClauseLibrary(
            embedding_provider,
            timeout_seconds=options.embedding_timeout_seconds,
            retry=options.retry,
        )

    logger.info(f"Pipeline built: classifier={backend_name}, embeddings={settings.embedding_backend}")
    return AnalysisPipeline(
        classifier=ClauseClassifier(backend),
        segmenter=ClauseSegmenter(min_clause_chars=settings.min_clause_chars),
        aggregator=AnalysisAggregator(
            AggregationWeights(settings.risk_weight_max, settings.risk_weight_mean)
        ),
        embedding_provider=embedding_provider,
        library=library,
        document_store=document_store,
        options=options,
        cost_tracker=tracker,
    )
