"""Analysis pipeline orchestration."""

from core.pipeline.document_store import DocumentStore, InMemoryDocumentStore
from core.pipeline.orchestrator import (
    AnalysisPipeline,
    AnalysisResult,
    PipelineOptions,
    build_pipeline,
)
from core.retry import RetryConfig
from core.pipeline.run import PipelineRun, PipelineState

__all__ = [
    "AnalysisPipeline",
    "AnalysisResult",
    "DocumentStore",
    "InMemoryDocumentStore",
    "PipelineOptions",
    "PipelineRun",
    "PipelineState",
    "RetryConfig",
    "build_pipeline",
]
