"""Shared route dependencies."""

from fastapi import Request

from core.pipeline.orchestrator import AnalysisPipeline, build_pipeline


def get_pipeline(request: Request) -> AnalysisPipeline:
    """Pipeline built at startup; built lazily if the lifespan did not run."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        pipeline = build_pipeline()
        request.app.state.pipeline = pipeline
    return pipeline
