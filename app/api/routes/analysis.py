"""Analysis API routes for contract risk analysis and precedent lookup."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.dependencies import get_pipeline
from app.models.analysis import (
    AnalysisRequest,
    AnalysisResponse,
    SimilarClausesRequest,
    SimilarClausesResponse,
)
from core.errors import ContractAnalysisError, EmbeddingError, EmptyDocumentError, InvalidQueryError
from core.pipeline.orchestrator import AnalysisPipeline

logger = logging.getLogger("clauseguard.api.analysis")

router = APIRouter()


@router.post("", response_model=AnalysisResponse)
async def analyze_contract(
    request: AnalysisRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> AnalysisResponse:
    """Analyze contract text and return the risk assessment.

    Per-clause failures do not fail the request; they are listed in
    ``failures`` with ``degraded`` set.
    """
    run = pipeline.create_run()
    try:
        result = await pipeline.analyze(
            request.contract_text,
            contract_type_hint=request.contract_type,
            filename=request.filename,
            run=run,
        )
    except EmptyDocumentError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except ContractAnalysisError as e:
        logger.warning(f"Analysis failed ({e.code}): {e.message}")
        return AnalysisResponse(
            success=False,
            error=f"{e.code}: {e.message}",
            contract_id=str(run.contract_id) if run.contract_id else None,
        )

    return AnalysisResponse(
        success=True,
        analysis=result.analysis,
        contract_id=str(result.contract_id),
        degraded=result.degraded,
        failures=result.failures,
    )


@router.post("/similar-clauses", response_model=SimilarClausesResponse)
async def find_similar_clauses(
    request: SimilarClausesRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> SimilarClausesResponse:
    """Find precedent clauses similar to the given clause text."""
    try:
        results = await pipeline.find_similar_clauses(request.clause_text, request.k)
    except InvalidQueryError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except EmbeddingError as e:
        raise HTTPException(status_code=502, detail=f"{e.code}: {e.message}")

    return SimilarClausesResponse(results=results)
