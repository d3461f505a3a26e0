"""Embedding generation route."""

from fastapi import APIRouter, Depends, HTTPException

from app.api.dependencies import get_pipeline
from app.models.analysis import EmbeddingRequest, EmbeddingResponse
from core.errors import EmbeddingError
from core.pipeline.orchestrator import AnalysisPipeline

router = APIRouter()


@router.post("", response_model=EmbeddingResponse)
async def create_embedding(
    request: EmbeddingRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> EmbeddingResponse:
    """Embed a piece of text with the configured provider."""
    if not request.text or not request.text.strip():
        raise HTTPException(status_code=422, detail="Text is required")

    try:
        vector = await pipeline.embed_text(request.text)
    except EmbeddingError as e:
        raise HTTPException(status_code=502, detail=f"{e.code}: {e.message}")

    return EmbeddingResponse(embedding=vector)
