"""Contract record routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from app.api.dependencies import get_pipeline
from app.models.clause import ClauseRow
from app.models.document import Contract, ContractResponse
from core.pipeline.orchestrator import AnalysisPipeline

router = APIRouter()


@router.get("/", response_model=list[ContractResponse])
async def list_contracts(pipeline: AnalysisPipeline = Depends(get_pipeline)) -> list[ContractResponse]:
    """List all analyzed contracts, newest first."""
    contracts = await pipeline.document_store.list_contracts()
    return [ContractResponse.from_contract(contract) for contract in contracts]


@router.get("/{contract_id}", response_model=Contract)
async def get_contract(contract_id: UUID, pipeline: AnalysisPipeline = Depends(get_pipeline)) -> Contract:
    """Get a contract record with its analysis."""
    contract = await pipeline.document_store.get_contract(contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract


@router.get("/{contract_id}/clauses", response_model=list[ClauseRow])
async def get_contract_clauses(
    contract_id: UUID,
    pipeline: AnalysisPipeline = Depends(get_pipeline),
) -> list[ClauseRow]:
    """Get the flagged clause rows of a contract by ascending position."""
    contract = await pipeline.document_store.get_contract(contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    return await pipeline.document_store.get_clauses(contract_id)
