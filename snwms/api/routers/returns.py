# snwms/api/routers/returns.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from snwms.api.deps import get_engine
from snwms.models.enums import ReturnStatus
from snwms.schemas.returns import (
    ReturnDecisionIn,
    ReturnIntakeIn,
    ReturnOut,
    ReturnProcessedIn,
    ReturnStatsOut,
)
from snwms.services.inventory_engine import InventoryEngine

router = APIRouter(prefix="/returns", tags=["returns"])


@router.post("", response_model=ReturnOut, status_code=201)
async def intake_return(payload: ReturnIntakeIn, engine: InventoryEngine = Depends(get_engine)) -> ReturnOut:
    return ReturnOut.model_validate(await engine.intake_return(payload))


@router.get("", response_model=List[ReturnOut])
async def list_returns(
    status: ReturnStatus = Query(..., description="退货单状态"),
    engine: InventoryEngine = Depends(get_engine),
) -> List[ReturnOut]:
    return [ReturnOut.model_validate(r) for r in await engine.get_returns_by_status(status)]


@router.get("/search", response_model=List[ReturnOut])
async def search_returns(
    q: str = Query(..., min_length=1),
    engine: InventoryEngine = Depends(get_engine),
) -> List[ReturnOut]:
    return [ReturnOut.model_validate(r) for r in await engine.search_returns(q)]


@router.get("/pending", response_model=List[ReturnOut])
async def pending_returns(engine: InventoryEngine = Depends(get_engine)) -> List[ReturnOut]:
    return [ReturnOut.model_validate(r) for r in await engine.get_pending_returns()]


@router.get("/stats", response_model=ReturnStatsOut)
async def return_stats(engine: InventoryEngine = Depends(get_engine)) -> ReturnStatsOut:
    return ReturnStatsOut.model_validate(await engine.get_return_statistics())


@router.get("/{return_id}", response_model=ReturnOut)
async def get_return(return_id: str, engine: InventoryEngine = Depends(get_engine)) -> ReturnOut:
    return ReturnOut.model_validate(await engine.get_return(return_id))


@router.post("/{return_id}/decision", response_model=ReturnOut)
async def decide_return(
    return_id: str,
    payload: ReturnDecisionIn,
    engine: InventoryEngine = Depends(get_engine),
) -> ReturnOut:
    record = await engine.make_return_decision(
        return_id=return_id, decision=payload.decision, actor=payload.actor, notes=payload.notes
    )
    return ReturnOut.model_validate(record)


@router.post("/{return_id}/processed", response_model=ReturnOut)
async def mark_processed(
    return_id: str,
    payload: ReturnProcessedIn,
    engine: InventoryEngine = Depends(get_engine),
) -> ReturnOut:
    record = await engine.mark_return_processed(return_id=return_id, actor=payload.actor)
    return ReturnOut.model_validate(record)
