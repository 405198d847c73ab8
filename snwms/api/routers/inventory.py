# snwms/api/routers/inventory.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from snwms.api.deps import get_engine
from snwms.schemas.inventory import (
    BatchOut,
    BatchReceiveIn,
    ConsistencyIssueOut,
    ConsistencyReportOut,
    InventoryStatsOut,
    ReleaseIn,
    ReserveIn,
    SkuSummaryOut,
    UnitOut,
)
from snwms.schemas.delivery import DeliveryOut
from snwms.schemas.returns import ReturnOut
from snwms.services.inventory_engine import InventoryEngine

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post("/batches", response_model=BatchOut, status_code=201)
async def receive_batch(
    payload: BatchReceiveIn,
    engine: InventoryEngine = Depends(get_engine),
) -> BatchOut:
    batch = await engine.receive_batch(
        sku=payload.sku,
        product_name=payload.product_name,
        quantity=payload.quantity,
        actor=payload.actor,
        source_reference=payload.source_reference,
        serial_numbers=payload.serial_numbers,
        notes=payload.notes,
    )
    return BatchOut.model_validate(batch)


@router.get("/batches/{batch_id}", response_model=BatchOut)
async def get_batch(batch_id: str, engine: InventoryEngine = Depends(get_engine)) -> BatchOut:
    return BatchOut.model_validate(await engine.get_batch(batch_id))


@router.get("/batches/{batch_id}/items", response_model=List[UnitOut])
async def get_batch_items(batch_id: str, engine: InventoryEngine = Depends(get_engine)) -> List[UnitOut]:
    return [UnitOut.model_validate(u) for u in await engine.get_items_by_batch(batch_id)]


@router.get("/items/{unit_id}", response_model=UnitOut)
async def get_item(unit_id: str, engine: InventoryEngine = Depends(get_engine)) -> UnitOut:
    return UnitOut.model_validate(await engine.get_unit(unit_id))


@router.get("/items/{unit_id}/deliveries", response_model=List[DeliveryOut])
async def get_item_deliveries(
    unit_id: str, engine: InventoryEngine = Depends(get_engine)
) -> List[DeliveryOut]:
    return [DeliveryOut.model_validate(d) for d in await engine.get_delivery_history_for_item(unit_id)]


@router.get("/items/{unit_id}/returns", response_model=List[ReturnOut])
async def get_item_returns(
    unit_id: str, engine: InventoryEngine = Depends(get_engine)
) -> List[ReturnOut]:
    return [ReturnOut.model_validate(r) for r in await engine.get_returns_by_item(unit_id)]


@router.get("/available", response_model=List[UnitOut])
async def get_available_items(
    sku: str = Query(..., min_length=1),
    engine: InventoryEngine = Depends(get_engine),
) -> List[UnitOut]:
    return [UnitOut.model_validate(u) for u in await engine.get_available_items_for_delivery(sku)]


@router.post("/reserve", response_model=List[UnitOut])
async def reserve(payload: ReserveIn, engine: InventoryEngine = Depends(get_engine)) -> List[UnitOut]:
    units = await engine.reserve(
        batch_id=payload.batch_id, quantity=payload.quantity, actor=payload.actor, notes=payload.notes
    )
    return [UnitOut.model_validate(u) for u in units]


@router.post("/release", response_model=List[UnitOut])
async def release(payload: ReleaseIn, engine: InventoryEngine = Depends(get_engine)) -> List[UnitOut]:
    units = await engine.release_reservation(
        unit_ids=payload.unit_ids, actor=payload.actor, notes=payload.notes
    )
    return [UnitOut.model_validate(u) for u in units]


@router.get("/stats", response_model=InventoryStatsOut)
async def inventory_stats(engine: InventoryEngine = Depends(get_engine)) -> InventoryStatsOut:
    return InventoryStatsOut.model_validate(await engine.get_inventory_stats())


@router.get("/summary", response_model=List[SkuSummaryOut])
async def inventory_summary(engine: InventoryEngine = Depends(get_engine)) -> List[SkuSummaryOut]:
    return [SkuSummaryOut.model_validate(r) for r in await engine.get_inventory_summary_by_sku()]


@router.get("/low-stock", response_model=List[SkuSummaryOut])
async def low_stock(
    threshold: Optional[int] = Query(None, ge=0),
    engine: InventoryEngine = Depends(get_engine),
) -> List[SkuSummaryOut]:
    return [SkuSummaryOut.model_validate(r) for r in await engine.get_low_stock_skus(threshold)]


@router.get("/needs-serial", response_model=List[UnitOut])
async def needs_serial(
    batch_id: Optional[str] = Query(None),
    engine: InventoryEngine = Depends(get_engine),
) -> List[UnitOut]:
    return [UnitOut.model_validate(u) for u in await engine.get_items_needing_serial_numbers(batch_id)]


@router.get("/search", response_model=List[UnitOut])
async def search(
    q: str = Query(..., min_length=1),
    engine: InventoryEngine = Depends(get_engine),
) -> List[UnitOut]:
    return [UnitOut.model_validate(u) for u in await engine.search_inventory(q)]


@router.get("/consistency", response_model=ConsistencyReportOut)
async def consistency(
    batch_id: Optional[str] = Query(None),
    engine: InventoryEngine = Depends(get_engine),
) -> ConsistencyReportOut:
    issues = await engine.check_consistency(batch_id)
    return ConsistencyReportOut(
        ok=not issues, issues=[ConsistencyIssueOut.model_validate(i) for i in issues]
    )
