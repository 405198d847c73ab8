# snwms/api/routers/stock_logs.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from snwms.api.deps import get_engine
from snwms.schemas.inventory import StockLogOut
from snwms.services.inventory_engine import InventoryEngine

router = APIRouter(prefix="/stock-logs", tags=["stock-logs"])


@router.get("", response_model=List[StockLogOut])
async def list_stock_logs(
    sku: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    engine: InventoryEngine = Depends(get_engine),
) -> List[StockLogOut]:
    return [StockLogOut.model_validate(s) for s in await engine.list_stock_logs(sku=sku, limit=limit)]
