# snwms/services/stock_log_writer.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models.batch import InventoryBatch
from snwms.models.enums import StockLogType
from snwms.models.stock_log import StockLog


async def write_stock_log(
    session: AsyncSession,
    *,
    type: StockLogType,
    batch: InventoryBatch,
    quantity_change: int,
    user: str,
    notes: Optional[str] = None,
    reference_id: Optional[str] = None,
    item_id: Optional[str] = None,
) -> StockLog:
    """
    库存流水写入：

    - new_quantity 取批次当前（已变更后）的 available_quantity；
    - 与状态变更同事务，不单独提交。
    """
    row = StockLog(
        type=str(type),
        sku=batch.sku,
        product_name=batch.product_name,
        quantity_change=int(quantity_change),
        new_quantity=int(batch.available_quantity),
        user=user,
        notes=notes,
        reference_id=reference_id,
        batch_id=batch.id,
        item_id=item_id,
    )
    session.add(row)
    return row
