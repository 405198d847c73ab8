# snwms/services/batch_repo.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models._defaults import utc_now
from snwms.models.batch import InventoryBatch
from snwms.models.enums import STATUS_COUNTER_FIELD, UnitStatus
from snwms.services.errors import InsufficientInventory, NotFound


async def get_batch(session: AsyncSession, batch_id: str, *, for_update: bool = False) -> InventoryBatch:
    stmt = select(InventoryBatch).where(InventoryBatch.id == batch_id)
    if for_update:
        stmt = stmt.with_for_update()
    batch = (await session.execute(stmt)).scalars().first()
    if batch is None:
        raise NotFound(f"Batch {batch_id} not found", context={"batch_id": batch_id})
    return batch


def shift_counters(batch: InventoryBatch, src: UnitStatus, dst: UnitStatus, qty: int = 1) -> None:
    """
    单件状态 src → dst 时，同步移动批次上对应的一对计数器。

    每条改变单件状态的路径都必须在同一事务内调用它一次（每个单件 qty=1，或按件数合并）。
    """
    src_field = STATUS_COUNTER_FIELD[UnitStatus(src)]
    dst_field = STATUS_COUNTER_FIELD[UnitStatus(dst)]
    current = int(getattr(batch, src_field))
    if current < qty:
        raise InsufficientInventory(batch.id, qty, current)
    setattr(batch, src_field, current - qty)
    setattr(batch, dst_field, int(getattr(batch, dst_field)) + qty)
    batch.updated_at = utc_now()


def mark_serial_assigned(batch: InventoryBatch, qty: int = 1) -> None:
    if batch.serial_numbers_unassigned < qty:
        raise InsufficientInventory(batch.id, qty, batch.serial_numbers_unassigned)
    batch.serial_numbers_assigned += qty
    batch.serial_numbers_unassigned -= qty
    batch.updated_at = utc_now()
