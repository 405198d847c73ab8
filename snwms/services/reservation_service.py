# snwms/services/reservation_service.py
from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models._defaults import utc_now
from snwms.models.batch import InventoryBatch
from snwms.models.enums import StockLogType, UnitStatus
from snwms.models.unit import SerialNumberItem
from snwms.services.batch_repo import get_batch, shift_counters
from snwms.services.errors import InsufficientInventory, InvalidInput, InvalidStateTransition
from snwms.services.state_machine import ensure_transition
from snwms.services.stock_log_writer import write_stock_log
from snwms.services.unit_repo import get_unit, oldest_available_units

logger = logging.getLogger("snwms.reservations")


async def reserve(
    session: AsyncSession,
    *,
    batch_id: str,
    quantity: int,
    actor: str,
    notes: str | None = None,
) -> List[SerialNumberItem]:
    """
    预占：批次内最早创建的 quantity 个 available 单件 → reserved。

    available_quantity < quantity → InsufficientInventory，不做任何修改。
    """
    if quantity < 1:
        raise InvalidInput(f"quantity must be >= 1, got {quantity}", context={"quantity": quantity})

    batch = await get_batch(session, batch_id, for_update=True)
    if batch.available_quantity < quantity:
        raise InsufficientInventory(batch.id, quantity, batch.available_quantity)

    units = await oldest_available_units(session, batch_id=batch.id, limit=quantity, for_update=True)
    if len(units) < quantity:
        raise InsufficientInventory(batch.id, quantity, len(units))

    now = utc_now()
    for unit in units:
        ensure_transition(unit, UnitStatus.RESERVED)
        unit.status = UnitStatus.RESERVED.value
        unit.updated_at = now
    shift_counters(batch, UnitStatus.AVAILABLE, UnitStatus.RESERVED, len(units))

    await write_stock_log(
        session,
        type=StockLogType.ADJUSTMENT,
        batch=batch,
        quantity_change=-len(units),
        user=actor,
        notes=notes or f"Reserved {len(units)} unit(s)",
        reference_id=batch.id,
    )
    await session.flush()

    logger.info("reserved %d unit(s) of batch %s by %s", len(units), batch.id, actor)
    return units


async def release_reservation(
    session: AsyncSession,
    *,
    unit_ids: Sequence[str],
    actor: str,
    notes: str | None = None,
) -> List[SerialNumberItem]:
    """
    释放预占：reserved → available（每件 reserved -1 / available +1）。

    不写序列号履历；每个涉及的批次写一条 ADJUSTMENT 流水。
    任一单件不是 reserved → InvalidStateTransition，整体不生效。
    """
    ids = list(dict.fromkeys(unit_ids))
    if not ids:
        raise InvalidInput("unit_ids must not be empty")

    now = utc_now()
    batches: Dict[str, InventoryBatch] = {}
    released: Dict[str, int] = {}
    units: List[SerialNumberItem] = []

    for unit_id in ids:
        unit = await get_unit(session, unit_id, for_update=True)
        # returned → available 在迁移表里合法，但那是退货处置，不是释放预占
        if unit.status != UnitStatus.RESERVED:
            raise InvalidStateTransition(
                unit.status,
                UnitStatus.AVAILABLE.value,
                reason=f"Item {unit.id} is not reserved",
                unit_id=unit.id,
            )
        batch = batches.get(unit.batch_id)
        if batch is None:
            batch = await get_batch(session, unit.batch_id, for_update=True)
            batches[batch.id] = batch

        unit.status = UnitStatus.AVAILABLE.value
        unit.updated_at = now
        shift_counters(batch, UnitStatus.RESERVED, UnitStatus.AVAILABLE)
        released[batch.id] = released.get(batch.id, 0) + 1
        units.append(unit)

    for batch_id, count in released.items():
        await write_stock_log(
            session,
            type=StockLogType.ADJUSTMENT,
            batch=batches[batch_id],
            quantity_change=count,
            user=actor,
            notes=notes or f"Released {count} reserved unit(s)",
            reference_id=batch_id,
        )
    await session.flush()

    logger.info("released %d reserved unit(s) by %s", len(units), actor)
    return units
