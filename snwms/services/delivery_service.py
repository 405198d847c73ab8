# snwms/services/delivery_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models._defaults import utc_now
from snwms.models.delivery import Delivery
from snwms.models.enums import DeliveryStatus, HistoryAction, StockLogType, UnitStatus
from snwms.models.unit import SerialNumberItem
from snwms.services.batch_repo import get_batch, shift_counters
from snwms.services.errors import (
    AlreadyAssigned,
    DuplicateSerialNumber,
    InsufficientInventory,
    InvalidInput,
    SerialNumberRequired,
)
from snwms.services.history_writer import write_history
from snwms.services.serial_service import apply_serial
from snwms.services.state_machine import ensure_transition
from snwms.services.stock_log_writer import write_stock_log
from snwms.services.unit_repo import clean_serial, get_unit, oldest_available_units, serial_exists

logger = logging.getLogger("snwms.deliveries")


async def _select_unit(
    session: AsyncSession, *, batch_id: Optional[str], unit_id: Optional[str]
) -> SerialNumberItem:
    """
    选件：
    - 指定 unit_id → 用它（若同时给了 batch_id 必须一致）；
    - 只给 batch_id → 该批次 SKU 下最早创建的 available 单件（跨批次）。
    """
    if unit_id:
        unit = await get_unit(session, unit_id, for_update=True)
        if batch_id and unit.batch_id != batch_id:
            raise InvalidInput(
                f"Item {unit_id} does not belong to batch {batch_id}",
                context={"unit_id": unit_id, "batch_id": batch_id},
            )
        return unit

    if not batch_id:
        raise InvalidInput("batch_id or unit_id is required")

    batch = await get_batch(session, batch_id)
    candidates = await oldest_available_units(session, sku=batch.sku, limit=1, for_update=True)
    if not candidates:
        raise InsufficientInventory(batch.id, 1, 0)
    return candidates[0]


async def deliver(
    session: AsyncSession,
    *,
    actor: str,
    batch_id: Optional[str] = None,
    unit_id: Optional[str] = None,
    serial_number: Optional[str] = None,
    shipping_label_data: Optional[Dict[str, Any]] = None,
    customer_info: Optional[Dict[str, Any]] = None,
) -> Delivery:
    """
    发货一个单件（单事务）：

    1) 选件；单件须为 available（或 reserved），available 时批次 available_quantity >= 1；
    2) 序列号：已有则用已有（提供了不同的 → AlreadyAssigned）；
       没有则必须随发货提供一个全局唯一的，否则 SerialNumberRequired；
    3) 建发货记录；单件 → delivered；计数器 available/reserved -1, delivered +1；
    4) 履历：(assigned) + delivered；流水 OUT。
    """
    unit = await _select_unit(session, batch_id=batch_id, unit_id=unit_id)
    batch = await get_batch(session, unit.batch_id, for_update=True)

    ensure_transition(unit, UnitStatus.DELIVERED)
    from_status = UnitStatus(unit.status)
    if from_status == UnitStatus.AVAILABLE and batch.available_quantity < 1:
        raise InsufficientInventory(batch.id, 1, batch.available_quantity)

    supplied = clean_serial(serial_number)
    if unit.serial_number:
        if supplied and supplied != unit.serial_number:
            raise AlreadyAssigned(unit.id, unit.serial_number)
    elif supplied:
        if await serial_exists(session, supplied):
            raise DuplicateSerialNumber(supplied)
        await apply_serial(
            session,
            unit=unit,
            batch=batch,
            serial_number=supplied,
            actor=actor,
            details=f"Serial number {supplied} assigned during delivery",
        )
    else:
        raise SerialNumberRequired(
            f"Item {unit.id} has no serial number; one must be supplied for delivery",
            context={"unit_id": unit.id, "batch_id": batch.id},
        )

    now = utc_now()
    delivery = Delivery(
        item_id=unit.id,
        batch_id=batch.id,
        serial_number=unit.serial_number,
        sku=batch.sku,
        product_name=batch.product_name,
        shipping_label_data=shipping_label_data,
        customer_info=customer_info,
        delivered_by=actor,
        delivery_date=now,
        status=DeliveryStatus.DELIVERED.value,
    )
    session.add(delivery)
    await session.flush()

    unit.status = UnitStatus.DELIVERED.value
    unit.delivery_id = delivery.id
    unit.updated_at = now
    shift_counters(batch, from_status, UnitStatus.DELIVERED)

    await write_history(
        session,
        unit=unit,
        action=HistoryAction.DELIVERED,
        actor=actor,
        details=f"Delivered from batch {batch.id}",
        reference_id=delivery.id,
    )
    await write_stock_log(
        session,
        type=StockLogType.OUT,
        batch=batch,
        quantity_change=-1 if from_status == UnitStatus.AVAILABLE else 0,
        user=actor,
        notes=f"Delivered {unit.serial_number}",
        reference_id=delivery.id,
        item_id=unit.id,
    )
    await session.flush()

    logger.info(
        "delivery %s: item %s sn=%s batch %s (%s → delivered) by %s",
        delivery.id,
        unit.id,
        unit.serial_number,
        batch.id,
        from_status,
        actor,
    )
    return delivery
