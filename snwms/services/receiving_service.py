# snwms/services/receiving_service.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models.batch import InventoryBatch
from snwms.models.enums import BatchSource, HistoryAction, StockLogType, UnitStatus
from snwms.models.unit import SerialNumberItem
from snwms.models._defaults import utc_now
from snwms.services.errors import DuplicateSerialNumber, InvalidInput
from snwms.services.history_writer import write_history
from snwms.services.serial_service import flush_serials
from snwms.services.stock_log_writer import write_stock_log
from snwms.services.unit_repo import clean_serial, serial_exists

logger = logging.getLogger("snwms.receiving")


def _normalize_serials(serial_numbers: Optional[Sequence[str]], quantity: int) -> List[str]:
    serials: List[str] = []
    seen: set[str] = set()
    for raw in serial_numbers or []:
        sn = clean_serial(raw)
        if sn is None:
            continue
        if sn in seen:
            raise DuplicateSerialNumber(sn, message=f"Serial number {sn} appears more than once")
        seen.add(sn)
        serials.append(sn)
    if len(serials) > quantity:
        raise InvalidInput(
            f"Got {len(serials)} serial numbers for {quantity} units",
            context={"quantity": quantity, "serial_numbers": len(serials)},
        )
    return serials


async def receive_batch(
    session: AsyncSession,
    *,
    sku: str,
    product_name: str,
    quantity: int,
    actor: str,
    source_reference: str = "",
    serial_numbers: Optional[Sequence[str]] = None,
    notes: Optional[str] = None,
) -> InventoryBatch:
    """
    收货建档：一个批次 + quantity 个单件，同一事务。

    - 单件全部 available，seq_no = 1..N；
    - 预知序列号依次写到前几个单件上，每个写一条 assigned 履历；
    - 写一条 IN 流水（+N）。
    """
    sku = (sku or "").strip()
    product_name = (product_name or "").strip()
    if not sku:
        raise InvalidInput("sku is required")
    if not product_name:
        raise InvalidInput("product_name is required")
    if quantity < 1:
        raise InvalidInput(f"quantity must be >= 1, got {quantity}", context={"quantity": quantity})

    serials = _normalize_serials(serial_numbers, quantity)
    for sn in serials:
        if await serial_exists(session, sn):
            raise DuplicateSerialNumber(sn)

    now = utc_now()
    assigned = len(serials)
    batch = InventoryBatch(
        sku=sku,
        product_name=product_name,
        total_quantity=quantity,
        available_quantity=quantity,
        reserved_quantity=0,
        delivered_quantity=0,
        returned_quantity=0,
        serial_numbers_assigned=assigned,
        serial_numbers_unassigned=quantity - assigned,
        source=BatchSource.NEW_ARRIVAL.value,
        source_reference=source_reference or "",
        received_date=now,
        received_by=actor,
        batch_notes=notes,
    )
    session.add(batch)
    await session.flush()

    units: List[SerialNumberItem] = []
    for i in range(quantity):
        sn = serials[i] if i < assigned else None
        unit = SerialNumberItem(
            batch_id=batch.id,
            seq_no=i + 1,
            sku=sku,
            product_name=product_name,
            serial_number=sn,
            status=UnitStatus.AVAILABLE.value,
            assigned_date=now if sn else None,
            assigned_by=actor if sn else None,
            created_at=now,
        )
        session.add(unit)
        units.append(unit)

    if serials:
        await flush_serials(session, serials[0])
    else:
        await session.flush()

    for unit in units[:assigned]:
        await write_history(
            session,
            unit=unit,
            action=HistoryAction.ASSIGNED,
            actor=actor,
            details=f"Serial number assigned on receiving (batch {batch.id})",
            reference_id=batch.id,
        )

    await write_stock_log(
        session,
        type=StockLogType.IN,
        batch=batch,
        quantity_change=quantity,
        user=actor,
        notes=notes or f"Received {quantity} x {sku}",
        reference_id=source_reference or batch.id,
    )
    await session.flush()

    logger.info(
        "batch %s received: sku=%s qty=%d serials=%d by %s", batch.id, sku, quantity, assigned, actor
    )
    return batch
