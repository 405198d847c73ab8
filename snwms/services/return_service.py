# snwms/services/return_service.py
from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models._defaults import utc_now
from snwms.models.batch import InventoryBatch
from snwms.models.delivery import Delivery
from snwms.models.enums import (
    BatchSource,
    DeliveryStatus,
    HistoryAction,
    ReturnDecision,
    ReturnStatus,
    StockLogType,
    UnitStatus,
)
from snwms.models.return_record import ReturnRecord
from snwms.models.unit import SerialNumberItem
from snwms.schemas.returns import ReturnIntakeIn
from snwms.services.batch_repo import get_batch, shift_counters
from snwms.services.errors import (
    DecisionAlreadyMade,
    DuplicateSerialNumber,
    InvalidInput,
    InvalidStateTransition,
    NotFound,
)
from snwms.services.history_writer import write_history
from snwms.services.serial_service import flush_serials
from snwms.services.state_machine import ensure_transition, return_eligibility
from snwms.services.stock_log_writer import write_stock_log
from snwms.services.unit_repo import (
    clean_serial,
    find_unit_by_serial,
    get_unit,
    require_serial,
    serial_exists,
    units_held_by_return,
)

logger = logging.getLogger("snwms.returns")

# 处置决定 → 退货单状态
_DECISION_STATUS: Dict[ReturnDecision, ReturnStatus] = {
    ReturnDecision.MOVE_TO_INVENTORY: ReturnStatus.MOVED_TO_INVENTORY,
    ReturnDecision.KEEP_IN_RETURNS: ReturnStatus.KEPT_IN_RETURNS,
}


def _new_record(form: ReturnIntakeIn, *, actor: str, **overrides) -> ReturnRecord:
    values = dict(
        lpn_number=form.lpn_number,
        tracking_number=form.tracking_number,
        product_name=form.product_name or "",
        sku=form.sku,
        condition=str(form.condition),
        quantity=form.quantity,
        reason=form.reason,
        notes=form.notes,
        fba_fbm=form.fba_fbm,
        removal_order_id=form.removal_order_id,
        serial_number=clean_serial(form.serial_number),
        status=ReturnStatus.RECEIVED.value,
        return_decision=ReturnDecision.PENDING.value,
        created_by=actor,
        created_at=utc_now(),
    )
    values.update(overrides)
    return ReturnRecord(**values)


async def get_return(session: AsyncSession, return_id: str, *, for_update: bool = False) -> ReturnRecord:
    stmt = select(ReturnRecord).where(ReturnRecord.id == return_id)
    if for_update:
        stmt = stmt.with_for_update()
    record = (await session.execute(stmt)).scalars().first()
    if record is None:
        raise NotFound(f"Return {return_id} not found", context={"return_id": return_id})
    return record


# ---------------- 退货登记 ---------------- #


async def create_return_with_serial_number(
    session: AsyncSession,
    *,
    form: ReturnIntakeIn,
    actor: str,
) -> ReturnRecord:
    """
    已知序列号退货：

    - 单件必须是 delivered（available / reserved / returned 各有不同原因）；
    - 退货单 received + pending，关联原单件与原发货；
    - 单件 → returned（return_id 写入），计数器 delivered -1 / returned +1；
    - 原发货记录 status → returned；履历 returned。
    """
    sn = require_serial(form.serial_number)
    unit = await find_unit_by_serial(session, sn, for_update=True)
    if unit is None:
        raise NotFound(f"Serial number {sn} not found in system", context={"serial_number": sn})

    can_return, reason = return_eligibility(unit)
    if not can_return:
        raise InvalidStateTransition(
            unit.status,
            UnitStatus.RETURNED.value,
            reason=reason,
            unit_id=unit.id,
            serial_number=sn,
        )

    batch = await get_batch(session, unit.batch_id, for_update=True)

    record = _new_record(
        form,
        actor=actor,
        product_name=form.product_name or unit.product_name,
        sku=form.sku or unit.sku,
        quantity=1,
        serial_number=sn,
        original_item_id=unit.id,
        original_delivery_id=unit.delivery_id,
    )
    session.add(record)
    await session.flush()

    unit.status = UnitStatus.RETURNED.value
    unit.return_id = record.id
    unit.updated_at = utc_now()
    shift_counters(batch, UnitStatus.DELIVERED, UnitStatus.RETURNED)

    if unit.delivery_id:
        delivery = await session.get(Delivery, unit.delivery_id)
        if delivery is not None:
            delivery.status = DeliveryStatus.RETURNED.value

    await write_history(
        session,
        unit=unit,
        action=HistoryAction.RETURNED,
        actor=actor,
        details=f"Returned ({record.condition}){': ' + form.reason if form.reason else ''}",
        reference_id=record.id,
    )
    await session.flush()

    logger.info("return %s: item %s sn=%s batch %s by %s", record.id, unit.id, sn, batch.id, actor)
    return record


async def create_return_for_new_product(
    session: AsyncSession,
    *,
    form: ReturnIntakeIn,
    actor: str,
    sku_prefix: str = "NEW-RETURN",
) -> ReturnRecord:
    """
    未知序列号退货：在库里没有档案的商品先退回来。

    同一事务内建：退货单 + from_return 批次（total = returned = quantity, available = 0）
    + quantity 个 returned 单件；首件带扫描到的序列号，其余无序列号；全部挂本退货单 return_id。
    """
    sn = require_serial(form.serial_number)
    if await serial_exists(session, sn):
        raise DuplicateSerialNumber(sn)

    product_name = (form.product_name or "").strip()
    if not product_name:
        raise InvalidInput(
            "product_name is required when returning an unknown serial number",
            context={"serial_number": sn},
        )
    quantity = int(form.quantity)
    sku = (form.sku or "").strip() or f"{sku_prefix}-{int(time.time() * 1000)}"

    record = _new_record(form, actor=actor, product_name=product_name, sku=sku, serial_number=sn)
    session.add(record)
    await session.flush()

    now = utc_now()
    batch = InventoryBatch(
        sku=sku,
        product_name=product_name,
        total_quantity=quantity,
        available_quantity=0,
        reserved_quantity=0,
        delivered_quantity=0,
        returned_quantity=quantity,
        serial_numbers_assigned=1,
        serial_numbers_unassigned=quantity - 1,
        source=BatchSource.FROM_RETURN.value,
        source_reference=record.id,
        received_date=now,
        received_by=actor,
        batch_notes=f"Created from return {record.id}",
    )
    session.add(batch)
    await session.flush()

    units: List[SerialNumberItem] = []
    for i in range(quantity):
        first = i == 0
        unit = SerialNumberItem(
            batch_id=batch.id,
            seq_no=i + 1,
            sku=sku,
            product_name=product_name,
            serial_number=sn if first else None,
            status=UnitStatus.RETURNED.value,
            return_id=record.id,
            assigned_date=now if first else None,
            assigned_by=actor if first else None,
            created_at=now,
        )
        session.add(unit)
        units.append(unit)
    await flush_serials(session, sn)

    record.original_item_id = units[0].id

    await write_history(
        session,
        unit=units[0],
        action=HistoryAction.RETURNED,
        actor=actor,
        details=f"Returned as new product ({record.condition}), batch {batch.id}",
        reference_id=record.id,
    )
    await session.flush()

    logger.info(
        "return %s: new product sn=%s sku=%s qty=%d batch %s by %s",
        record.id,
        sn,
        sku,
        quantity,
        batch.id,
        actor,
    )
    return record


async def create_standalone_return(
    session: AsyncSession,
    *,
    form: ReturnIntakeIn,
    actor: str,
) -> ReturnRecord:
    """无序列号退货：只登记退货单，不动单件 / 批次"""
    record = _new_record(form, actor=actor, serial_number=None)
    session.add(record)
    await session.flush()
    logger.info("return %s: standalone (no serial number) by %s", record.id, actor)
    return record


async def intake_return(
    session: AsyncSession,
    *,
    form: ReturnIntakeIn,
    actor: str,
    sku_prefix: str = "NEW-RETURN",
) -> ReturnRecord:
    """
    退货登记分派：
    - 无序列号 → 仅登记；
    - 序列号已存在 → 原单件退货；
    - 序列号不存在 → 新品退货建档。
    """
    sn = clean_serial(form.serial_number)
    if sn is None:
        return await create_standalone_return(session, form=form, actor=actor)
    if await serial_exists(session, sn):
        return await create_return_with_serial_number(session, form=form, actor=actor)
    return await create_return_for_new_product(session, form=form, actor=actor, sku_prefix=sku_prefix)


# ---------------- 退货处置 ---------------- #


async def _held_units(session: AsyncSession, record: ReturnRecord) -> List[SerialNumberItem]:
    """
    本退货单当前占用的单件（status=returned 且 return_id 指向本单）。

    退货单指向了原单件、但原单件已不在本单名下 → InvalidStateTransition。
    """
    units = await units_held_by_return(session, record.id, for_update=True)
    if units or not record.original_item_id:
        return units

    unit = await get_unit(session, record.original_item_id, for_update=True)
    raise InvalidStateTransition(
        unit.status,
        UnitStatus.AVAILABLE.value,
        reason=f"Item {unit.id} is not held by return {record.id}",
        unit_id=unit.id,
        return_id=record.id,
    )


async def make_return_decision(
    session: AsyncSession,
    *,
    return_id: str,
    decision: ReturnDecision,
    actor: str,
    notes: Optional[str] = None,
) -> ReturnRecord:
    """
    退货处置（一经作出不可更改）：

    - move_to_inventory：单件 returned → available，清 return_id / delivery_id，
      计数器 returned -1 / available +1，履历 moved_to_inventory，流水 IN；
    - keep_in_returns：单件保持 returned，计数器不动，履历 kept_in_returns。
    """
    try:
        decision = ReturnDecision(decision)
    except ValueError:
        raise InvalidInput(f"Unknown return decision {decision!r}") from None
    if decision == ReturnDecision.PENDING:
        raise InvalidInput("Return decision must be move_to_inventory or keep_in_returns")

    record = await get_return(session, return_id, for_update=True)
    if record.return_decision != ReturnDecision.PENDING:
        raise DecisionAlreadyMade(record.id, record.return_decision)

    units = await _held_units(session, record)
    now = utc_now()

    batches: Dict[str, InventoryBatch] = {}
    moved: Dict[str, int] = {}
    for unit in units:
        batch = batches.get(unit.batch_id)
        if batch is None:
            batch = await get_batch(session, unit.batch_id, for_update=True)
            batches[batch.id] = batch

        if decision == ReturnDecision.MOVE_TO_INVENTORY:
            ensure_transition(unit, UnitStatus.AVAILABLE)
            unit.status = UnitStatus.AVAILABLE.value
            unit.return_id = None
            unit.delivery_id = None
            unit.updated_at = now
            shift_counters(batch, UnitStatus.RETURNED, UnitStatus.AVAILABLE)
            moved[batch.id] = moved.get(batch.id, 0) + 1
            action = HistoryAction.MOVED_TO_INVENTORY
            details = "Moved back to available inventory"
        else:
            action = HistoryAction.KEPT_IN_RETURNS
            details = "Kept in returns area"

        await write_history(
            session,
            unit=unit,
            action=action,
            actor=actor,
            details=f"{details}: {notes}" if notes else details,
            reference_id=record.id,
        )

    for batch_id, count in moved.items():
        await write_stock_log(
            session,
            type=StockLogType.IN,
            batch=batches[batch_id],
            quantity_change=count,
            user=actor,
            notes=f"Return {record.id} moved to inventory",
            reference_id=record.id,
        )

    record.return_decision = decision.value
    record.status = _DECISION_STATUS[decision].value
    record.decision_date = now
    record.decision_by = actor
    record.decision_notes = notes
    record.processed_date = now
    record.processed_by = actor
    await session.flush()

    logger.info(
        "return %s decided %s (%d unit(s)) by %s", record.id, decision, len(units), actor
    )
    return record


async def mark_return_processed(
    session: AsyncSession,
    *,
    return_id: str,
    actor: str,
) -> ReturnRecord:
    """仅改退货单状态为 processed；不作处置、不动单件"""
    record = await get_return(session, return_id, for_update=True)
    if record.status != ReturnStatus.RECEIVED:
        raise InvalidInput(
            f"Return {record.id} is already {record.status}",
            context={"return_id": record.id, "status": record.status},
        )
    now = utc_now()
    record.status = ReturnStatus.PROCESSED.value
    record.processed_date = now
    record.processed_by = actor
    await session.flush()

    logger.info("return %s marked processed by %s", record.id, actor)
    return record
