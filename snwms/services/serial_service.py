# snwms/services/serial_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models._defaults import utc_now
from snwms.models.batch import InventoryBatch
from snwms.models.enums import HistoryAction
from snwms.models.unit import SerialNumberItem
from snwms.services.batch_repo import get_batch, mark_serial_assigned
from snwms.services.errors import AlreadyAssigned, DuplicateSerialNumber
from snwms.services.history_writer import write_history
from snwms.services.unit_repo import get_unit, require_serial, serial_exists

logger = logging.getLogger("snwms.serials")


# 唯一约束冲突的识别：PG 看约束名，SQLite 看 "表.列"
_SERIAL_UNIQUE_MARKERS = (
    "uq_serial_number_items_serial_number",
    "serial_number_items.serial_number",
)


def is_serial_unique_violation(exc: IntegrityError) -> bool:
    """只认序列号唯一约束；(batch_id, seq_no) 等其它约束冲突不算"""
    diag = getattr(exc.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == _SERIAL_UNIQUE_MARKERS[0]
    text = str(exc.orig)
    return any(marker in text for marker in _SERIAL_UNIQUE_MARKERS)


async def flush_serials(session: AsyncSession, serial_number: str) -> None:
    """
    flush 并把唯一约束冲突翻译为 DuplicateSerialNumber。

    事务内查重之后仍可能被并发事务抢先写入同一序列号，
    此时由 uq_serial_number_items_serial_number 兜底。
    """
    try:
        await session.flush()
    except IntegrityError as e:
        if is_serial_unique_violation(e):
            raise DuplicateSerialNumber(serial_number) from e
        raise


async def apply_serial(
    session: AsyncSession,
    *,
    unit: SerialNumberItem,
    batch: InventoryBatch,
    serial_number: str,
    actor: str,
    details: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> None:
    """
    给单件写入序列号（单向：只能从空写一次）：

    - unit.serial_number / assigned_date / assigned_by
    - batch.serial_numbers_assigned += 1, unassigned -= 1
    - 履历 assigned

    调用方负责事先查重；unit / batch 应已在本事务内加锁读取。
    """
    if unit.serial_number:
        raise AlreadyAssigned(unit.id, unit.serial_number)

    now = utc_now()
    unit.serial_number = serial_number
    unit.assigned_date = now
    unit.assigned_by = actor
    unit.updated_at = now
    mark_serial_assigned(batch)

    await write_history(
        session,
        unit=unit,
        action=HistoryAction.ASSIGNED,
        actor=actor,
        details=details or f"Serial number {serial_number} assigned",
        reference_id=reference_id,
    )
    await flush_serials(session, serial_number)


async def assign_serial_number(
    session: AsyncSession,
    *,
    unit_id: str,
    serial_number: str,
    actor: str,
) -> SerialNumberItem:
    sn = require_serial(serial_number)

    if await serial_exists(session, sn):
        raise DuplicateSerialNumber(sn)

    unit = await get_unit(session, unit_id, for_update=True)
    if unit.serial_number:
        raise AlreadyAssigned(unit.id, unit.serial_number)

    batch = await get_batch(session, unit.batch_id, for_update=True)
    await apply_serial(session, unit=unit, batch=batch, serial_number=sn, actor=actor)

    logger.info("serial %s assigned to item %s (batch %s) by %s", sn, unit.id, batch.id, actor)
    return unit
