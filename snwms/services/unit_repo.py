# snwms/services/unit_repo.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models.enums import UnitStatus
from snwms.models.unit import SerialNumberItem
from snwms.services.errors import InvalidInput, NotFound

# 创建顺序：created_at → 批次内序号 → id
CREATION_ORDER = (SerialNumberItem.created_at, SerialNumberItem.seq_no, SerialNumberItem.id)


def clean_serial(serial_number: Optional[str]) -> Optional[str]:
    """去首尾空白；空串视为未提供"""
    if serial_number is None:
        return None
    sn = serial_number.strip()
    return sn or None


def require_serial(serial_number: Optional[str]) -> str:
    sn = clean_serial(serial_number)
    if sn is None:
        raise InvalidInput("Serial number must not be empty")
    return sn


async def get_unit(session: AsyncSession, unit_id: str, *, for_update: bool = False) -> SerialNumberItem:
    stmt = select(SerialNumberItem).where(SerialNumberItem.id == unit_id)
    if for_update:
        stmt = stmt.with_for_update()
    unit = (await session.execute(stmt)).scalars().first()
    if unit is None:
        raise NotFound(f"Item {unit_id} not found", context={"unit_id": unit_id})
    return unit


async def find_unit_by_serial(
    session: AsyncSession, serial_number: str, *, for_update: bool = False
) -> Optional[SerialNumberItem]:
    stmt = select(SerialNumberItem).where(SerialNumberItem.serial_number == serial_number)
    if for_update:
        stmt = stmt.with_for_update()
    return (await session.execute(stmt)).scalars().first()


async def serial_exists(session: AsyncSession, serial_number: str) -> bool:
    stmt = select(SerialNumberItem.id).where(SerialNumberItem.serial_number == serial_number).limit(1)
    return (await session.execute(stmt)).scalar_one_or_none() is not None


async def oldest_available_units(
    session: AsyncSession,
    *,
    batch_id: Optional[str] = None,
    sku: Optional[str] = None,
    limit: Optional[int] = None,
    for_update: bool = False,
) -> List[SerialNumberItem]:
    stmt = select(SerialNumberItem).where(SerialNumberItem.status == UnitStatus.AVAILABLE.value)
    if batch_id is not None:
        stmt = stmt.where(SerialNumberItem.batch_id == batch_id)
    if sku is not None:
        stmt = stmt.where(SerialNumberItem.sku == sku)
    stmt = stmt.order_by(*CREATION_ORDER)
    if limit is not None:
        stmt = stmt.limit(limit)
    if for_update:
        stmt = stmt.with_for_update()
    return list((await session.execute(stmt)).scalars())


async def units_held_by_return(
    session: AsyncSession, return_id: str, *, for_update: bool = False
) -> List[SerialNumberItem]:
    stmt = (
        select(SerialNumberItem)
        .where(SerialNumberItem.return_id == return_id)
        .where(SerialNumberItem.status == UnitStatus.RETURNED.value)
        .order_by(*CREATION_ORDER)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return list((await session.execute(stmt)).scalars())
