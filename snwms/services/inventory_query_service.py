# snwms/services/inventory_query_service.py
"""只读投影（看板 / 搜索 / 扫码校验），无写路径。"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models.batch import InventoryBatch
from snwms.models.delivery import Delivery
from snwms.models.enums import BatchSource, ReturnDecision, ReturnStatus
from snwms.models.history import SerialNumberHistory
from snwms.models.return_record import ReturnRecord
from snwms.models.stock_log import StockLog
from snwms.models.unit import SerialNumberItem
from snwms.services.batch_repo import get_batch
from snwms.services.errors import NotFound
from snwms.services.state_machine import return_eligibility
from snwms.services.unit_repo import CREATION_ORDER, find_unit_by_serial, oldest_available_units


async def get_delivery(session: AsyncSession, delivery_id: str) -> Delivery:
    delivery = await session.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFound(f"Delivery {delivery_id} not found", context={"delivery_id": delivery_id})
    return delivery


async def _returns_for_serial(session: AsyncSession, serial_number: str) -> List[ReturnRecord]:
    stmt = (
        select(ReturnRecord)
        .where(ReturnRecord.serial_number == serial_number)
        .order_by(ReturnRecord.created_at.desc(), ReturnRecord.id)
    )
    return list((await session.execute(stmt)).scalars())


# ---------------- 序列号 ---------------- #


async def validate_serial_number(session: AsyncSession, serial_number: str) -> Dict[str, Any]:
    sn = (serial_number or "").strip()
    unit = await find_unit_by_serial(session, sn) if sn else None
    if unit is None:
        return {"exists": False, "serial_number": sn}

    batch = await session.get(InventoryBatch, unit.batch_id)
    stmt = (
        select(func.max(Delivery.delivery_date))
        .where(Delivery.item_id == unit.id)
    )
    last_delivery_date = (await session.execute(stmt)).scalar_one_or_none()

    return {
        "exists": True,
        "serial_number": sn,
        "unit": unit,
        "batch": batch,
        "product_name": unit.product_name,
        "sku": unit.sku,
        "current_status": unit.status,
        "last_delivery_date": last_delivery_date,
        "return_history": await _returns_for_serial(session, sn),
    }


async def can_serial_number_be_returned(session: AsyncSession, serial_number: str) -> Dict[str, Any]:
    sn = (serial_number or "").strip()
    unit = await find_unit_by_serial(session, sn) if sn else None
    if unit is None:
        return {
            "can_return": False,
            "reason": "Serial number not found in system",
            "unit": None,
            "current_status": None,
        }
    can_return, reason = return_eligibility(unit)
    return {
        "can_return": can_return,
        "reason": reason,
        "unit": unit,
        "current_status": unit.status,
    }


async def serial_number_history(session: AsyncSession, serial_number: str) -> List[SerialNumberHistory]:
    stmt = (
        select(SerialNumberHistory)
        .where(SerialNumberHistory.serial_number == serial_number)
        .order_by(SerialNumberHistory.action_date, SerialNumberHistory.id)
    )
    return list((await session.execute(stmt)).scalars())


async def delivery_history_for_item(session: AsyncSession, unit_id: str) -> List[Delivery]:
    stmt = (
        select(Delivery)
        .where(Delivery.item_id == unit_id)
        .order_by(Delivery.delivery_date.desc(), Delivery.id)
    )
    return list((await session.execute(stmt)).scalars())


# ---------------- 单件 / 批次 ---------------- #


async def items_by_batch(session: AsyncSession, batch_id: str) -> List[SerialNumberItem]:
    await get_batch(session, batch_id)
    stmt = (
        select(SerialNumberItem)
        .where(SerialNumberItem.batch_id == batch_id)
        .order_by(SerialNumberItem.seq_no)
    )
    return list((await session.execute(stmt)).scalars())


async def available_items_for_delivery(session: AsyncSession, sku: str) -> List[SerialNumberItem]:
    return await oldest_available_units(session, sku=sku)


async def items_needing_serial_numbers(
    session: AsyncSession, batch_id: Optional[str] = None
) -> List[SerialNumberItem]:
    stmt = select(SerialNumberItem).where(SerialNumberItem.serial_number.is_(None))
    if batch_id is not None:
        stmt = stmt.where(SerialNumberItem.batch_id == batch_id)
    stmt = stmt.order_by(*CREATION_ORDER)
    return list((await session.execute(stmt)).scalars())


async def search_inventory(session: AsyncSession, term: str, *, limit: int = 100) -> List[SerialNumberItem]:
    term = (term or "").strip()
    if not term:
        return []
    like = f"%{term.lower()}%"
    stmt = (
        select(SerialNumberItem)
        .where(
            or_(
                func.lower(SerialNumberItem.serial_number).like(like),
                func.lower(SerialNumberItem.sku).like(like),
                func.lower(SerialNumberItem.product_name).like(like),
            )
        )
        .order_by(*CREATION_ORDER)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars())


# ---------------- 汇总 ---------------- #


async def get_inventory_stats(session: AsyncSession) -> Dict[str, Any]:
    b = InventoryBatch
    stmt = select(
        func.count(b.id),
        func.coalesce(func.sum(b.total_quantity), 0),
        func.coalesce(func.sum(b.available_quantity), 0),
        func.coalesce(func.sum(b.reserved_quantity), 0),
        func.coalesce(func.sum(b.delivered_quantity), 0),
        func.coalesce(func.sum(b.returned_quantity), 0),
        func.coalesce(func.sum(b.serial_numbers_assigned), 0),
        func.coalesce(func.sum(b.serial_numbers_unassigned), 0),
        func.coalesce(func.sum(case((b.source == BatchSource.NEW_ARRIVAL.value, 1), else_=0)), 0),
        func.coalesce(func.sum(case((b.source == BatchSource.FROM_RETURN.value, 1), else_=0)), 0),
        func.count(func.distinct(b.sku)),
    )
    row = (await session.execute(stmt)).one()
    (
        total_batches,
        total_items,
        available,
        reserved,
        delivered,
        returned,
        with_sn,
        without_sn,
        new_arrivals,
        from_returns,
        unique_skus,
    ) = (int(v or 0) for v in row)

    rate = round(with_sn / total_items * 100, 1) if total_items else 0.0
    return {
        "total_batches": total_batches,
        "total_items": total_items,
        "available_items": available,
        "reserved_items": reserved,
        "delivered_items": delivered,
        "returned_items": returned,
        "new_arrivals": new_arrivals,
        "from_returns": from_returns,
        "unique_skus": unique_skus,
        "items_with_serial_numbers": with_sn,
        "items_without_serial_numbers": without_sn,
        "serial_number_assignment_rate": rate,
    }


async def summary_by_sku(session: AsyncSession) -> List[Dict[str, Any]]:
    b = InventoryBatch
    stmt = (
        select(
            b.sku,
            func.min(b.product_name),
            func.sum(b.total_quantity),
            func.sum(b.available_quantity),
            func.sum(b.reserved_quantity),
            func.sum(b.delivered_quantity),
            func.sum(b.returned_quantity),
            func.count(b.id),
            func.sum(case((b.source == BatchSource.NEW_ARRIVAL.value, 1), else_=0)),
            func.sum(case((b.source == BatchSource.FROM_RETURN.value, 1), else_=0)),
        )
        .group_by(b.sku)
        .order_by(b.sku)
    )
    out: List[Dict[str, Any]] = []
    for row in (await session.execute(stmt)).all():
        sku, name, total, avail, rsv, dlv, ret, batch_count, new_arrivals, from_returns = row
        out.append(
            {
                "sku": sku,
                "product_name": name,
                "total_items": int(total or 0),
                "total_available": int(avail or 0),
                "total_reserved": int(rsv or 0),
                "total_delivered": int(dlv or 0),
                "total_returned": int(ret or 0),
                "batch_count": int(batch_count or 0),
                "sources": {
                    "new_arrivals": int(new_arrivals or 0),
                    "from_returns": int(from_returns or 0),
                },
            }
        )
    return out


async def low_stock_skus(session: AsyncSession, threshold: int) -> List[Dict[str, Any]]:
    """可用数 <= threshold 的 SKU（按可用数升序）"""
    return sorted(
        (row for row in await summary_by_sku(session) if row["total_available"] <= threshold),
        key=lambda r: (r["total_available"], r["sku"]),
    )


# ---------------- 退货 ---------------- #


async def pending_returns(session: AsyncSession) -> List[ReturnRecord]:
    stmt = (
        select(ReturnRecord)
        .where(ReturnRecord.return_decision == ReturnDecision.PENDING.value)
        .order_by(ReturnRecord.created_at, ReturnRecord.id)
    )
    return list((await session.execute(stmt)).scalars())


async def returns_by_serial_number(session: AsyncSession, serial_number: str) -> List[ReturnRecord]:
    return await _returns_for_serial(session, (serial_number or "").strip())


async def returns_by_status(session: AsyncSession, status: ReturnStatus) -> List[ReturnRecord]:
    stmt = (
        select(ReturnRecord)
        .where(ReturnRecord.status == ReturnStatus(status).value)
        .order_by(ReturnRecord.created_at.desc(), ReturnRecord.id)
    )
    return list((await session.execute(stmt)).scalars())


async def returns_by_item(session: AsyncSession, unit_id: str) -> List[ReturnRecord]:
    """某单件历次退货（按 original_item_id，新到旧）"""
    stmt = (
        select(ReturnRecord)
        .where(ReturnRecord.original_item_id == unit_id)
        .order_by(ReturnRecord.created_at.desc(), ReturnRecord.id)
    )
    return list((await session.execute(stmt)).scalars())


async def search_returns(session: AsyncSession, term: str, *, limit: int = 100) -> List[ReturnRecord]:
    """LPN / 物流单号 / 商品名 / SKU / 序列号 / 移除订单号 模糊匹配（不区分大小写）"""
    term = (term or "").strip()
    if not term:
        return []
    like = f"%{term.lower()}%"
    r = ReturnRecord
    stmt = (
        select(r)
        .where(
            or_(
                func.lower(r.lpn_number).like(like),
                func.lower(r.tracking_number).like(like),
                func.lower(r.product_name).like(like),
                func.lower(r.sku).like(like),
                func.lower(r.serial_number).like(like),
                func.lower(r.removal_order_id).like(like),
            )
        )
        .order_by(r.created_at.desc(), r.id)
        .limit(limit)
    )
    return list((await session.execute(stmt)).scalars())


async def return_statistics(session: AsyncSession) -> Dict[str, Any]:
    rows = (
        await session.execute(
            select(
                ReturnRecord.status,
                ReturnRecord.condition,
                ReturnRecord.return_decision,
                ReturnRecord.serial_number,
            )
        )
    ).all()

    by_status: Dict[str, int] = {}
    by_condition: Dict[str, int] = {}
    pending = with_sn = 0
    for status, condition, decision, sn in rows:
        by_status[status] = by_status.get(status, 0) + 1
        by_condition[condition] = by_condition.get(condition, 0) + 1
        if decision == ReturnDecision.PENDING:
            pending += 1
        if sn:
            with_sn += 1

    return {
        "total": len(rows),
        "pending_decisions": pending,
        "moved_to_inventory": by_status.get(ReturnStatus.MOVED_TO_INVENTORY.value, 0),
        "kept_in_returns": by_status.get(ReturnStatus.KEPT_IN_RETURNS.value, 0),
        "returns_with_serial_numbers": with_sn,
        "by_condition": by_condition,
        "by_status": by_status,
    }


# ---------------- 流水 ---------------- #


async def list_stock_logs(
    session: AsyncSession, *, sku: Optional[str] = None, limit: int = 100
) -> List[StockLog]:
    stmt = select(StockLog)
    if sku:
        stmt = stmt.where(StockLog.sku == sku)
    stmt = stmt.order_by(StockLog.created_at.desc(), StockLog.id).limit(limit)
    return list((await session.execute(stmt)).scalars())
