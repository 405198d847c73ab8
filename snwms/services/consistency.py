# snwms/services/consistency.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models.batch import InventoryBatch
from snwms.models.enums import STATUS_COUNTER_FIELD
from snwms.models.unit import SerialNumberItem

logger = logging.getLogger("snwms.consistency")


async def check_consistency(session: AsyncSession, batch_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    批次计数器 vs 单件实况 对账：

    - 按 (batch_id, status) 重新数单件，对比 available/reserved/delivered/returned；
    - 重新数带 / 不带序列号的单件，对比 serial_numbers_assigned / unassigned；
    - 计数器之和对比 total_quantity。

    返回全部不一致项：{batch_id, sku, field, stored, actual}；空列表 = 一致。
    """
    u = SerialNumberItem
    status_stmt = select(u.batch_id, u.status, func.count(u.id)).group_by(u.batch_id, u.status)
    serial_stmt = select(
        u.batch_id,
        func.sum(case((u.serial_number.is_not(None), 1), else_=0)),
        func.sum(case((u.serial_number.is_(None), 1), else_=0)),
    ).group_by(u.batch_id)
    batch_stmt = select(InventoryBatch).order_by(InventoryBatch.received_date, InventoryBatch.id)
    if batch_id is not None:
        status_stmt = status_stmt.where(u.batch_id == batch_id)
        serial_stmt = serial_stmt.where(u.batch_id == batch_id)
        batch_stmt = batch_stmt.where(InventoryBatch.id == batch_id)

    actual: Dict[str, Dict[str, int]] = {}
    for bid, status, n in (await session.execute(status_stmt)).all():
        field = STATUS_COUNTER_FIELD.get(status, f"unknown_status:{status}")
        actual.setdefault(bid, {})[field] = int(n)
    for bid, assigned, unassigned in (await session.execute(serial_stmt)).all():
        counts = actual.setdefault(bid, {})
        counts["serial_numbers_assigned"] = int(assigned or 0)
        counts["serial_numbers_unassigned"] = int(unassigned or 0)

    issues: List[Dict[str, Any]] = []
    for batch in (await session.execute(batch_stmt)).scalars():
        counts = actual.pop(batch.id, {})
        unit_total = sum(counts.get(f, 0) for f in STATUS_COUNTER_FIELD.values())

        fields = [*STATUS_COUNTER_FIELD.values(), "serial_numbers_assigned", "serial_numbers_unassigned"]
        for field in fields:
            stored = int(getattr(batch, field))
            found = counts.get(field, 0)
            if stored != found:
                issues.append(
                    {"batch_id": batch.id, "sku": batch.sku, "field": field, "stored": stored, "actual": found}
                )

        for field, n in counts.items():
            if field.startswith("unknown_status:"):
                issues.append({"batch_id": batch.id, "sku": batch.sku, "field": field, "stored": 0, "actual": n})

        counter_sum = sum(int(getattr(batch, f)) for f in STATUS_COUNTER_FIELD.values())
        if counter_sum != batch.total_quantity or unit_total != batch.total_quantity:
            issues.append(
                {
                    "batch_id": batch.id,
                    "sku": batch.sku,
                    "field": "total_quantity",
                    "stored": int(batch.total_quantity),
                    "actual": unit_total,
                }
            )

    # 有单件但批次不存在
    for orphan_id, counts in actual.items():
        issues.append(
            {
                "batch_id": orphan_id,
                "sku": None,
                "field": "batch_missing",
                "stored": 0,
                "actual": sum(v for k, v in counts.items() if k in STATUS_COUNTER_FIELD.values()),
            }
        )

    if issues:
        logger.warning("consistency check found %d issue(s)", len(issues))
    return issues
