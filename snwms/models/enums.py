# snwms/models/enums.py
from __future__ import annotations

from enum import StrEnum


class UnitStatus(StrEnum):
    """
    单件（序列号条目）状态机：

    - AVAILABLE   在库可发
    - RESERVED    已预占
    - DELIVERED   已发货
    - RETURNED    已退回（待处置 / 留在退货区）
    """

    AVAILABLE = "available"
    RESERVED = "reserved"
    DELIVERED = "delivered"
    RETURNED = "returned"


class BatchSource(StrEnum):
    NEW_ARRIVAL = "new_arrival"
    FROM_RETURN = "from_return"


class HistoryAction(StrEnum):
    ASSIGNED = "assigned"
    DELIVERED = "delivered"
    RETURNED = "returned"
    MOVED_TO_INVENTORY = "moved_to_inventory"
    KEPT_IN_RETURNS = "kept_in_returns"


class ReturnStatus(StrEnum):
    RECEIVED = "received"
    PROCESSED = "processed"
    MOVED_TO_INVENTORY = "moved_to_inventory"
    KEPT_IN_RETURNS = "kept_in_returns"


class ReturnDecision(StrEnum):
    PENDING = "pending"
    MOVE_TO_INVENTORY = "move_to_inventory"
    KEEP_IN_RETURNS = "keep_in_returns"


class ReturnCondition(StrEnum):
    INTACT = "Intact"
    OPENED = "Opened"
    DAMAGED = "Damaged"


class DeliveryStatus(StrEnum):
    PENDING = "pending"
    DELIVERED = "delivered"
    RETURNED = "returned"


class StockLogType(StrEnum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


# 单件状态 → 批次计数器字段
STATUS_COUNTER_FIELD: dict[UnitStatus, str] = {
    UnitStatus.AVAILABLE: "available_quantity",
    UnitStatus.RESERVED: "reserved_quantity",
    UnitStatus.DELIVERED: "delivered_quantity",
    UnitStatus.RETURNED: "returned_quantity",
}
