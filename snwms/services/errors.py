# snwms/services/errors.py
from __future__ import annotations

from typing import Any, Dict, Optional


class InventoryError(Exception):
    """
    库存核心统一业务异常基类：

    - code:   机器可读错误码（snake_case），对外 Problem.error_code
    - status: HTTP 状态码（仅 API 层使用，服务层不关心）
    - context: 附加定位信息（unit_id / batch_id / serial_number ...）
    """

    code = "inventory_error"
    status = 400

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})


class NotFound(InventoryError):
    code = "not_found"
    status = 404


class InvalidInput(InventoryError):
    code = "invalid_input"
    status = 422


class DuplicateSerialNumber(InventoryError):
    code = "duplicate_serial_number"
    status = 409

    def __init__(self, serial_number: str, *, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Serial number {serial_number} already exists in system",
            context={"serial_number": serial_number},
        )
        self.serial_number = serial_number


class AlreadyAssigned(InventoryError):
    code = "already_assigned"
    status = 409

    def __init__(self, unit_id: str, existing: str) -> None:
        super().__init__(
            f"Item {unit_id} already has serial number {existing}",
            context={"unit_id": unit_id, "serial_number": existing},
        )
        self.unit_id = unit_id
        self.existing = existing


class InvalidStateTransition(InventoryError):
    code = "invalid_state_transition"
    status = 409

    def __init__(self, current: str, requested: str, *, reason: Optional[str] = None, **context: Any) -> None:
        msg = f"cannot move item from {current} to {requested}"
        if reason:
            msg = f"{reason} ({msg})"
        super().__init__(msg, context={"current": current, "requested": requested, **context})
        self.current = current
        self.requested = requested
        self.reason = reason


class SerialNumberRequired(InventoryError):
    code = "serial_number_required"
    status = 422


class InsufficientInventory(InventoryError):
    code = "insufficient_inventory"
    status = 409

    def __init__(self, batch_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Batch {batch_id} has only {available} available, requested {requested}",
            context={"batch_id": batch_id, "requested": requested, "available": available},
        )
        self.requested = requested
        self.available = available


class DecisionAlreadyMade(InventoryError):
    code = "decision_already_made"
    status = 409

    def __init__(self, return_id: str, decision: str) -> None:
        super().__init__(
            f"Return decision has already been made for {return_id}: {decision}",
            context={"return_id": return_id, "decision": decision},
        )
        self.decision = decision


class ConcurrencyConflict(InventoryError):
    """乐观并发冲突重试耗尽"""

    code = "concurrency_conflict"
    status = 409


__all__ = [
    "InventoryError",
    "NotFound",
    "InvalidInput",
    "DuplicateSerialNumber",
    "AlreadyAssigned",
    "InvalidStateTransition",
    "SerialNumberRequired",
    "InsufficientInventory",
    "DecisionAlreadyMade",
    "ConcurrencyConflict",
]
