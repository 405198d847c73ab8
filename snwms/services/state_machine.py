# snwms/services/state_machine.py
from __future__ import annotations

from typing import Dict, FrozenSet, Optional, Tuple

from snwms.models.enums import UnitStatus
from snwms.models.unit import SerialNumberItem
from snwms.services.errors import InvalidStateTransition

# 单件状态迁移表（from → 允许的 to）
ALLOWED_TRANSITIONS: Dict[UnitStatus, FrozenSet[UnitStatus]] = {
    UnitStatus.AVAILABLE: frozenset({UnitStatus.RESERVED, UnitStatus.DELIVERED}),
    UnitStatus.RESERVED: frozenset({UnitStatus.AVAILABLE, UnitStatus.DELIVERED}),
    UnitStatus.DELIVERED: frozenset({UnitStatus.RETURNED}),
    UnitStatus.RETURNED: frozenset({UnitStatus.AVAILABLE}),
}


def can_transition(current: str, requested: str) -> bool:
    try:
        cur = UnitStatus(current)
        req = UnitStatus(requested)
    except ValueError:
        return False
    return req in ALLOWED_TRANSITIONS.get(cur, frozenset())


def ensure_transition(unit: SerialNumberItem, requested: UnitStatus, *, reason: Optional[str] = None) -> None:
    """非法迁移 → InvalidStateTransition(current, requested)"""
    if not can_transition(unit.status, requested):
        raise InvalidStateTransition(
            unit.status,
            str(requested),
            reason=reason,
            unit_id=unit.id,
            serial_number=unit.serial_number,
        )


def return_eligibility(unit: SerialNumberItem) -> Tuple[bool, Optional[str]]:
    """
    退货合法性：仅 status == delivered 可退。
    其余状态给出可区分的原因文案。
    """
    sn = unit.serial_number or unit.id
    status = unit.status
    if status == UnitStatus.DELIVERED:
        return True, None
    if status == UnitStatus.AVAILABLE:
        return False, f"Serial number {sn} is available in inventory (not delivered yet)"
    if status == UnitStatus.RETURNED:
        return False, f"Serial number {sn} has already returned"
    if status == UnitStatus.RESERVED:
        return False, f"Serial number {sn} is reserved and cannot be returned"
    return False, f"Serial number {sn} has unknown status {status}"
