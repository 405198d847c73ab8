# snwms/services/history_writer.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from snwms.models.enums import HistoryAction
from snwms.models.history import SerialNumberHistory
from snwms.models.unit import SerialNumberItem

logger = logging.getLogger("snwms.history")


async def write_history(
    session: AsyncSession,
    *,
    unit: SerialNumberItem,
    action: HistoryAction,
    actor: str,
    details: str = "",
    reference_id: Optional[str] = None,
) -> Optional[SerialNumberHistory]:
    """
    追加一条序列号履历：

    - 只对带序列号的单件写入（无序列号 → 返回 None，不写）；
    - 不在这里提交事务，由调用方所在事务统一提交。
    """
    if not unit.serial_number:
        logger.debug("skip history %s for item %s: no serial number", action, unit.id)
        return None

    entry = SerialNumberHistory(
        serial_number=unit.serial_number,
        item_id=unit.id,
        action=str(action),
        action_by=actor,
        details=details,
        reference_id=reference_id,
    )
    session.add(entry)
    return entry
