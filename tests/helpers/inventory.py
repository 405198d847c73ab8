# tests/helpers/inventory.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from snwms.models.batch import InventoryBatch
from snwms.models.unit import SerialNumberItem
from snwms.schemas.returns import ReturnIntakeIn
from snwms.services.inventory_engine import InventoryEngine

ACTOR = "tester"

COUNTER_FIELDS = (
    "total_quantity",
    "available_quantity",
    "reserved_quantity",
    "delivered_quantity",
    "returned_quantity",
    "serial_numbers_assigned",
    "serial_numbers_unassigned",
)


async def assert_consistent(engine: InventoryEngine) -> None:
    """批次计数器与单件实况一致（含 sum == total）"""
    issues = await engine.check_consistency()
    assert issues == [], issues


async def counters(engine: InventoryEngine, batch_id: str) -> Dict[str, int]:
    batch = await engine.get_batch(batch_id)
    return {f: getattr(batch, f) for f in COUNTER_FIELDS}


async def receive(
    engine: InventoryEngine,
    *,
    sku: str = "SKU-1",
    product_name: str = "Widget",
    quantity: int = 3,
    serial_numbers: Optional[Sequence[str]] = None,
) -> Tuple[InventoryBatch, List[SerialNumberItem]]:
    batch = await engine.receive_batch(
        sku=sku,
        product_name=product_name,
        quantity=quantity,
        actor=ACTOR,
        source_reference="PKG-1",
        serial_numbers=serial_numbers,
    )
    units = await engine.get_items_by_batch(batch.id)
    return batch, units


def return_form(serial_number: Optional[str] = None, **kw) -> ReturnIntakeIn:
    kw.setdefault("actor", ACTOR)
    return ReturnIntakeIn(serial_number=serial_number, **kw)
