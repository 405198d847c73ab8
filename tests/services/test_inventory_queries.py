# tests/services/test_inventory_queries.py
from __future__ import annotations

import pytest
from sqlalchemy import update

from snwms.models.batch import InventoryBatch
from snwms.models.unit import SerialNumberItem
from tests.helpers.inventory import ACTOR, assert_consistent, receive, return_form

pytestmark = pytest.mark.asyncio


async def test_inventory_stats_and_summary(engine):
    b1, _ = await receive(engine, sku="SKU-A", quantity=4, serial_numbers=["A1", "A2"])
    await receive(engine, sku="SKU-B", product_name="Gadget", quantity=2)
    await engine.deliver(batch_id=b1.id, actor=ACTOR)
    await engine.intake_return(return_form("NEW-1", product_name="Stranger", sku="SKU-C"))

    stats = await engine.get_inventory_stats()
    assert stats["total_batches"] == 3
    assert stats["total_items"] == 7
    assert stats["available_items"] == 5
    assert stats["delivered_items"] == 1
    assert stats["returned_items"] == 1
    assert stats["new_arrivals"] == 2
    assert stats["from_returns"] == 1
    assert stats["unique_skus"] == 3
    assert stats["items_with_serial_numbers"] == 3
    assert stats["items_without_serial_numbers"] == 4
    assert stats["serial_number_assignment_rate"] == 42.9

    summary = {row["sku"]: row for row in await engine.get_inventory_summary_by_sku()}
    assert summary["SKU-A"]["total_available"] == 3
    assert summary["SKU-A"]["total_delivered"] == 1
    assert summary["SKU-A"]["sources"] == {"new_arrivals": 1, "from_returns": 0}
    assert summary["SKU-C"]["total_returned"] == 1
    assert summary["SKU-C"]["sources"] == {"new_arrivals": 0, "from_returns": 1}


async def test_empty_stats(engine):
    stats = await engine.get_inventory_stats()
    assert stats["total_items"] == 0
    assert stats["serial_number_assignment_rate"] == 0.0


async def test_low_stock_uses_configured_threshold(engine):
    await receive(engine, sku="SKU-LOW", quantity=5)
    await receive(engine, sku="SKU-OK", quantity=6)

    low = await engine.get_low_stock_skus()
    assert [r["sku"] for r in low] == ["SKU-LOW"]

    assert [r["sku"] for r in await engine.get_low_stock_skus(10)] == ["SKU-LOW", "SKU-OK"]


async def test_items_needing_serial_numbers_and_available_for_delivery(engine):
    b1, units = await receive(engine, sku="SKU-A", quantity=3, serial_numbers=["A1"])
    b2, _ = await receive(engine, sku="SKU-A", quantity=1)

    needing = await engine.get_items_needing_serial_numbers()
    assert len(needing) == 3
    assert [u.id for u in await engine.get_items_needing_serial_numbers(b1.id)] == [
        units[1].id,
        units[2].id,
    ]

    available = await engine.get_available_items_for_delivery("SKU-A")
    assert [u.batch_id for u in available] == [b1.id, b1.id, b1.id, b2.id]


async def test_search_inventory(engine):
    await receive(engine, sku="CAM-1", product_name="Action Camera", quantity=1, serial_numbers=["CX-77"])
    await receive(engine, sku="TRI-1", product_name="Tripod", quantity=1)

    assert [u.serial_number for u in await engine.search_inventory("cx-7")] == ["CX-77"]
    assert [u.sku for u in await engine.search_inventory("camera")] == ["CAM-1"]
    assert len(await engine.search_inventory("1")) == 2
    assert await engine.search_inventory("  ") == []


async def test_validate_serial_number(engine):
    batch, _ = await receive(engine, quantity=1, serial_numbers=["SN-1"])
    delivery = await engine.deliver(batch_id=batch.id, actor=ACTOR)
    await engine.intake_return(return_form("SN-1"))

    info = await engine.validate_serial_number("SN-1")
    assert info["exists"] is True
    assert info["current_status"] == "returned"
    assert info["sku"] == "SKU-1"
    assert info["batch"].id == batch.id
    assert info["last_delivery_date"] is not None
    assert [r.original_delivery_id for r in info["return_history"]] == [delivery.id]

    missing = await engine.validate_serial_number("NOPE")
    assert missing == {"exists": False, "serial_number": "NOPE"}


async def test_consistency_check_reports_tampered_counters(engine, session):
    batch, _ = await receive(engine, quantity=3)
    await assert_consistent(engine)

    # 绕过引擎：只改单件状态、不动计数器
    await session.execute(
        update(SerialNumberItem)
        .where(SerialNumberItem.batch_id == batch.id)
        .where(SerialNumberItem.seq_no == 1)
        .values(status="delivered", serial_number="SN-X")
    )
    await session.commit()

    issues = await engine.check_consistency(batch.id)
    fields = {i["field"]: (i["stored"], i["actual"]) for i in issues}
    assert fields["available_quantity"] == (3, 2)
    assert fields["delivered_quantity"] == (0, 1)
    assert fields["serial_numbers_assigned"] == (0, 1)
    assert fields["serial_numbers_unassigned"] == (3, 2)
    assert "total_quantity" not in fields

    # 计数器自洽（满足 CHECK），但与单件总数对不上
    await session.execute(
        update(InventoryBatch).where(InventoryBatch.id == batch.id).values(
            total_quantity=4, serial_numbers_unassigned=4, available_quantity=4
        )
    )
    await session.commit()
    issues = await engine.check_consistency(batch.id)
    assert any(i["field"] == "total_quantity" for i in issues)
