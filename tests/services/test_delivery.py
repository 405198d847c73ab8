# tests/services/test_delivery.py
from __future__ import annotations

import pytest

from snwms.services.errors import (
    AlreadyAssigned,
    DuplicateSerialNumber,
    InsufficientInventory,
    InvalidStateTransition,
    SerialNumberRequired,
)
from tests.helpers.inventory import ACTOR, assert_consistent, counters, receive

pytestmark = pytest.mark.asyncio


async def test_deliver_with_supplied_serial_number(engine):
    """3 件无码入库，发货时随单写码 SN-100"""
    batch, _ = await receive(engine, quantity=3)
    c = await counters(engine, batch.id)
    assert c["available_quantity"] == 3
    assert c["serial_numbers_unassigned"] == 3

    delivery = await engine.deliver(
        batch_id=batch.id,
        serial_number="SN-100",
        shipping_label_data={"carrier": "UPS"},
        customer_info={"name": "Ada"},
        actor=ACTOR,
    )

    assert delivery.serial_number == "SN-100"
    assert delivery.sku == "SKU-1"
    assert delivery.product_name == "Widget"
    assert delivery.status == "delivered"
    assert delivery.customer_info == {"name": "Ada"}

    c = await counters(engine, batch.id)
    assert c["available_quantity"] == 2
    assert c["delivered_quantity"] == 1
    assert c["serial_numbers_assigned"] == 1

    unit = await engine.get_unit(delivery.item_id)
    assert unit.status == "delivered"
    assert unit.serial_number == "SN-100"
    assert unit.delivery_id == delivery.id

    history = await engine.get_serial_number_history("SN-100")
    assert [h.action for h in history] == ["assigned", "delivered"]
    assert history[1].reference_id == delivery.id

    out_logs = [log for log in await engine.list_stock_logs(sku="SKU-1") if log.type == "OUT"]
    assert len(out_logs) == 1
    assert out_logs[0].quantity_change == -1
    assert out_logs[0].new_quantity == 2
    await assert_consistent(engine)


async def test_deliver_without_any_serial_number_fails(engine):
    batch, _ = await receive(engine, quantity=1)
    before = await counters(engine, batch.id)

    with pytest.raises(SerialNumberRequired):
        await engine.deliver(batch_id=batch.id, actor=ACTOR)

    assert await counters(engine, batch.id) == before
    await assert_consistent(engine)


async def test_deliver_uses_existing_serial_number(engine):
    _, units = await receive(engine, quantity=1, serial_numbers=["SN-1"])

    delivery = await engine.deliver(unit_id=units[0].id, actor=ACTOR)
    assert delivery.serial_number == "SN-1"

    # 已发货单件再发 → 非法迁移
    with pytest.raises(InvalidStateTransition) as ei:
        await engine.deliver(unit_id=units[0].id, actor=ACTOR)
    assert ei.value.current == "delivered"
    assert ei.value.requested == "delivered"


async def test_deliver_with_conflicting_serial_numbers(engine):
    _, units = await receive(engine, quantity=2, serial_numbers=["SN-1"])

    with pytest.raises(AlreadyAssigned):
        await engine.deliver(unit_id=units[0].id, serial_number="SN-OTHER", actor=ACTOR)

    with pytest.raises(DuplicateSerialNumber):
        await engine.deliver(unit_id=units[1].id, serial_number="SN-1", actor=ACTOR)

    # 提供的码与已有码一致 → 正常发货
    delivery = await engine.deliver(unit_id=units[0].id, serial_number="SN-1", actor=ACTOR)
    assert delivery.item_id == units[0].id
    await assert_consistent(engine)


async def test_deliver_by_batch_picks_oldest_available_unit_of_sku(engine):
    old_batch, old_units = await receive(engine, quantity=2, serial_numbers=["OLD-1", "OLD-2"])
    new_batch, _ = await receive(engine, quantity=2, serial_numbers=["NEW-1", "NEW-2"])

    # 指定新批次，也按 SKU 取最早可用
    first = await engine.deliver(batch_id=new_batch.id, actor=ACTOR)
    assert first.item_id == old_units[0].id
    assert first.batch_id == old_batch.id

    second = await engine.deliver(batch_id=new_batch.id, actor=ACTOR)
    assert second.serial_number == "OLD-2"

    third = await engine.deliver(batch_id=new_batch.id, actor=ACTOR)
    assert third.serial_number == "NEW-1"
    await assert_consistent(engine)


async def test_deliver_when_sku_sold_out(engine):
    batch, _ = await receive(engine, quantity=1, serial_numbers=["SN-1"])
    await engine.deliver(batch_id=batch.id, actor=ACTOR)

    with pytest.raises(InsufficientInventory):
        await engine.deliver(batch_id=batch.id, actor=ACTOR)


async def test_deliver_reserved_unit(engine):
    batch, _ = await receive(engine, quantity=2, serial_numbers=["SN-1", "SN-2"])
    reserved = await engine.reserve(batch_id=batch.id, quantity=1, actor=ACTOR)

    delivery = await engine.deliver(unit_id=reserved[0].id, actor=ACTOR)
    assert delivery.serial_number == "SN-1"

    c = await counters(engine, batch.id)
    assert c["available_quantity"] == 1
    assert c["reserved_quantity"] == 0
    assert c["delivered_quantity"] == 1

    history = await engine.get_delivery_history_for_item(reserved[0].id)
    assert [d.id for d in history] == [delivery.id]
    await assert_consistent(engine)
