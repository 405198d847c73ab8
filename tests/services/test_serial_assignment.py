# tests/services/test_serial_assignment.py
from __future__ import annotations

import asyncio

import pytest

from snwms.schemas.serial import SerialAssignment
from snwms.services.batch_repo import get_batch
from snwms.services.errors import AlreadyAssigned, DuplicateSerialNumber, InvalidInput, NotFound
from snwms.services.serial_service import apply_serial
from snwms.services.unit_repo import get_unit
from tests.helpers.inventory import ACTOR, assert_consistent, counters, receive

pytestmark = pytest.mark.asyncio


async def test_assign_serial_number_updates_unit_batch_and_history(engine):
    batch, units = await receive(engine, quantity=2)

    unit = await engine.assign_serial_number(unit_id=units[0].id, serial_number="SN-1", actor=ACTOR)

    assert unit.serial_number == "SN-1"
    assert unit.assigned_by == ACTOR
    assert unit.assigned_date is not None

    c = await counters(engine, batch.id)
    assert c["serial_numbers_assigned"] == 1
    assert c["serial_numbers_unassigned"] == 1

    history = await engine.get_serial_number_history("SN-1")
    assert len(history) == 1
    assert history[0].action == "assigned"
    assert history[0].item_id == units[0].id
    await assert_consistent(engine)


async def test_duplicate_serial_number_leaves_counters_unchanged(engine):
    """序列号已在别的单件上 → DuplicateSerialNumber，计数器不变"""
    batch, units = await receive(engine, quantity=2)
    await engine.assign_serial_number(unit_id=units[0].id, serial_number="SN-1", actor=ACTOR)
    before = await counters(engine, batch.id)

    with pytest.raises(DuplicateSerialNumber) as ei:
        await engine.assign_serial_number(unit_id=units[1].id, serial_number="SN-1", actor=ACTOR)
    assert "already exists" in ei.value.message

    assert await counters(engine, batch.id) == before
    assert (await engine.get_unit(units[1].id)).serial_number is None
    await assert_consistent(engine)


async def test_assignment_is_one_way(engine):
    """已有序列号的单件不能改号"""
    _, units = await receive(engine, quantity=1)
    await engine.assign_serial_number(unit_id=units[0].id, serial_number="SN-1", actor=ACTOR)

    with pytest.raises(AlreadyAssigned):
        await engine.assign_serial_number(unit_id=units[0].id, serial_number="SN-2", actor=ACTOR)

    assert (await engine.get_unit(units[0].id)).serial_number == "SN-1"
    assert await engine.get_serial_number_history("SN-2") == []


async def test_assign_rejects_empty_serial_and_unknown_unit(engine):
    _, units = await receive(engine, quantity=1)

    with pytest.raises(InvalidInput):
        await engine.assign_serial_number(unit_id=units[0].id, serial_number="   ", actor=ACTOR)
    with pytest.raises(NotFound):
        await engine.assign_serial_number(unit_id="missing", serial_number="SN-1", actor=ACTOR)


@pytest.mark.contract
async def test_concurrent_assignment_of_same_serial_only_one_wins(engine):
    batch, units = await receive(engine, quantity=2)

    results = await asyncio.gather(
        engine.assign_serial_number(unit_id=units[0].id, serial_number="SN-RACE", actor="a"),
        engine.assign_serial_number(unit_id=units[1].id, serial_number="SN-RACE", actor="b"),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, Exception)]
    winners = [r for r in results if not isinstance(r, Exception)]
    assert len(winners) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], DuplicateSerialNumber)

    items = await engine.get_items_by_batch(batch.id)
    assert [u.serial_number for u in items].count("SN-RACE") == 1
    c = await counters(engine, batch.id)
    assert c["serial_numbers_assigned"] == 1
    await assert_consistent(engine)


async def test_unique_constraint_backs_up_the_lookup(engine, session):
    """跳过事务内查重，直接写入已存在的序列号 → 唯一约束兜底为 DuplicateSerialNumber"""
    batch, units = await receive(engine, quantity=2, serial_numbers=["SN-1"])

    unit = await get_unit(session, units[1].id)
    b = await get_batch(session, batch.id)
    with pytest.raises(DuplicateSerialNumber):
        await apply_serial(session, unit=unit, batch=b, serial_number="SN-1", actor=ACTOR)
    await session.rollback()

    await assert_consistent(engine)


async def test_bulk_assign_is_partial_failure(engine):
    batch, units = await receive(engine, quantity=3)
    await engine.assign_serial_number(unit_id=units[2].id, serial_number="SN-TAKEN", actor=ACTOR)

    result = await engine.bulk_assign_serial_numbers(
        items=[
            SerialAssignment(unit_id=units[0].id, serial_number="SN-A"),
            SerialAssignment(unit_id=units[1].id, serial_number="SN-TAKEN"),
            SerialAssignment(unit_id="missing", serial_number="SN-B"),
            SerialAssignment(unit_id=units[1].id, serial_number="SN-C"),
        ],
        actor=ACTOR,
    )

    assert result.successful == 2
    assert result.failed == 2
    assert result.errors[0].startswith(f"{units[1].id}: ")
    assert "SN-TAKEN" in result.errors[0]
    assert result.errors[1].startswith("missing: ")

    items = await engine.get_items_by_batch(batch.id)
    assert [u.serial_number for u in items] == ["SN-A", "SN-C", "SN-TAKEN"]
    await assert_consistent(engine)
