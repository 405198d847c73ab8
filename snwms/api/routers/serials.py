# snwms/api/routers/serials.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from snwms.api.deps import get_engine
from snwms.schemas.inventory import UnitOut
from snwms.schemas.returns import ReturnOut
from snwms.schemas.serial import (
    AssignSerialIn,
    BulkAssignIn,
    BulkAssignResult,
    HistoryOut,
    ReturnabilityOut,
    SerialValidationOut,
)
from snwms.services.inventory_engine import InventoryEngine

router = APIRouter(prefix="/serials", tags=["serials"])


@router.post("/assign", response_model=UnitOut)
async def assign_serial(payload: AssignSerialIn, engine: InventoryEngine = Depends(get_engine)) -> UnitOut:
    unit = await engine.assign_serial_number(
        unit_id=payload.unit_id, serial_number=payload.serial_number, actor=payload.actor
    )
    return UnitOut.model_validate(unit)


@router.post("/bulk-assign", response_model=BulkAssignResult)
async def bulk_assign(payload: BulkAssignIn, engine: InventoryEngine = Depends(get_engine)) -> BulkAssignResult:
    return await engine.bulk_assign_serial_numbers(items=payload.items, actor=payload.actor)


@router.get("/{serial_number}", response_model=SerialValidationOut)
async def validate_serial(
    serial_number: str, engine: InventoryEngine = Depends(get_engine)
) -> SerialValidationOut:
    result = await engine.validate_serial_number(serial_number)
    return SerialValidationOut.model_validate(result, from_attributes=True)


@router.get("/{serial_number}/history", response_model=List[HistoryOut])
async def serial_history(
    serial_number: str, engine: InventoryEngine = Depends(get_engine)
) -> List[HistoryOut]:
    return [HistoryOut.model_validate(h) for h in await engine.get_serial_number_history(serial_number)]


@router.get("/{serial_number}/returnable", response_model=ReturnabilityOut)
async def serial_returnable(
    serial_number: str, engine: InventoryEngine = Depends(get_engine)
) -> ReturnabilityOut:
    result = await engine.can_serial_number_be_returned(serial_number)
    return ReturnabilityOut.model_validate(result, from_attributes=True)


@router.get("/{serial_number}/returns", response_model=List[ReturnOut])
async def serial_returns(
    serial_number: str, engine: InventoryEngine = Depends(get_engine)
) -> List[ReturnOut]:
    return [ReturnOut.model_validate(r) for r in await engine.get_returns_by_serial_number(serial_number)]
