# snwms/schemas/serial.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from snwms.schemas.inventory import BatchOut, UnitOut
from snwms.schemas.returns import ReturnOut


class AssignSerialIn(BaseModel):
    actor: str = Field(..., min_length=1, description="操作人")
    unit_id: str = Field(..., description="单件 ID")
    serial_number: str = Field(..., min_length=1, description="序列号")


class SerialAssignment(BaseModel):
    unit_id: str
    serial_number: str


class BulkAssignIn(BaseModel):
    actor: str = Field(..., min_length=1, description="操作人")
    items: List[SerialAssignment] = Field(..., min_length=1)


class BulkAssignResult(BaseModel):
    """批量赋码结果：逐条独立成败，不回滚已成功的条目"""

    successful: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)


class SerialValidationOut(BaseModel):
    exists: bool
    serial_number: str
    unit: Optional[UnitOut] = None
    batch: Optional[BatchOut] = None
    product_name: Optional[str] = None
    sku: Optional[str] = None
    current_status: Optional[str] = None
    last_delivery_date: Optional[datetime] = None
    return_history: List[ReturnOut] = Field(default_factory=list)


class ReturnabilityOut(BaseModel):
    can_return: bool
    reason: Optional[str]
    unit: Optional[UnitOut]
    current_status: Optional[str]


class HistoryOut(BaseModel):
    id: str
    serial_number: str
    item_id: str
    action: str
    action_date: datetime
    action_by: str
    details: str
    reference_id: Optional[str]

    model_config = ConfigDict(from_attributes=True)
