# snwms/schemas/inventory.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BatchReceiveIn(BaseModel):
    actor: str = Field(..., min_length=1, description="收货人")
    sku: str = Field(..., min_length=1, description="SKU")
    product_name: str = Field(..., min_length=1, description="商品名称")
    quantity: int = Field(..., ge=1, description="件数")
    source_reference: str = Field("", description="来源包裹 ID")
    serial_numbers: List[str] = Field(
        default_factory=list,
        description="预知序列号（按顺序写到前几个单件上，数量不超过 quantity）",
    )
    notes: Optional[str] = Field(None, description="批次备注")


class BatchOut(BaseModel):
    id: str
    sku: str
    product_name: str

    total_quantity: int
    available_quantity: int
    reserved_quantity: int
    delivered_quantity: int
    returned_quantity: int
    serial_numbers_assigned: int
    serial_numbers_unassigned: int

    source: str
    source_reference: str
    received_date: datetime
    received_by: str
    batch_notes: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class UnitOut(BaseModel):
    id: str
    batch_id: str
    seq_no: int
    sku: str
    product_name: str
    serial_number: Optional[str]
    status: str
    delivery_id: Optional[str]
    return_id: Optional[str]
    assigned_date: Optional[datetime]
    assigned_by: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReserveIn(BaseModel):
    actor: str = Field(..., min_length=1, description="操作人")
    batch_id: str = Field(..., description="批次 ID")
    quantity: int = Field(..., ge=1, description="预占件数")
    notes: Optional[str] = None


class ReleaseIn(BaseModel):
    actor: str = Field(..., min_length=1, description="操作人")
    unit_ids: List[str] = Field(..., min_length=1, description="要释放的单件 ID")
    notes: Optional[str] = None


class InventoryStatsOut(BaseModel):
    total_batches: int
    total_items: int
    available_items: int
    reserved_items: int
    delivered_items: int
    returned_items: int
    new_arrivals: int
    from_returns: int
    unique_skus: int
    items_with_serial_numbers: int
    items_without_serial_numbers: int
    serial_number_assignment_rate: float = Field(..., description="序列号覆盖率（百分比，保留 1 位）")


class SkuSources(BaseModel):
    new_arrivals: int
    from_returns: int


class SkuSummaryOut(BaseModel):
    sku: str
    product_name: str
    total_items: int
    total_available: int
    total_reserved: int
    total_delivered: int
    total_returned: int
    batch_count: int
    sources: SkuSources


class ConsistencyIssueOut(BaseModel):
    batch_id: str
    sku: Optional[str]
    field: str
    stored: int
    actual: int


class ConsistencyReportOut(BaseModel):
    ok: bool
    issues: List[ConsistencyIssueOut]


class StockLogOut(BaseModel):
    id: str
    type: str
    sku: str
    product_name: str
    quantity_change: int
    new_quantity: int
    user: str
    notes: Optional[str]
    reference_id: Optional[str]
    batch_id: Optional[str]
    item_id: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
