# snwms/schemas/delivery.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DeliveryCreateIn(BaseModel):
    actor: str = Field(..., min_length=1, description="发货人")
    batch_id: Optional[str] = Field(None, description="批次 ID（不指定单件时按 SKU 取最早可用）")
    unit_id: Optional[str] = Field(None, description="指定单件 ID")
    serial_number: Optional[str] = Field(None, description="随发货写入的序列号（单件尚无序列号时必填）")
    shipping_label_data: Optional[Dict[str, Any]] = Field(None, description="面单信息")
    customer_info: Optional[Dict[str, Any]] = Field(None, description="收件人信息")

    @model_validator(mode="after")
    def _need_batch_or_unit(self) -> "DeliveryCreateIn":
        if not self.batch_id and not self.unit_id:
            raise ValueError("batch_id or unit_id is required")
        return self


class DeliveryOut(BaseModel):
    id: str
    item_id: str
    batch_id: str
    serial_number: str
    sku: str
    product_name: str
    shipping_label_data: Optional[Dict[str, Any]]
    customer_info: Optional[Dict[str, Any]]
    delivered_by: str
    delivery_date: datetime
    status: str

    model_config = ConfigDict(from_attributes=True)
