# snwms/schemas/returns.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from snwms.models.enums import ReturnCondition, ReturnDecision


class ReturnIntakeIn(BaseModel):
    """退货登记表单（扫码得到的序列号可空）"""

    actor: str = Field(..., min_length=1, description="操作人")
    serial_number: Optional[str] = Field(
        None,
        description="扫描到的序列号；已知 → 原单件退货，未知 → 新品退货建档，空 → 仅登记",
    )
    lpn_number: Optional[str] = Field(None, description="LPN 号")
    tracking_number: Optional[str] = Field(None, description="物流单号")
    product_name: Optional[str] = Field(None, description="商品名称；已知序列号时默认取原单件")
    sku: Optional[str] = Field(None, description="SKU；未知序列号且为空时自动生成")
    condition: ReturnCondition = Field(ReturnCondition.INTACT, description="外观状态")
    quantity: int = Field(1, ge=1, description="件数（仅新品退货建档时使用）")
    reason: Optional[str] = Field(None, description="退货原因")
    notes: Optional[str] = Field(None, description="备注")
    fba_fbm: Optional[str] = Field(None, description="FBA / FBM")
    removal_order_id: Optional[str] = Field(None, description="移除订单号")


class ReturnDecisionIn(BaseModel):
    actor: str = Field(..., min_length=1, description="操作人")
    decision: ReturnDecision = Field(..., description="move_to_inventory / keep_in_returns")
    notes: Optional[str] = Field(None, description="处置备注")


class ReturnProcessedIn(BaseModel):
    actor: str = Field(..., min_length=1, description="操作人")


class ReturnOut(BaseModel):
    id: str
    lpn_number: Optional[str]
    tracking_number: Optional[str]
    product_name: str
    sku: Optional[str]
    condition: str
    quantity: int
    reason: Optional[str]
    notes: Optional[str]
    fba_fbm: Optional[str]
    removal_order_id: Optional[str]

    serial_number: Optional[str]
    original_item_id: Optional[str]
    original_delivery_id: Optional[str]

    status: str
    return_decision: str
    decision_date: Optional[datetime]
    decision_by: Optional[str]
    decision_notes: Optional[str]
    processed_date: Optional[datetime]
    processed_by: Optional[str]

    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReturnStatsOut(BaseModel):
    total: int
    pending_decisions: int
    moved_to_inventory: int
    kept_in_returns: int
    returns_with_serial_numbers: int
    by_condition: Dict[str, int]
    by_status: Dict[str, int]
