# snwms/models/stock_log.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from snwms.db.base import Base
from snwms.models._defaults import new_id, utc_now


class StockLog(Base):
    """
    库存流水（只追加）：

    - type:            IN / OUT / ADJUSTMENT
    - quantity_change: 本次对可用数的变化（IN 为正，OUT 为负）
    - new_quantity:    变更后批次 available_quantity
    """

    __tablename__ = "stock_logs"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    type: Mapped[str] = mapped_column(String(16), nullable=False)
    sku: Mapped[str] = mapped_column(String(128), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    user: Mapped[str] = mapped_column(String(128), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    item_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("ix_stock_logs_sku_created", "sku", "created_at"),
    )
