# snwms/models/delivery.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import sqlalchemy as sa
from sqlalchemy import DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from snwms.db.base import Base
from snwms.models._defaults import new_id, utc_now

# PG 上落 jsonb，其余方言（sqlite 测试）落 JSON
JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


class Delivery(Base):
    """
    发货记录：一次发货 = 一个单件。

    sku / product_name / serial_number 为发货时刻快照；
    退货入库后 status 变为 returned，记录本身保留作履历。
    """

    __tablename__ = "deliveries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    item_id: Mapped[str] = mapped_column(String(32), nullable=False)
    batch_id: Mapped[str] = mapped_column(String(32), nullable=False)
    serial_number: Mapped[str] = mapped_column(String(128), nullable=False)
    sku: Mapped[str] = mapped_column(String(128), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    shipping_label_data: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    customer_info: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    delivered_by: Mapped[str] = mapped_column(String(128), nullable=False)
    delivery_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)

    __table_args__ = (
        Index("ix_deliveries_item_id", "item_id"),
        Index("ix_deliveries_serial_number", "serial_number"),
    )
