# snwms/models/return_record.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from snwms.db.base import Base
from snwms.models._defaults import new_id, utc_now


class ReturnRecord(Base):
    """
    退货单：

    - status:          received → (moved_to_inventory | kept_in_returns | processed)
    - return_decision: pending → (move_to_inventory | keep_in_returns)，一经作出不可更改
    - original_item_id / original_delivery_id：已知序列号退货时指向原单件 / 原发货；
      未知序列号建档时指向新批次首件；无序列号退货两者皆空。
    - version_id：乐观锁版本号，并发处置 / 标记同一退货单时后提交者 UPDATE 命中 0 行。
    """

    __tablename__ = "return_records"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    lpn_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    sku: Mapped[str | None] = mapped_column(String(128), nullable=True)
    condition: Mapped[str] = mapped_column(String(16), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    fba_fbm: Mapped[str | None] = mapped_column(String(8), nullable=True)
    removal_order_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    serial_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    original_item_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    original_delivery_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False)
    return_decision: Mapped[str] = mapped_column(String(32), nullable=False)
    decision_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    decision_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    decision_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    processed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    created_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("ix_return_records_serial_number", "serial_number"),
        Index("ix_return_records_decision_created", "return_decision", "created_at"),
    )
