# snwms/models/batch.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from snwms.db.base import Base
from snwms.models._defaults import new_id, utc_now


class InventoryBatch(Base):
    """
    库存批次（一次收货 / 一次未知退货建档 = 一个批次，单一 SKU）

    计数器（必须与批次下单件状态严格一致）：
        available + reserved + delivered + returned == total_quantity
        serial_numbers_assigned + serial_numbers_unassigned == total_quantity

    sku / product_name / total_quantity / received_* 建档后不再修改。
    version_id 为乐观锁版本号：并发写同一批次时后提交者 UPDATE 命中 0 行。
    """

    __tablename__ = "inventory_batches"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    sku: Mapped[str] = mapped_column(String(128), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    total_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivered_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    returned_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    serial_numbers_assigned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    serial_numbers_unassigned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # 来源：new_arrival（收货包裹 id）/ from_return（退货单 id）
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    source_reference: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    received_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    received_by: Mapped[str] = mapped_column(String(128), nullable=False)
    batch_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            "available_quantity + reserved_quantity + delivered_quantity + returned_quantity"
            " = total_quantity",
            name="ck_inventory_batches_status_sum",
        ),
        CheckConstraint(
            "serial_numbers_assigned + serial_numbers_unassigned = total_quantity",
            name="ck_inventory_batches_serial_sum",
        ),
        CheckConstraint(
            "available_quantity >= 0 AND reserved_quantity >= 0"
            " AND delivered_quantity >= 0 AND returned_quantity >= 0",
            name="ck_inventory_batches_non_negative",
        ),
        Index("ix_inventory_batches_sku", "sku"),
        Index("ix_inventory_batches_source", "source"),
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryBatch id={self.id} sku={self.sku} total={self.total_quantity} "
            f"avail={self.available_quantity} rsv={self.reserved_quantity} "
            f"dlv={self.delivered_quantity} ret={self.returned_quantity}>"
        )
