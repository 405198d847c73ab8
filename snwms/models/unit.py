# snwms/models/unit.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from snwms.db.base import Base
from snwms.models._defaults import new_id, utc_now


class SerialNumberItem(Base):
    """
    单件（一个物理商品）：

    - batch_id 建档后不变；seq_no 为批次内创建序号（1..N），与 created_at 一起决定“最早可用”；
    - serial_number 可空；非空时全局唯一（uq_serial_number_items_serial_number），
      一经赋值不可清空、不可修改；
    - delivery_id：发货时写入，退货后保留，移回库存时清空；
    - return_id：仅 status=returned 时非空。
    """

    __tablename__ = "serial_number_items"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    batch_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey("inventory_batches.id", ondelete="RESTRICT"),
        nullable=False,
    )
    seq_no: Mapped[int] = mapped_column(Integer, nullable=False)

    sku: Mapped[str] = mapped_column(String(128), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)

    serial_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)

    delivery_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    return_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    assigned_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(String(128), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_serial_number_items_serial_number"),
        UniqueConstraint("batch_id", "seq_no", name="uq_serial_number_items_batch_seq"),
        Index("ix_serial_number_items_batch_status", "batch_id", "status"),
        Index("ix_serial_number_items_sku_status", "sku", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<SerialNumberItem id={self.id} batch={self.batch_id} "
            f"sn={self.serial_number} status={self.status}>"
        )
