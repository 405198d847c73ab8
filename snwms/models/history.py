# snwms/models/history.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from snwms.db.base import Base
from snwms.models._defaults import new_id, utc_now


class SerialNumberHistory(Base):
    """
    序列号履历（只追加，不更新、不删除）

    仅对带序列号的单件写入；reference_id 指向 delivery / return。
    """

    __tablename__ = "serial_number_history"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)

    serial_number: Mapped[str] = mapped_column(String(128), nullable=False)
    item_id: Mapped[str] = mapped_column(String(32), nullable=False)
    action: Mapped[str] = mapped_column(String(32), nullable=False)

    action_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    action_by: Mapped[str] = mapped_column(String(128), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reference_id: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        Index("ix_serial_number_history_sn_date", "serial_number", "action_date"),
        Index("ix_serial_number_history_item", "item_id"),
    )
