"""serial inventory core tables

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-19 10:12:44.318204

"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "3f1a9c2e7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    # ------------------------------------------------------------------
    # 批次：四个状态计数器之和 = total；已赋码 + 未赋码 = total（DB 级护栏）
    # ------------------------------------------------------------------
    op.create_table(
        "inventory_batches",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("sku", sa.String(128), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("total_quantity", sa.Integer(), nullable=False),
        sa.Column("available_quantity", sa.Integer(), nullable=False),
        sa.Column("reserved_quantity", sa.Integer(), nullable=False),
        sa.Column("delivered_quantity", sa.Integer(), nullable=False),
        sa.Column("returned_quantity", sa.Integer(), nullable=False),
        sa.Column("serial_numbers_assigned", sa.Integer(), nullable=False),
        sa.Column("serial_numbers_unassigned", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("source_reference", sa.String(64), nullable=False),
        sa.Column("received_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_by", sa.String(128), nullable=False),
        sa.Column("batch_notes", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "available_quantity + reserved_quantity + delivered_quantity + returned_quantity"
            " = total_quantity",
            name="ck_inventory_batches_status_sum",
        ),
        sa.CheckConstraint(
            "serial_numbers_assigned + serial_numbers_unassigned = total_quantity",
            name="ck_inventory_batches_serial_sum",
        ),
        sa.CheckConstraint(
            "available_quantity >= 0 AND reserved_quantity >= 0"
            " AND delivered_quantity >= 0 AND returned_quantity >= 0",
            name="ck_inventory_batches_non_negative",
        ),
    )
    op.create_index("ix_inventory_batches_sku", "inventory_batches", ["sku"])
    op.create_index("ix_inventory_batches_source", "inventory_batches", ["source"])

    # ------------------------------------------------------------------
    # 单件：非空序列号全局唯一（NULL 不参与唯一性）
    # ------------------------------------------------------------------
    op.create_table(
        "serial_number_items",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column(
            "batch_id",
            sa.String(32),
            sa.ForeignKey("inventory_batches.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("seq_no", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(128), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("serial_number", sa.String(128), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("delivery_id", sa.String(32), nullable=True),
        sa.Column("return_id", sa.String(32), nullable=True),
        sa.Column("assigned_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_by", sa.String(128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.UniqueConstraint("serial_number", name="uq_serial_number_items_serial_number"),
        sa.UniqueConstraint("batch_id", "seq_no", name="uq_serial_number_items_batch_seq"),
    )
    op.create_index(
        "ix_serial_number_items_batch_status", "serial_number_items", ["batch_id", "status"]
    )
    op.create_index("ix_serial_number_items_sku_status", "serial_number_items", ["sku", "status"])

    op.create_table(
        "serial_number_history",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("serial_number", sa.String(128), nullable=False),
        sa.Column("item_id", sa.String(32), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("action_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("action_by", sa.String(128), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("reference_id", sa.String(32), nullable=True),
    )
    op.create_index(
        "ix_serial_number_history_sn_date", "serial_number_history", ["serial_number", "action_date"]
    )
    op.create_index("ix_serial_number_history_item", "serial_number_history", ["item_id"])

    op.create_table(
        "deliveries",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("item_id", sa.String(32), nullable=False),
        sa.Column("batch_id", sa.String(32), nullable=False),
        sa.Column("serial_number", sa.String(128), nullable=False),
        sa.Column("sku", sa.String(128), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("shipping_label_data", JSONType, nullable=True),
        sa.Column("customer_info", JSONType, nullable=True),
        sa.Column("delivered_by", sa.String(128), nullable=False),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
    )
    op.create_index("ix_deliveries_item_id", "deliveries", ["item_id"])
    op.create_index("ix_deliveries_serial_number", "deliveries", ["serial_number"])

    op.create_table(
        "return_records",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("lpn_number", sa.String(128), nullable=True),
        sa.Column("tracking_number", sa.String(128), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(128), nullable=True),
        sa.Column("condition", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("fba_fbm", sa.String(8), nullable=True),
        sa.Column("removal_order_id", sa.String(128), nullable=True),
        sa.Column("serial_number", sa.String(128), nullable=True),
        sa.Column("original_item_id", sa.String(32), nullable=True),
        sa.Column("original_delivery_id", sa.String(32), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("return_decision", sa.String(32), nullable=False),
        sa.Column("decision_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision_by", sa.String(128), nullable=True),
        sa.Column("decision_notes", sa.Text(), nullable=True),
        sa.Column("processed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(128), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
    )
    op.create_index("ix_return_records_serial_number", "return_records", ["serial_number"])
    op.create_index(
        "ix_return_records_decision_created", "return_records", ["return_decision", "created_at"]
    )

    op.create_table(
        "stock_logs",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("sku", sa.String(128), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("new_quantity", sa.Integer(), nullable=False),
        sa.Column("user", sa.String(128), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reference_id", sa.String(32), nullable=True),
        sa.Column("batch_id", sa.String(32), nullable=True),
        sa.Column("item_id", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_stock_logs_sku_created", "stock_logs", ["sku", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_stock_logs_sku_created", table_name="stock_logs")
    op.drop_table("stock_logs")
    op.drop_index("ix_return_records_decision_created", table_name="return_records")
    op.drop_index("ix_return_records_serial_number", table_name="return_records")
    op.drop_table("return_records")
    op.drop_index("ix_deliveries_serial_number", table_name="deliveries")
    op.drop_index("ix_deliveries_item_id", table_name="deliveries")
    op.drop_table("deliveries")
    op.drop_index("ix_serial_number_history_item", table_name="serial_number_history")
    op.drop_index("ix_serial_number_history_sn_date", table_name="serial_number_history")
    op.drop_table("serial_number_history")
    op.drop_index("ix_serial_number_items_sku_status", table_name="serial_number_items")
    op.drop_index("ix_serial_number_items_batch_status", table_name="serial_number_items")
    op.drop_table("serial_number_items")
    op.drop_index("ix_inventory_batches_source", table_name="inventory_batches")
    op.drop_index("ix_inventory_batches_sku", table_name="inventory_batches")
    op.drop_table("inventory_batches")
