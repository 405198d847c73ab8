# snwms/services/inventory_engine.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from snwms.core.config import AppSettings, get_settings
from snwms.core.tx import TxManager
from snwms.models.batch import InventoryBatch
from snwms.models.delivery import Delivery
from snwms.models.enums import ReturnDecision, ReturnStatus
from snwms.models.history import SerialNumberHistory
from snwms.models.return_record import ReturnRecord
from snwms.models.stock_log import StockLog
from snwms.models.unit import SerialNumberItem
from snwms.obs.metrics import inventory_ops_total
from snwms.schemas.returns import ReturnIntakeIn
from snwms.schemas.serial import BulkAssignResult, SerialAssignment
from snwms.services import (
    consistency,
    delivery_service,
    inventory_query_service as queries,
    receiving_service,
    reservation_service,
    return_service,
    serial_service,
)
from snwms.services.batch_repo import get_batch
from snwms.services.errors import InventoryError
from snwms.services.unit_repo import get_unit

logger = logging.getLogger("snwms.engine")

T = TypeVar("T")


class InventoryEngine:
    """
    库存一致性引擎（对外唯一入口）：

    - 每个写操作 = 一次 TxManager.run_with_retry = 一个事务：
      单件 / 批次计数器 / 履历 / 流水 同进同退；
    - 冲突（乐观锁 / 序列化失败）整体重放，业务异常原样上抛；
    - 批量赋码是唯一例外：逐条一个事务，部分失败不回滚已成功条目；
    - 读操作走独立只读 Session。

    返回的 ORM 对象已脱离 Session（expire_on_commit=False），只读使用。
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or get_settings()

    # ---------------- 内部：事务 / 计数 ---------------- #

    async def _write(self, op: str, fn: Callable[..., Awaitable[T]], **kwargs: Any) -> T:
        try:
            result = await TxManager.run_with_retry(
                self._session_factory,
                fn,
                op=op,
                max_retries=self._settings.TX_MAX_RETRIES,
                **kwargs,
            )
        except InventoryError as e:
            inventory_ops_total.labels(op, e.code).inc()
            logger.info("%s rejected [%s]: %s", op, e.code, e.message)
            raise
        inventory_ops_total.labels(op, "ok").inc()
        return result

    async def _read(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async with self._session_factory() as session:
            return await fn(session, *args, **kwargs)

    # ---------------- 收货 / 赋码 ---------------- #

    async def receive_batch(
        self,
        *,
        sku: str,
        product_name: str,
        quantity: int,
        actor: str,
        source_reference: str = "",
        serial_numbers: Optional[Sequence[str]] = None,
        notes: Optional[str] = None,
    ) -> InventoryBatch:
        return await self._write(
            "receive_batch",
            receiving_service.receive_batch,
            sku=sku,
            product_name=product_name,
            quantity=quantity,
            actor=actor,
            source_reference=source_reference,
            serial_numbers=serial_numbers,
            notes=notes,
        )

    async def assign_serial_number(self, *, unit_id: str, serial_number: str, actor: str) -> SerialNumberItem:
        return await self._write(
            "assign_serial_number",
            serial_service.assign_serial_number,
            unit_id=unit_id,
            serial_number=serial_number,
            actor=actor,
        )

    async def bulk_assign_serial_numbers(
        self, *, items: Sequence[SerialAssignment], actor: str
    ) -> BulkAssignResult:
        result = BulkAssignResult()
        for item in items:
            try:
                await self.assign_serial_number(
                    unit_id=item.unit_id, serial_number=item.serial_number, actor=actor
                )
            except InventoryError as e:
                result.failed += 1
                result.errors.append(f"{item.unit_id}: {e.message}")
            else:
                result.successful += 1
        logger.info(
            "bulk assign by %s: %d ok, %d failed", actor, result.successful, result.failed
        )
        return result

    # ---------------- 预占 ---------------- #

    async def reserve(
        self, *, batch_id: str, quantity: int, actor: str, notes: Optional[str] = None
    ) -> List[SerialNumberItem]:
        return await self._write(
            "reserve",
            reservation_service.reserve,
            batch_id=batch_id,
            quantity=quantity,
            actor=actor,
            notes=notes,
        )

    async def release_reservation(
        self, *, unit_ids: Sequence[str], actor: str, notes: Optional[str] = None
    ) -> List[SerialNumberItem]:
        return await self._write(
            "release_reservation",
            reservation_service.release_reservation,
            unit_ids=list(unit_ids),
            actor=actor,
            notes=notes,
        )

    # ---------------- 发货 ---------------- #

    async def deliver(
        self,
        *,
        actor: str,
        batch_id: Optional[str] = None,
        unit_id: Optional[str] = None,
        serial_number: Optional[str] = None,
        shipping_label_data: Optional[Dict[str, Any]] = None,
        customer_info: Optional[Dict[str, Any]] = None,
    ) -> Delivery:
        return await self._write(
            "deliver",
            delivery_service.deliver,
            actor=actor,
            batch_id=batch_id,
            unit_id=unit_id,
            serial_number=serial_number,
            shipping_label_data=shipping_label_data,
            customer_info=customer_info,
        )

    # ---------------- 退货 ---------------- #

    async def intake_return(self, form: ReturnIntakeIn) -> ReturnRecord:
        return await self._write(
            "intake_return",
            return_service.intake_return,
            form=form,
            actor=form.actor,
            sku_prefix=self._settings.NEW_RETURN_SKU_PREFIX,
        )

    async def create_return_with_serial_number(self, form: ReturnIntakeIn) -> ReturnRecord:
        return await self._write(
            "create_return_with_serial_number",
            return_service.create_return_with_serial_number,
            form=form,
            actor=form.actor,
        )

    async def create_return_for_new_product(self, form: ReturnIntakeIn) -> ReturnRecord:
        return await self._write(
            "create_return_for_new_product",
            return_service.create_return_for_new_product,
            form=form,
            actor=form.actor,
            sku_prefix=self._settings.NEW_RETURN_SKU_PREFIX,
        )

    async def make_return_decision(
        self,
        *,
        return_id: str,
        decision: ReturnDecision,
        actor: str,
        notes: Optional[str] = None,
    ) -> ReturnRecord:
        return await self._write(
            "make_return_decision",
            return_service.make_return_decision,
            return_id=return_id,
            decision=decision,
            actor=actor,
            notes=notes,
        )

    async def move_return_to_inventory(self, *, return_id: str, actor: str) -> ReturnRecord:
        return await self.make_return_decision(
            return_id=return_id, decision=ReturnDecision.MOVE_TO_INVENTORY, actor=actor
        )

    async def mark_return_processed(self, *, return_id: str, actor: str) -> ReturnRecord:
        return await self._write(
            "mark_return_processed",
            return_service.mark_return_processed,
            return_id=return_id,
            actor=actor,
        )

    # ---------------- 只读投影 ---------------- #

    async def get_batch(self, batch_id: str) -> InventoryBatch:
        return await self._read(get_batch, batch_id)

    async def get_unit(self, unit_id: str) -> SerialNumberItem:
        return await self._read(get_unit, unit_id)

    async def get_delivery(self, delivery_id: str) -> Delivery:
        return await self._read(queries.get_delivery, delivery_id)

    async def get_return(self, return_id: str) -> ReturnRecord:
        return await self._read(return_service.get_return, return_id)

    async def validate_serial_number(self, serial_number: str) -> Dict[str, Any]:
        return await self._read(queries.validate_serial_number, serial_number)

    async def can_serial_number_be_returned(self, serial_number: str) -> Dict[str, Any]:
        return await self._read(queries.can_serial_number_be_returned, serial_number)

    async def get_serial_number_history(self, serial_number: str) -> List[SerialNumberHistory]:
        return await self._read(queries.serial_number_history, serial_number)

    async def get_delivery_history_for_item(self, unit_id: str) -> List[Delivery]:
        return await self._read(queries.delivery_history_for_item, unit_id)

    async def get_items_by_batch(self, batch_id: str) -> List[SerialNumberItem]:
        return await self._read(queries.items_by_batch, batch_id)

    async def get_available_items_for_delivery(self, sku: str) -> List[SerialNumberItem]:
        return await self._read(queries.available_items_for_delivery, sku)

    async def get_items_needing_serial_numbers(self, batch_id: Optional[str] = None) -> List[SerialNumberItem]:
        return await self._read(queries.items_needing_serial_numbers, batch_id)

    async def search_inventory(self, term: str) -> List[SerialNumberItem]:
        return await self._read(queries.search_inventory, term)

    async def get_inventory_stats(self) -> Dict[str, Any]:
        return await self._read(queries.get_inventory_stats)

    async def get_inventory_summary_by_sku(self) -> List[Dict[str, Any]]:
        return await self._read(queries.summary_by_sku)

    async def get_low_stock_skus(self, threshold: Optional[int] = None) -> List[Dict[str, Any]]:
        if threshold is None:
            threshold = self._settings.LOW_STOCK_THRESHOLD
        return await self._read(queries.low_stock_skus, threshold)

    async def get_pending_returns(self) -> List[ReturnRecord]:
        return await self._read(queries.pending_returns)

    async def get_returns_by_serial_number(self, serial_number: str) -> List[ReturnRecord]:
        return await self._read(queries.returns_by_serial_number, serial_number)

    async def get_returns_by_status(self, status: ReturnStatus) -> List[ReturnRecord]:
        return await self._read(queries.returns_by_status, status)

    async def get_returns_by_item(self, unit_id: str) -> List[ReturnRecord]:
        return await self._read(queries.returns_by_item, unit_id)

    async def search_returns(self, term: str) -> List[ReturnRecord]:
        return await self._read(queries.search_returns, term)

    async def get_return_statistics(self) -> Dict[str, Any]:
        return await self._read(queries.return_statistics)

    async def list_stock_logs(self, *, sku: Optional[str] = None, limit: int = 100) -> List[StockLog]:
        return await self._read(queries.list_stock_logs, sku=sku, limit=limit)

    async def check_consistency(self, batch_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._read(consistency.check_consistency, batch_id)
