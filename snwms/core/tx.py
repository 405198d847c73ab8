# snwms/core/tx.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from snwms.obs.metrics import tx_retries_total
from snwms.services.errors import ConcurrencyConflict

log = logging.getLogger("snwms.tx")

T = TypeVar("T")

# PG: serialization_failure / deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


@asynccontextmanager
async def tx_commit(session: AsyncSession):
    """
    Commit 事务：正常 begin/commit；异常时整体回滚。
    """
    async with session.begin():
        yield


def is_retryable(exc: BaseException) -> bool:
    """
    判断是否属于“并发冲突”类错误（可整体重放事务）：
      - StaleDataError：version_id 乐观锁未命中
      - PG 40001 / 40P01
      - SQLite "database is locked"
    业务异常一律不可重试。
    """
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate in _RETRYABLE_SQLSTATES:
            return True
        if isinstance(exc, OperationalError) and "database is locked" in str(orig).lower():
            return True
    return False


class TxManager:
    """
    统一的事务执行器：每次调用独占一个 Session 与一个事务。
    Handler 内部不得控事务。
    """

    @staticmethod
    async def run_with_retry(
        session_factory: Callable[[], AsyncSession],
        fn: Callable[..., Awaitable[T]],
        *,
        op: str,
        max_retries: int = 3,
        **kwargs: Any,
    ) -> T:
        """
        一次业务操作 = 一个事务；冲突时开新 Session 整体重放：

        - 每次尝试都是独立 Session + 独立事务，失败即整体回滚，不留部分写入；
        - 仅 is_retryable() 命中的错误重放，其余异常原样上抛；
        - 重试耗尽 → ConcurrencyConflict。
        """
        attempt = 0
        while True:
            attempt += 1
            async with session_factory() as session:
                try:
                    async with tx_commit(session):
                        return await fn(session=session, **kwargs)
                except Exception as e:
                    if not is_retryable(e):
                        raise
                    if attempt >= max_retries:
                        log.warning("tx conflict on %s, giving up after %d attempts: %s", op, attempt, e)
                        raise ConcurrencyConflict(
                            f"{op} conflicted with a concurrent update, please retry",
                            context={"op": op, "attempts": attempt},
                        ) from e
                    tx_retries_total.labels(op).inc()
                    log.warning("tx conflict on %s (attempt %d/%d), retrying: %s", op, attempt, max_retries, e)
