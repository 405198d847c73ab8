# tests/core/test_tx.py
from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from snwms.core.tx import TxManager, is_retryable
from snwms.models.batch import InventoryBatch
from snwms.services.errors import ConcurrencyConflict, InvalidInput
from tests.helpers.inventory import receive


class _PgError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


def test_is_retryable_classification():
    assert is_retryable(StaleDataError("version mismatch"))
    assert is_retryable(DBAPIError("UPDATE ...", {}, _PgError("40001")))
    assert is_retryable(DBAPIError("UPDATE ...", {}, _PgError("40P01")))
    assert is_retryable(OperationalError("UPDATE ...", {}, Exception("database is locked")))

    assert not is_retryable(IntegrityError("INSERT ...", {}, _PgError("23505")))
    assert not is_retryable(InvalidInput("bad"))
    assert not is_retryable(ValueError("boom"))


async def test_run_with_retry_replays_on_stale_data(async_session_maker):
    calls = []

    async def flaky(session, *, value):
        calls.append(session)
        if len(calls) == 1:
            raise StaleDataError("simulated concurrent update")
        return value

    result = await TxManager.run_with_retry(async_session_maker, flaky, op="test_op", max_retries=3, value=42)

    assert result == 42
    assert len(calls) == 2
    # 每次尝试都是新 Session
    assert calls[0] is not calls[1]


async def test_run_with_retry_gives_up_with_concurrency_conflict(async_session_maker):
    attempts = []

    async def always_stale(session):
        attempts.append(1)
        raise StaleDataError("simulated")

    with pytest.raises(ConcurrencyConflict) as ei:
        await TxManager.run_with_retry(async_session_maker, always_stale, op="test_op", max_retries=3)

    assert len(attempts) == 3
    assert ei.value.context == {"op": "test_op", "attempts": 3}
    assert isinstance(ei.value.__cause__, StaleDataError)


async def test_domain_errors_are_not_retried_and_roll_back(engine, async_session_maker):
    batch, _ = await receive(engine, quantity=2)
    attempts = []

    async def mutate_then_fail(session):
        attempts.append(1)
        b = (await session.execute(select(InventoryBatch).where(InventoryBatch.id == batch.id))).scalar_one()
        b.batch_notes = "should not persist"
        await session.flush()
        raise InvalidInput("rejected after write")

    with pytest.raises(InvalidInput):
        await TxManager.run_with_retry(async_session_maker, mutate_then_fail, op="test_op")

    assert len(attempts) == 1
    assert (await engine.get_batch(batch.id)).batch_notes is None
