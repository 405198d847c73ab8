# tests/services/test_serial_unique_violation.py
from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from snwms.services.serial_service import is_serial_unique_violation


class _Diag:
    def __init__(self, constraint_name):
        self.constraint_name = constraint_name


class _PgUniqueError(Exception):
    def __init__(self, constraint_name: str) -> None:
        super().__init__(
            f'duplicate key value violates unique constraint "{constraint_name}"'
        )
        self.diag = _Diag(constraint_name)


@pytest.mark.parametrize(
    "orig, expected",
    [
        (_PgUniqueError("uq_serial_number_items_serial_number"), True),
        (_PgUniqueError("uq_serial_number_items_batch_seq"), False),
        (Exception("UNIQUE constraint failed: serial_number_items.serial_number"), True),
        (
            Exception("UNIQUE constraint failed: serial_number_items.batch_id, serial_number_items.seq_no"),
            False,
        ),
        (Exception("NOT NULL constraint failed: serial_number_history.serial_number"), False),
    ],
)
def test_only_the_serial_unique_constraint_counts_as_duplicate(orig, expected):
    exc = IntegrityError("INSERT ...", {}, orig)
    assert is_serial_unique_violation(exc) is expected
