# snwms/models/_defaults.py
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

UTC = timezone.utc


def new_id() -> str:
    """不透明主键：uuid4 hex"""
    return uuid4().hex


def utc_now() -> datetime:
    return datetime.now(UTC)
