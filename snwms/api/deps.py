# snwms/api/deps.py
from __future__ import annotations

from functools import lru_cache

from snwms.db.session import get_sessionmaker
from snwms.services.inventory_engine import InventoryEngine


@lru_cache
def get_engine() -> InventoryEngine:
    """FastAPI 依赖：进程内单例引擎（测试里用 dependency_overrides 替换）"""
    return InventoryEngine(get_sessionmaker())
