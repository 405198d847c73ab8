# snwms/db/base.py
from __future__ import annotations

import importlib
import logging
from typing import Iterable, List

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("snwms.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False  # 防重复初始化

_MODEL_MODULES = [
    "snwms.models.batch",
    "snwms.models.unit",
    "snwms.models.history",
    "snwms.models.delivery",
    "snwms.models.return_record",
    "snwms.models.stock_log",
]


def init_models(*, extra_modules: Iterable[str] | None = None, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射，保证 Base.metadata 完整（create_all / Alembic 使用）。
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    loaded: List[str] = []
    for mod in [*_MODEL_MODULES, *(extra_modules or [])]:
        importlib.import_module(mod)
        loaded.append(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(loaded))
