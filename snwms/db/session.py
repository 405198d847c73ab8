# snwms/db/session.py
# 统一的异步引擎 / 会话工厂（DSN 归一 + 进程内单例）
from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from snwms.core.config import get_settings


def _strip_quotes(url: str) -> str:
    # 有些环境会把值写成 '"postgresql+psycopg://.../snwms"'，这里统一剥掉两侧引号
    url = (url or "").strip()
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()
    return url


# ---- DSN 归一：sync → psycopg3；async → psycopg3 / aiosqlite ----
def normalize_sync_dsn(url: str) -> str:
    url = _strip_quotes(url)
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("sqlite+aiosqlite://"):
        return "sqlite://" + url[len("sqlite+aiosqlite://") :]
    return url


def normalize_async_dsn(url: str) -> str:
    url = _strip_quotes(url)
    if url.startswith("sqlite+aiosqlite://"):
        return url
    # sqlite:/// → sqlite+aiosqlite:///
    if url.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + url[len("sqlite://") :]
    return normalize_sync_dsn(url)


def _engine_kwargs(url: str, *, echo: bool) -> dict[str, Any]:
    """
    后端专属参数：
    - PostgreSQL: pool_pre_ping
    - SQLite: 仅 check_same_thread
    """
    kwargs: dict[str, Any] = {"echo": echo}
    backend = make_url(url).get_backend_name()
    if backend.startswith("postgresql"):
        kwargs["pool_pre_ping"] = True
    elif backend.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


def create_engine_for(url: str, *, echo: bool = False, **extra: Any) -> AsyncEngine:
    async_url = normalize_async_dsn(url)
    kwargs = _engine_kwargs(async_url, echo=echo)
    kwargs.update(extra)
    return create_async_engine(async_url, **kwargs)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False：事务提交后返回的 ORM 对象仍可读
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@lru_cache
def get_async_engine() -> AsyncEngine:
    settings = get_settings()
    return create_engine_for(settings.DATABASE_URL, echo=settings.SQL_ECHO)


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return make_sessionmaker(get_async_engine())


# ---- 关闭引擎（测试/生命周期） ----
async def close_engines() -> None:
    if get_async_engine.cache_info().currsize:
        await get_async_engine().dispose()
