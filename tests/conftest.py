# tests/conftest.py
from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from snwms.api.deps import get_engine
from snwms.core.config import AppSettings
from snwms.db.base import Base, init_models
from snwms.db.session import create_engine_for, make_sessionmaker
from snwms.main import app
from snwms.services.inventory_engine import InventoryEngine

init_models()


# =========================================
# 每用例独立 SQLite 文件库（NullPool，避免跨 loop）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine_for(f"sqlite:///{tmp_path / 'snwms.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_sessionmaker(async_engine)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """裸 Session：需要绕过引擎直接驱动服务层时使用"""
    async with async_session_maker() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


@pytest.fixture(scope="function")
def settings() -> AppSettings:
    return AppSettings(
        DATABASE_URL="sqlite+aiosqlite://",
        TX_MAX_RETRIES=3,
        LOW_STOCK_THRESHOLD=5,
        NEW_RETURN_SKU_PREFIX="NEW-RETURN",
    )


@pytest.fixture(scope="function")
def engine(async_session_maker, settings: AppSettings) -> InventoryEngine:
    return InventoryEngine(async_session_maker, settings=settings)


# =========================================
# FastAPI / httpx AsyncClient（引擎依赖替换为测试库）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(engine: InventoryEngine) -> AsyncGenerator[httpx.AsyncClient, None]:
    app.dependency_overrides[get_engine] = lambda: engine
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
        ) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_engine, None)
