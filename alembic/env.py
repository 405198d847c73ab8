# alembic/env.py
from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection
from sqlalchemy.pool import NullPool

# Alembic 基本配置
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# 延迟加载模型（避免导入时机引发的问题）
from snwms.core.config import get_settings  # noqa: E402
from snwms.db.base import Base, init_models  # noqa: E402
from snwms.db.session import normalize_sync_dsn  # noqa: E402


def include_object(
    obj: Any, name: str | None, type_: str, reflected: bool, compare_to: Any
) -> bool:
    """
    DB 里有、模型里没有的对象（reflected=True 且 compare_to=None）不参与 diff，
    避免 autogenerate 生成莫名其妙的 drop。
    """
    if reflected and compare_to is None:
        return False
    return True


def get_url() -> str:
    """
    优先级：
      1. alembic.ini / -x 覆盖的 sqlalchemy.url（非空时）
      2. AppSettings.DATABASE_URL（环境变量 / .env）

    统一走同步 psycopg3 / sqlite 驱动。
    """
    url = config.get_main_option("sqlalchemy.url") or get_settings().DATABASE_URL
    if not url:
        raise RuntimeError("Alembic 无法确定数据库 URL：请设置 DATABASE_URL 或 sqlalchemy.url")
    return normalize_sync_dsn(url)


def run_migrations_offline() -> None:
    """
    Offline 模式：不真实连库，只生成 SQL。
    """
    init_models()
    context.configure(
        url=get_url(),
        target_metadata=Base.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=False,
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Online 模式：真实连库执行迁移。
    """
    init_models()
    url = get_url()
    engine = create_engine(url, poolclass=NullPool, future=True)

    with engine.connect() as connection:  # type: Connection
        context.configure(
            connection=connection,
            target_metadata=Base.metadata,
            compare_type=True,
            compare_server_default=False,
            include_object=include_object,
            # sqlite 不支持 ALTER 约束，走 batch 模式
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
