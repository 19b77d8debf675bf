"""
数据库连接管理
提供异步数据库连接和会话管理
"""

import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool
from sqlalchemy import text, event
from typing import AsyncGenerator

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _create_engine():
    """根据连接串创建异步引擎（SQLite 内存库共享单连接）"""
    if settings.db_is_sqlite:
        return create_async_engine(
            settings.db_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False}
        )
    return create_async_engine(
        settings.db_url,
        echo=False,  # 禁用 SQL 详细输出，避免日志过多
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20
    )


engine = _create_engine()


if settings.db_is_sqlite:
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        """SQLite 默认不校验外键，需逐连接开启"""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# 会话工厂
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)


class Base(DeclarativeBase):
    """模型基类"""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """获取数据库会话（依赖注入用）"""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def ensure_database_exists():
    """确保 MySQL 数据库存在，如果不存在则尝试创建"""
    if settings.db_is_sqlite or settings.database_url:
        return

    admin_url = settings.db_url.rsplit("/", 1)[0]
    admin_engine = create_async_engine(admin_url, echo=False)
    try:
        async with admin_engine.connect() as conn:
            result = await conn.execute(
                text("SELECT SCHEMA_NAME FROM INFORMATION_SCHEMA.SCHEMATA WHERE SCHEMA_NAME = :name"),
                {"name": settings.db_name}
            )
            if result.fetchone() is None:
                logger.info(f"数据库 '{settings.db_name}' 不存在，正在创建...")
                await conn.execute(text(
                    f"CREATE DATABASE `{settings.db_name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
                ))
                await conn.commit()
                logger.info(f"数据库 '{settings.db_name}' 创建成功")
            else:
                logger.debug(f"数据库 '{settings.db_name}' 已存在")
    except Exception as e:
        if "Access denied" in str(e):
            logger.error(f"用户 '{settings.db_user}' 没有创建数据库的权限，请手动创建 {settings.db_name}")
        else:
            logger.error(f"检查/创建数据库失败: {e}")
        raise
    finally:
        await admin_engine.dispose()


async def init_db():
    """初始化数据库（创建所有表，已存在的表跳过）"""
    await ensure_database_exists()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug(f"数据库表初始化完成（共 {len(Base.metadata.sorted_tables)} 张表）")


async def close_db():
    """关闭数据库连接"""
    await engine.dispose()
