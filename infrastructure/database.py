"""
数据库配置和连接管理
"""
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from core.config import settings
from infrastructure.models import Base


# 序列化失败 / 死锁 / 语句超时被取消
TRANSIENT_SQLSTATES = {"40001", "40P01", "57014"}
_TRANSIENT_MESSAGES = ("database is locked", "could not serialize access", "deadlock detected")


def _build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "postgresql": "postgresql+asyncpg",
        "postgres": "postgresql+asyncpg",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"不支持的数据库驱动: {drivername}. 请使用 async 驱动或更新 DATABASE__URL")

    return url.set(drivername=driver_map[drivername]).render_as_string(hide_password=False)


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """
    接管 SQLite 的事务开启

    pysqlite 默认延迟到第一条写语句才发 BEGIN，之前的读（配额计数、最大订单号）
    落在事务之外。关闭驱动的隐式 BEGIN，改为事务开始时立即获取写锁，
    使读-判断-写整体串行。
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """创建异步引擎；SQLite 等待写锁而不是立即报 locked"""
    async_url = _build_async_url(database_url)
    is_sqlite = make_url(async_url).get_backend_name() == "sqlite"
    connect_args = {"timeout": 30} if is_sqlite else {}
    db_engine = create_async_engine(async_url, echo=echo, future=True, connect_args=connect_args)
    if is_sqlite:
        _use_immediate_transactions(db_engine)
    return db_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, expire_on_commit=False)


engine = build_engine(settings.database.url, echo=settings.database.echo)

# 创建异步会话工厂
AsyncSessionLocal = build_session_factory(engine)


def sqlstate_of(exc: DBAPIError) -> Optional[str]:
    """从驱动异常中提取 SQLSTATE（asyncpg 包装在 __cause__ 上）"""
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_transient_conflict(exc: DBAPIError) -> bool:
    """序列化冲突、死锁、锁等待超时等可整体重试的数据库错误"""
    if sqlstate_of(exc) in TRANSIENT_SQLSTATES:
        return True
    msg = str(getattr(exc, "orig", None) or exc).lower()
    return any(marker in msg for marker in _TRANSIENT_MESSAGES)


async def create_tables(bind: Optional[AsyncEngine] = None):
    """
    创建所有表

    根据models中定义的所有模型创建对应的数据库表
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(bind: Optional[AsyncEngine] = None):
    """
    删除所有表

    警告：仅用于测试环境，会删除所有数据！
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
