"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Optional, Callable
import inspect

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import OrderConflictException
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.database import AsyncSessionLocal, is_transient_conflict, sqlstate_of
from infrastructure.repositories.merchant_repository import SQLAlchemyMerchantDirectory
from infrastructure.repositories.payment_request_repository import (
    SQLAlchemyPaymentRequestRepository,
    is_order_conflict,
)


logger = get_logger(__name__)


def _as_conflict(exc: BaseException) -> Optional[OrderConflictException]:
    """把可重试的数据库错误转为领域冲突异常，其余返回 None"""
    if isinstance(exc, IntegrityError):
        if not is_order_conflict(exc):
            return None
    elif not (isinstance(exc, DBAPIError) and is_transient_conflict(exc)):
        return None
    logger.info("transaction_conflict", sqlstate=sqlstate_of(exc), error=exc.__class__.__name__)
    return OrderConflictException(details={"sqlstate": sqlstate_of(exc)})


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """基于SQLAlchemy的Unit of Work"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        session: Optional[AsyncSession] = None,
        *,
        readonly: bool = False,
        isolation_level: Optional[str] = None,
        statement_timeout_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(readonly=readonly, isolation_level=isolation_level)
        self._session_factory = session_factory
        self._external_session = session
        self._statement_timeout_seconds = statement_timeout_seconds
        self.session: Optional[AsyncSession] = session

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        if self.session is None:
            self.session = self._session_factory()
        self.payment_request_repository = SQLAlchemyPaymentRequestRepository(self.session)
        self.merchant_directory = SQLAlchemyMerchantDirectory(self.session)
        # 仅在非只读模式下显式开启事务
        if not self._readonly:
            try:
                self._transaction = await self.session.begin()
                await self._configure_transaction()
            except BaseException as exc:
                await self.__aexit__(type(exc), exc, exc.__traceback__)
                raise
        return self

    async def _configure_transaction(self) -> None:
        """首次获取连接时设置隔离级别；PostgreSQL 额外限制语句耗时

        SQLite 的写事务由引擎以 BEGIN IMMEDIATE 开启，已经串行，不再切换隔离级别。
        """
        bind = self.session.bind
        dialect_name = bind.dialect.name if bind is not None else None
        options = None
        if self._isolation_level and dialect_name != "sqlite":
            options = {"isolation_level": self._isolation_level}
        conn = await self.session.connection(execution_options=options)
        if self._statement_timeout_seconds and conn.dialect.name == "postgresql":
            timeout_ms = int(self._statement_timeout_seconds * 1000)
            await conn.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            # 事务在 commit/rollback 后通常会结束，这里仅在仍然活动时做安全关闭
            tx = getattr(self, "_transaction", None)
            if tx is not None and getattr(tx, "is_active", False):
                close = getattr(tx, "close", None)
                if callable(close):
                    res = close()
                    if inspect.isawaitable(res):
                        await res
            if self._external_session is None and self.session is not None:
                await self.session.close()
                self.session = None
            self.payment_request_repository = None
            self.merchant_directory = None
        if exc is not None:
            conflict = _as_conflict(exc)
            if conflict is not None:
                raise conflict from exc

    async def commit(self) -> None:
        if self._readonly:
            # 只读情况下不提交
            self._committed = True
            return
        if self.session and self.session.in_transaction():
            try:
                await self.session.commit()
            except DBAPIError as exc:
                conflict = _as_conflict(exc)
                if conflict is None:
                    raise
                await self.rollback()
                raise conflict from exc
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False
