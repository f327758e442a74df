"""Pytest bootstrap configuration.

Ensure environment variables are set before test collection and module
imports that depend on application settings.
"""
import os

# 模块级 engine 在导入时创建（惰性连接），测试中不使用它
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///./.pytest-unused.db")
os.environ.setdefault("DEBUG", "false")

from datetime import datetime, timedelta, timezone
from functools import partial
from typing import List

import pytest
import pytest_asyncio

from application.services.buyer_rate_limiter import BuyerRateLimiter
from application.services.payment_request_service import PaymentRequestApplicationService
from core.config import PaymentRequestSettings
from domain.common.clock import Clock
from domain.payment_request.events import PaymentRequestEvent
from infrastructure.cache import InMemoryCounterStore
from infrastructure.database import build_engine, build_session_factory, create_tables
from infrastructure.models import MerchantModel
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


class FixedClock(Clock):
    """可手动拨动的时钟"""

    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **kwargs) -> None:
        self._now = self._now + timedelta(**kwargs)


class RecordingAuditSink:
    def __init__(self) -> None:
        self.events: List[PaymentRequestEvent] = []

    async def record(self, event: PaymentRequestEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [e.event_type for e in self.events]


MERCHANTS = [
    dict(id="m-utc", slug="utc-shop", timezone="UTC"),
    dict(id="m-tokyo", slug="tokyo-shop", timezone="Asia/Tokyo", default_currency="JPY"),
    dict(
        id="m-suspended",
        slug="closed-shop",
        timezone="UTC",
        suspended_at=datetime(2025, 10, 1, tzinfo=timezone.utc),
    ),
    dict(
        id="m-open",
        slug="open-shop",
        timezone="UTC",
        allow_unsolicited_payments=True,
        max_buyer_orders_per_hour=1,
    ),
    dict(id="m-quota", slug="quota-shop", timezone="UTC", payment_link_monthly_limit=2),
]


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 11, 6, 10, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def engine(tmp_path):
    # 文件库：并发测试需要多个连接看到同一份数据
    db_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}")
    await create_tables(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = build_session_factory(engine)
    async with factory() as session:
        async with session.begin():
            session.add_all([MerchantModel(**fields) for fields in MERCHANTS])
    return factory


@pytest.fixture
def uow_factory(session_factory):
    return partial(SQLAlchemyUnitOfWork, session_factory=session_factory)


@pytest.fixture
def counter_store(clock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock)


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def config() -> PaymentRequestSettings:
    return PaymentRequestSettings(
        max_create_attempts=20,
        retry_backoff_min_seconds=0.001,
        retry_backoff_max_seconds=0.05,
        transaction_timeout_seconds=30,
        payment_portal_url="https://pay.example.com/p",
    )


@pytest.fixture
def service(uow_factory, counter_store, audit_sink, clock, config) -> PaymentRequestApplicationService:
    return PaymentRequestApplicationService(
        uow_factory,
        rate_limiter=BuyerRateLimiter(counter_store, window_seconds=config.buyer_rate_window_seconds),
        audit_sink=audit_sink,
        clock=clock,
        config=config,
    )
