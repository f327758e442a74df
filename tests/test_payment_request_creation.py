import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from functools import partial

import pytest
from sqlalchemy import select

from application.dtos.payment_requests import CreatePaymentRequestDTO
from application.services.buyer_rate_limiter import BuyerRateLimiter
from application.services.payment_request_service import PaymentRequestApplicationService
from domain.common.exceptions import (
    DailyLimitExceededException,
    DomainValidationException,
    MerchantNotFoundException,
    MerchantSuspendedException,
    MonthlyQuotaExceededException,
)
from domain.payment_request import CreatedBy, PaymentRequest
from infrastructure.adapters.audit_sink import SQLAlchemyAuditSink
from infrastructure.models.audit_log import AuditLogModel
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def dto(**overrides) -> CreatePaymentRequestDTO:
    fields = dict(amount=Decimal("25.00"), currency="usd", expiry_minutes=30)
    fields.update(overrides)
    return CreatePaymentRequestDTO(**fields)


async def count_rows(uow_factory, merchant_id: str) -> int:
    async with uow_factory(readonly=True) as uow:
        return await uow.payment_request_repository.count_by_merchant(
            merchant_id, now=datetime.now(timezone.utc)
        )


@pytest.mark.asyncio
async def test_first_order_of_the_day_is_one(service, audit_sink):
    created = await service.create_payment_request("m-utc", dto())

    assert created.order_date == "20251106"
    assert created.order_number == 1
    assert created.link_id == "utc-shop/20251106/0001"
    assert created.payment_url == "https://pay.example.com/p/utc-shop/20251106/0001"
    assert created.currency == "USD"
    assert created.expires_at == datetime(2025, 11, 6, 10, 30, tzinfo=timezone.utc)
    assert audit_sink.types() == ["PAYMENT_REQUEST_CREATED"]


@pytest.mark.asyncio
async def test_sequence_is_dense_and_resets_next_day(service, clock):
    numbers = [(await service.create_payment_request("m-utc", dto())).order_number for _ in range(3)]
    assert numbers == [1, 2, 3]

    clock.advance(days=1)
    created = await service.create_payment_request("m-utc", dto())
    assert created.order_date == "20251107"
    assert created.order_number == 1


@pytest.mark.asyncio
async def test_order_date_uses_merchant_timezone(service, clock):
    clock.set(datetime(2025, 11, 6, 15, 1, tzinfo=timezone.utc))
    created = await service.create_payment_request("m-tokyo", dto(currency=None))

    assert created.link_id == "tokyo-shop/20251107/0001"
    assert created.currency == "JPY"


@pytest.mark.asyncio
async def test_sequences_are_per_merchant(service):
    a = await service.create_payment_request("m-utc", dto())
    b = await service.create_payment_request("m-quota", dto())
    assert a.order_number == b.order_number == 1


@pytest.mark.asyncio
async def test_concurrent_creates_get_distinct_numbers(service, uow_factory):
    results = await asyncio.gather(*[service.create_payment_request("m-utc", dto()) for _ in range(5)])

    assert sorted(r.order_number for r in results) == [1, 2, 3, 4, 5]
    assert len({r.link_id for r in results}) == 5
    assert await count_rows(uow_factory, "m-utc") == 5


@pytest.mark.asyncio
async def test_concurrent_creates_respect_monthly_quota(service, uow_factory):
    results = await asyncio.gather(
        *[service.create_payment_request("m-quota", dto()) for _ in range(6)],
        return_exceptions=True,
    )

    created = [r for r in results if not isinstance(r, BaseException)]
    rejected = [r for r in results if isinstance(r, MonthlyQuotaExceededException)]
    assert sorted(r.order_number for r in created) == [1, 2]
    assert len(rejected) == 4
    assert await count_rows(uow_factory, "m-quota") == 2


@pytest.mark.asyncio
async def test_daily_limit_exceeded(service, uow_factory, clock):
    async with uow_factory() as uow:
        await uow.payment_request_repository.create(PaymentRequest.create(
            id="seed-9999",
            merchant_id="m-utc",
            merchant_slug="utc-shop",
            order_date="20251106",
            order_number=9999,
            amount=Decimal("1.00"),
            currency="USD",
            expiry_minutes=15,
            created_by=CreatedBy.MERCHANT,
            now=clock.now(),
        ))

    with pytest.raises(DailyLimitExceededException):
        await service.create_payment_request("m-utc", dto())
    assert await count_rows(uow_factory, "m-utc") == 1


@pytest.mark.asyncio
async def test_monthly_quota(service, clock, uow_factory):
    await service.create_payment_request("m-quota", dto())
    await service.create_payment_request("m-quota", dto())

    with pytest.raises(MonthlyQuotaExceededException) as exc_info:
        await service.create_payment_request("m-quota", dto())
    assert exc_info.value.details == {"limit": 2, "current": 2}
    assert await count_rows(uow_factory, "m-quota") == 2

    # 下一个自然月重新计数
    clock.set(datetime(2025, 12, 1, 0, 0, 1, tzinfo=timezone.utc))
    created = await service.create_payment_request("m-quota", dto())
    assert created.order_number == 1


@pytest.mark.asyncio
async def test_suspended_merchant_cannot_create(service, uow_factory):
    with pytest.raises(MerchantSuspendedException):
        await service.create_payment_request("m-suspended", dto())
    assert await count_rows(uow_factory, "m-suspended") == 0


@pytest.mark.asyncio
async def test_unknown_merchant(service):
    with pytest.raises(MerchantNotFoundException):
        await service.create_payment_request("m-missing", dto())


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"expiry_minutes": 45}, "expiry_minutes"),
        ({"amount": Decimal("0")}, "amount"),
        ({"amount": Decimal("1.999")}, "amount"),
        ({"currency": "EURO"}, "currency"),
    ],
)
async def test_invalid_input_rejected_without_side_effects(service, uow_factory, audit_sink, overrides, field):
    with pytest.raises(DomainValidationException) as exc_info:
        await service.create_payment_request("m-utc", dto(**overrides))
    assert exc_info.value.field == field
    assert await count_rows(uow_factory, "m-utc") == 0
    assert audit_sink.events == []


@pytest.mark.asyncio
async def test_audit_failure_does_not_fail_creation(uow_factory, counter_store, clock, config):
    class BrokenAuditSink:
        async def record(self, event):
            raise RuntimeError("audit store unavailable")

    service = PaymentRequestApplicationService(
        uow_factory,
        rate_limiter=BuyerRateLimiter(counter_store),
        audit_sink=BrokenAuditSink(),
        clock=clock,
        config=config,
    )
    created = await service.create_payment_request("m-utc", dto())
    assert created.order_number == 1
    assert await count_rows(uow_factory, "m-utc") == 1


@pytest.mark.asyncio
async def test_database_audit_sink_stores_created_event(uow_factory, session_factory, counter_store, clock, config):
    service = PaymentRequestApplicationService(
        uow_factory,
        rate_limiter=BuyerRateLimiter(counter_store),
        audit_sink=SQLAlchemyAuditSink(session_factory),
        clock=clock,
        config=config,
    )
    created = await service.create_payment_request("m-utc", dto())

    async with session_factory() as session:
        rows = (await session.execute(select(AuditLogModel))).scalars().all()

    assert len(rows) == 1
    row = rows[0]
    assert row.event_type == "PAYMENT_REQUEST_CREATED"
    assert row.payment_request_id == created.id
    assert row.merchant_id == "m-utc"
    assert row.actor == "MERCHANT"
    assert row.payload["link_id"] == created.link_id
    assert row.payload["currency"] == created.currency
    assert row.payload["created_by"] == "merchant"
    assert Decimal(row.payload["amount"]) == Decimal("25.00")


class SlowCommitUnitOfWork(SQLAlchemyUnitOfWork):
    """提交落库后再拖延，模拟提交确认迟迟未返回"""

    async def commit(self) -> None:
        await super().commit()
        if not self._readonly:
            await asyncio.sleep(1.0)


@pytest.mark.asyncio
async def test_slow_commit_is_not_timed_out_and_retried(session_factory, uow_factory, counter_store, clock, config):
    service = PaymentRequestApplicationService(
        partial(SlowCommitUnitOfWork, session_factory=session_factory),
        rate_limiter=BuyerRateLimiter(counter_store),
        clock=clock,
        config=config.model_copy(update={"transaction_timeout_seconds": 0.5}),
    )

    created = await service.create_payment_request("m-utc", dto())

    assert created.order_number == 1
    assert await count_rows(uow_factory, "m-utc") == 1
