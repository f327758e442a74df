from decimal import Decimal

import pytest

from application.dtos.payment_requests import BuyerCreatePaymentRequestDTO
from domain.common.exceptions import (
    BuyerRateLimitExceededException,
    DomainValidationException,
    MerchantNotFoundException,
    UnsolicitedPaymentsDisabledException,
)


def buyer_dto(**overrides) -> BuyerCreatePaymentRequestDTO:
    fields = dict(amount=Decimal("9.99"), expiry_minutes=60, buyer_note="table 4")
    fields.update(overrides)
    return BuyerCreatePaymentRequestDTO(**fields)


@pytest.mark.asyncio
async def test_buyer_create_records_source_and_consumption(service, counter_store):
    created = await service.create_buyer_payment_request("open-shop", buyer_dto(), "1.2.3.4")

    assert created.link_id == "open-shop/20251106/0001"
    view = await service.get_payment_request("m-open", created.id)
    assert view.created_by == "buyer"
    assert view.created_by_ip == "1.2.3.4"
    assert view.buyer_note == "table 4"
    assert await counter_store.get("buyer-orders:m-open:1.2.3.4") == 1


@pytest.mark.asyncio
async def test_buyer_rate_limit_per_source_address(service, clock):
    await service.create_buyer_payment_request("open-shop", buyer_dto(), "1.2.3.4")

    with pytest.raises(BuyerRateLimitExceededException) as exc_info:
        await service.create_buyer_payment_request("open-shop", buyer_dto(), "1.2.3.4")
    assert exc_info.value.details == {"limit": 1, "current": 1, "retry_after": 3600}

    other = await service.create_buyer_payment_request("open-shop", buyer_dto(), "5.6.7.8")
    assert other.order_number == 2

    # 窗口结束后重新放行
    clock.advance(seconds=3600)
    again = await service.create_buyer_payment_request("open-shop", buyer_dto(), "1.2.3.4")
    assert again.order_number == 3


@pytest.mark.asyncio
async def test_failed_create_does_not_consume_rate(service, counter_store):
    with pytest.raises(DomainValidationException):
        await service.create_buyer_payment_request("open-shop", buyer_dto(expiry_minutes=7), "1.2.3.4")
    assert await counter_store.get("buyer-orders:m-open:1.2.3.4") is None

    created = await service.create_buyer_payment_request("open-shop", buyer_dto(), "1.2.3.4")
    assert created.order_number == 1


@pytest.mark.asyncio
async def test_unsolicited_payments_disabled(service, counter_store):
    with pytest.raises(UnsolicitedPaymentsDisabledException):
        await service.create_buyer_payment_request("utc-shop", buyer_dto(), "1.2.3.4")
    assert await counter_store.get("buyer-orders:m-utc:1.2.3.4") is None


@pytest.mark.asyncio
async def test_unknown_slug(service):
    with pytest.raises(MerchantNotFoundException):
        await service.create_buyer_payment_request("nobody", buyer_dto(), "1.2.3.4")


@pytest.mark.asyncio
async def test_counter_failure_after_commit_is_not_raised(service, counter_store, monkeypatch):
    async def broken_increment(key, ttl_seconds):
        raise ConnectionError("redis down")

    monkeypatch.setattr(counter_store, "increment", broken_increment)
    created = await service.create_buyer_payment_request("open-shop", buyer_dto(), "1.2.3.4")
    assert created.order_number == 1
