from decimal import Decimal

import pytest

from application.dto import PaginationParams
from application.dtos.payment_requests import CreatePaymentRequestDTO
from domain.common.exceptions import InvalidLinkIdException, PaymentRequestNotFoundException
from domain.payment_request import PaymentRequestStatus, SettlementStatus


def dto(expiry_minutes: int) -> CreatePaymentRequestDTO:
    return CreatePaymentRequestDTO(amount=Decimal("5.00"), currency="USD", expiry_minutes=expiry_minutes)


async def stored_status(uow_factory, payment_request_id: str) -> PaymentRequestStatus:
    async with uow_factory(readonly=True) as uow:
        pr = await uow.payment_request_repository.get_by_id(payment_request_id)
    return pr.status


@pytest.mark.asyncio
async def test_view_reports_expired_and_writes_back_once(service, clock, uow_factory, audit_sink):
    created = await service.create_payment_request("m-utc", dto(15))

    clock.advance(minutes=15)
    view = await service.get_by_link_id(created.link_id)
    assert view.status == "PENDING"

    clock.advance(seconds=1)
    view = await service.get_by_link_id(created.link_id)
    assert view.status == "EXPIRED"
    assert view.settlement_status == "PENDING"
    assert await stored_status(uow_factory, created.id) is PaymentRequestStatus.EXPIRED

    await service.get_by_link_id(created.link_id)
    assert audit_sink.types().count("PAYMENT_REQUEST_EXPIRED") == 1


@pytest.mark.asyncio
async def test_list_filters_apply_lazy_expiry(service, clock, uow_factory):
    old = await service.create_payment_request("m-utc", dto(15))
    clock.advance(minutes=10)
    fresh = await service.create_payment_request("m-utc", dto(60))
    clock.advance(minutes=10)

    params = PaginationParams(page=1, size=20)
    expired = await service.list_payment_requests("m-utc", params, status=PaymentRequestStatus.EXPIRED)
    pending = await service.list_payment_requests("m-utc", params, status=PaymentRequestStatus.PENDING)
    everything = await service.list_payment_requests("m-utc", params)

    assert [item.id for item in expired.items] == [old.id]
    assert expired.items[0].status == "EXPIRED"
    assert [item.id for item in pending.items] == [fresh.id]
    # 按创建时间倒序
    assert [item.id for item in everything.items] == [fresh.id, old.id]
    assert everything.total == 2
    # 列表只读，不写回
    assert await stored_status(uow_factory, old.id) is PaymentRequestStatus.PENDING


@pytest.mark.asyncio
async def test_list_pagination_and_settlement_filter(service):
    ids = [(await service.create_payment_request("m-utc", dto(60))).id for _ in range(3)]
    await service.transition_settlement(ids[0], SettlementStatus.CANCELED, "MERCHANT", merchant_id="m-utc")

    page = await service.list_payment_requests("m-utc", PaginationParams(page=2, size=2))
    assert page.total == 3
    assert page.pages == 2
    assert len(page.items) == 1

    canceled = await service.list_payment_requests(
        "m-utc", PaginationParams(page=1, size=10), settlement_status=SettlementStatus.CANCELED
    )
    assert [item.id for item in canceled.items] == [ids[0]]
    assert canceled.items[0].status == "CANCELED"


@pytest.mark.asyncio
async def test_merchant_cannot_read_other_merchants_request(service):
    created = await service.create_payment_request("m-utc", dto(60))
    with pytest.raises(PaymentRequestNotFoundException):
        await service.get_payment_request("m-tokyo", created.id)


@pytest.mark.asyncio
async def test_link_lookup_errors(service):
    with pytest.raises(InvalidLinkIdException):
        await service.get_by_link_id("utc-shop/2025-11-06/0001")
    with pytest.raises(PaymentRequestNotFoundException):
        await service.get_by_link_id("utc-shop/20251106/0042")
