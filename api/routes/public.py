"""
买家公开API路由 - 通过商户 slug 与 linkId 访问
"""
from fastapi import APIRouter, Depends, status

from api.dependencies import get_payment_request_service, get_source_address
from application.dtos.payment_requests import (
    BuyerCreatePaymentRequestDTO,
    PaymentRequestCreatedDTO,
    PublicPaymentRequestDTO,
)
from application.services.payment_request_service import PaymentRequestApplicationService
from core.response import Response as ApiResponse, success_response
from domain.payment_request.entity import SettlementStatus

router = APIRouter(
    prefix="/public",
    tags=["买家支付"]
)


def _link_id(slug: str, order_date: str, order_number: str) -> str:
    return f"{slug}/{order_date}/{order_number}"


@router.post(
    "/{slug}/payment-requests",
    summary="买家发起支付请求",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[PaymentRequestCreatedDTO],
)
async def create_buyer_payment_request(
    slug: str,
    data: BuyerCreatePaymentRequestDTO,
    source_address: str = Depends(get_source_address),
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    """商户需开启 allow_unsolicited_payments；同一来源地址按商户配置限流"""
    created = await service.create_buyer_payment_request(slug, data, source_address)
    return success_response(data=created, message="Payment request created")


@router.get(
    "/payment/{slug}/{order_date}/{order_number}",
    summary="按链接查看支付请求",
    response_model=ApiResponse[PublicPaymentRequestDTO],
)
async def get_by_link_id(
    slug: str,
    order_date: str,
    order_number: str,
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    view = await service.get_by_link_id(_link_id(slug, order_date, order_number))
    return success_response(data=PublicPaymentRequestDTO.model_validate(view, from_attributes=True))


@router.post(
    "/payment/{slug}/{order_date}/{order_number}/claim",
    summary="买家声明已付款",
    response_model=ApiResponse[PublicPaymentRequestDTO],
)
async def claim_paid(
    slug: str,
    order_date: str,
    order_number: str,
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    view = await service.transition_by_link_id(
        _link_id(slug, order_date, order_number), SettlementStatus.CLAIMED_PAID
    )
    return success_response(data=PublicPaymentRequestDTO.model_validate(view, from_attributes=True))


@router.post(
    "/payment/{slug}/{order_date}/{order_number}/cancel",
    summary="买家取消",
    response_model=ApiResponse[PublicPaymentRequestDTO],
)
async def cancel(
    slug: str,
    order_date: str,
    order_number: str,
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    view = await service.transition_by_link_id(
        _link_id(slug, order_date, order_number), SettlementStatus.CANCELED
    )
    return success_response(data=PublicPaymentRequestDTO.model_validate(view, from_attributes=True))
