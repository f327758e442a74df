"""
商户支付请求API路由 - FastAPI表现层
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import get_current_merchant_id, get_payment_request_service
from application.dto import PaginationParams
from application.dtos.payment_requests import (
    CreatePaymentRequestDTO,
    PaymentRequestCreatedDTO,
    PaymentRequestDTO,
    SettlementTransitionDTO,
)
from application.services.payment_request_service import PaymentRequestApplicationService
from core.config import settings
from core.response import PaginatedData, Response as ApiResponse, paginated_response, success_response
from domain.payment_request.entity import Actor, PaymentRequestStatus, SettlementStatus

router = APIRouter(
    prefix="/payment-requests",
    tags=["支付请求"]
)


@router.post(
    "",
    summary="创建支付请求",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[PaymentRequestCreatedDTO],
)
async def create_payment_request(
    data: CreatePaymentRequestDTO,
    merchant_id: str = Depends(get_current_merchant_id),
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    """
    商户创建支付请求

    - **amount**: 金额（大于0，最多两位小数）
    - **currency**: 货币代码（可选，缺省为商户默认货币）
    - **description**: 描述（可选）
    - **expiry_minutes**: 过期分钟数（可选，必须在允许集合内）
    """
    created = await service.create_payment_request(merchant_id, data)
    return success_response(data=created, message="Payment request created")


@router.get("", summary="支付请求列表", response_model=ApiResponse[PaginatedData[PaymentRequestDTO]])
async def list_payment_requests(
    status_filter: Optional[PaymentRequestStatus] = Query(None, alias="status", description="生命周期状态"),
    settlement_status: Optional[SettlementStatus] = Query(None, description="结算状态"),
    page: int = Query(1, ge=1, description="页码"),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="每页大小"),
    merchant_id: str = Depends(get_current_merchant_id),
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    """按创建时间倒序分页；status=EXPIRED 包含已过期但尚未写回的记录"""
    result = await service.list_payment_requests(
        merchant_id,
        PaginationParams(page=page, size=size),
        status=status_filter,
        settlement_status=settlement_status,
    )
    return paginated_response(items=result.items, total=result.total, page=result.page, size=result.size)


@router.get("/{payment_request_id}", summary="获取支付请求", response_model=ApiResponse[PaymentRequestDTO])
async def get_payment_request(
    payment_request_id: str,
    merchant_id: str = Depends(get_current_merchant_id),
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    view = await service.get_payment_request(merchant_id, payment_request_id)
    return success_response(data=view)


@router.post(
    "/{payment_request_id}/settlement",
    summary="更新结算状态",
    response_model=ApiResponse[PaymentRequestDTO],
)
async def transition_settlement(
    payment_request_id: str,
    data: SettlementTransitionDTO,
    merchant_id: str = Depends(get_current_merchant_id),
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    """商户确认到账、结算、拒绝、重新开具或取消"""
    view = await service.transition_settlement(
        payment_request_id,
        data.status,
        Actor.MERCHANT,
        merchant_id=merchant_id,
    )
    return success_response(data=view, message="Settlement status updated")
