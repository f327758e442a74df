"""
内部API路由 - 结算上报方（SYSTEM 角色）使用，仅在内网暴露
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_payment_request_service
from application.dtos.payment_requests import PaymentRequestDTO, SystemSettlementTransitionDTO
from application.services.payment_request_service import PaymentRequestApplicationService
from core.response import Response as ApiResponse, success_response
from domain.payment_request.entity import Actor

router = APIRouter(
    prefix="/internal",
    tags=["内部"]
)


@router.post(
    "/payment-requests/{payment_request_id}/settlement",
    summary="上报结算状态",
    response_model=ApiResponse[PaymentRequestDTO],
)
async def report_settlement(
    payment_request_id: str,
    data: SystemSettlementTransitionDTO,
    service: PaymentRequestApplicationService = Depends(get_payment_request_service),
):
    """evidence（如交易哈希）随审计记录保存"""
    view = await service.transition_settlement(
        payment_request_id,
        data.status,
        Actor.SYSTEM,
        evidence=data.evidence,
    )
    return success_response(data=view, message="Settlement status updated")
