"""
API依赖项 - 服务装配与调用方身份
"""
from functools import partial
from typing import Callable

from fastapi import Depends, Header, HTTPException, Request, status

from application.ports.audit import AuditSink
from application.ports.counter_store import CounterStore
from application.services.buyer_rate_limiter import BuyerRateLimiter
from application.services.payment_request_service import PaymentRequestApplicationService
from core.config import settings
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.adapters.audit_sink import SQLAlchemyAuditSink, StructlogAuditSink
from infrastructure.cache import InMemoryCounterStore, get_redis_counter_store
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


# 未配置 Redis 时的进程内回退（多实例部署下限流按实例生效）
_memory_counter_store = InMemoryCounterStore()


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return partial(
        SQLAlchemyUnitOfWork,
        statement_timeout_seconds=settings.payment_requests.transaction_timeout_seconds,
    )


def get_counter_store() -> CounterStore:
    return get_redis_counter_store() or _memory_counter_store


def get_audit_sink() -> AuditSink:
    if settings.payment_requests.audit_sink == "database":
        return SQLAlchemyAuditSink()
    return StructlogAuditSink()


async def get_payment_request_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    counter_store: CounterStore = Depends(get_counter_store),
    audit_sink: AuditSink = Depends(get_audit_sink),
) -> PaymentRequestApplicationService:
    rate_limiter = BuyerRateLimiter(
        counter_store,
        window_seconds=settings.payment_requests.buyer_rate_window_seconds,
    )
    return PaymentRequestApplicationService(
        uow_factory,
        rate_limiter=rate_limiter,
        audit_sink=audit_sink,
    )


async def get_current_merchant_id(
    x_merchant_id: str = Header(default="", alias="X-Merchant-ID"),
) -> str:
    """上游网关完成认证后透传的商户ID"""
    merchant_id = x_merchant_id.strip()
    if not merchant_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing merchant identity",
        )
    return merchant_id


def get_source_address(request: Request) -> str:
    """
    买家限流的来源地址：TCP 对端地址

    不读取 X-Forwarded-For 等请求头；部署在可信代理之后时由 uvicorn
    （proxy_headers + forwarded_allow_ips）改写 request.client。
    """
    return request.client.host if request.client else "unknown"
