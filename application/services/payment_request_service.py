"""
支付请求应用服务（application/services）- 编排领域服务、事务边界与外部协作方

创建流程：
1. 读取商户并做无副作用校验（暂停/金额/币种/过期时长）
2. 买家发起时检查是否允许主动付款、检查限流（只读）
3. SERIALIZABLE 事务内：配额 -> 分配订单号 -> 插入；冲突或超时整体重试
4. 提交后：记录限流消耗、写审计
"""
from __future__ import annotations

import asyncio
from typing import Callable, Iterable, List, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from application.dto import PaginationParams
from application.dtos.payment_requests import (
    BuyerCreatePaymentRequestDTO,
    CreatePaymentRequestDTO,
    PaymentRequestCreatedDTO,
    PaymentRequestDTO,
    PaymentRequestPageDTO,
)
from application.ports.audit import AuditSink
from application.services.buyer_rate_limiter import BuyerRateLimiter
from core.config import PaymentRequestSettings, settings
from core.logging_config import get_logger
from domain.common.clock import Clock, system_clock
from domain.common.exceptions import (
    BuyerRateLimitExceededException,
    MerchantNotFoundException,
    OrderConflictException,
    PaymentRequestNotFoundException,
    UnsolicitedPaymentsDisabledException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.merchant.entity import Merchant
from domain.payment_request.entity import (
    Actor,
    CreatedBy,
    PaymentRequest,
    PaymentRequestStatus,
    SettlementStatus,
)
from domain.payment_request.events import PaymentRequestEvent
from domain.payment_request.service import CreationPolicy, PaymentRequestDomainService
from domain.payment_request.value_objects import LinkId


logger = get_logger(__name__)

CREATE_ISOLATION_LEVEL = "SERIALIZABLE"


class PaymentRequestApplicationService:
    """支付请求应用服务 - 处理应用层逻辑"""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        rate_limiter: BuyerRateLimiter,
        audit_sink: Optional[AuditSink] = None,
        clock: Clock = system_clock,
        config: Optional[PaymentRequestSettings] = None,
    ):
        self._uow_factory = uow_factory
        self._rate_limiter = rate_limiter
        self._audit_sink = audit_sink
        self._clock = clock
        self._config = config or settings.payment_requests
        self._policy = CreationPolicy(
            allowed_expiry_minutes=self._config.allowed_expiry_minutes,
            default_expiry_minutes=self._config.default_expiry_minutes,
            max_amount=self._config.max_amount,
            max_orders_per_day=self._config.max_orders_per_day,
        )

    def _domain_service(self, uow: AbstractUnitOfWork) -> PaymentRequestDomainService:
        return PaymentRequestDomainService(
            uow.payment_request_repository,
            clock=self._clock,
            policy=self._policy,
        )

    # ============= 创建 =============

    async def create_payment_request(
        self,
        merchant_id: str,
        data: CreatePaymentRequestDTO,
    ) -> PaymentRequestCreatedDTO:
        """商户发起创建"""
        merchant = await self._load_merchant(merchant_id=merchant_id)
        self._policy.validate(merchant, data.amount, data.currency, data.expiry_minutes)

        created = await self._create_with_retry(
            merchant,
            amount=data.amount,
            currency=data.currency,
            description=data.description,
            expiry_minutes=data.expiry_minutes,
            created_by=CreatedBy.MERCHANT,
        )
        return self._to_created_dto(created)

    async def create_buyer_payment_request(
        self,
        slug: str,
        data: BuyerCreatePaymentRequestDTO,
        source_address: str,
    ) -> PaymentRequestCreatedDTO:
        """买家按商户 slug 主动发起创建"""
        merchant = await self._load_merchant(slug=slug)
        self._policy.validate(merchant, data.amount, data.currency, data.expiry_minutes)
        if not merchant.allow_unsolicited_payments:
            raise UnsolicitedPaymentsDisabledException(merchant.id)

        decision = await self._rate_limiter.try_consume(
            merchant.id, source_address, merchant.max_buyer_orders_per_hour
        )
        if not decision.allowed:
            raise BuyerRateLimitExceededException(
                limit=decision.limit,
                current=decision.current,
                retry_after=decision.retry_after,
            )

        created = await self._create_with_retry(
            merchant,
            amount=data.amount,
            currency=data.currency,
            description=data.description,
            expiry_minutes=data.expiry_minutes,
            created_by=CreatedBy.BUYER,
            created_by_ip=source_address,
            buyer_note=data.buyer_note,
        )

        try:
            await self._rate_limiter.record_consumption(merchant.id, source_address)
        except Exception:
            # 事务已提交，计数失败只记录，不影响创建结果
            logger.exception(
                "buyer_rate_record_failed",
                merchant_id=merchant.id,
                source_address=source_address,
                payment_request_id=created.id,
            )
        return self._to_created_dto(created)

    async def _load_merchant(self, *, merchant_id: Optional[str] = None, slug: Optional[str] = None) -> Merchant:
        async with self._uow_factory(readonly=True) as uow:
            if merchant_id is not None:
                merchant = await uow.merchant_directory.get_by_id(merchant_id)
            else:
                merchant = await uow.merchant_directory.get_by_slug(slug or "")
        if merchant is None:
            raise MerchantNotFoundException(merchant_id or slug or "")
        return merchant

    async def _create_with_retry(self, merchant: Merchant, **fields) -> PaymentRequest:
        """冲突（唯一约束/序列化失败）或事务超时时整体重试，重新读取最大订单号"""
        cfg = self._config
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(cfg.max_create_attempts),
            wait=wait_random_exponential(
                multiplier=cfg.retry_backoff_min_seconds,
                max=cfg.retry_backoff_max_seconds,
            ),
            retry=retry_if_exception_type((OrderConflictException, asyncio.TimeoutError)),
            before_sleep=self._log_retry(merchant.id),
        )

        try:
            async for attempt in retrying:
                with attempt:
                    created, events = await self._create_once(merchant, **fields)
        except (OrderConflictException, asyncio.TimeoutError) as exc:
            logger.warning(
                "order_conflict_exhausted",
                merchant_id=merchant.id,
                attempts=cfg.max_create_attempts,
                error=str(exc) or exc.__class__.__name__,
            )
            raise OrderConflictException(
                details={"attempts": cfg.max_create_attempts, "merchant_id": merchant.id}
            ) from exc

        logger.info(
            "payment_request_created",
            payment_request_id=created.id,
            merchant_id=created.merchant_id,
            link_id=created.link_id,
            created_by=created.created_by.value,
        )
        await self._publish(events)
        return created

    async def _create_once(self, merchant: Merchant, **fields) -> Tuple[PaymentRequest, List[PaymentRequestEvent]]:
        async with self._uow_factory(isolation_level=CREATE_ISOLATION_LEVEL) as uow:
            domain_service = self._domain_service(uow)
            # 超时只覆盖提交前的读与插入，提交本身不被取消
            created = await asyncio.wait_for(
                domain_service.create_payment_request(merchant, **fields),
                timeout=self._config.transaction_timeout_seconds,
            )
            events = domain_service.clear_events()
        return created, events

    @staticmethod
    def _log_retry(merchant_id: str) -> Callable[[RetryCallState], None]:
        def _before_sleep(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.info(
                "order_conflict_retry",
                merchant_id=merchant_id,
                attempt=retry_state.attempt_number,
                error=exc.__class__.__name__ if exc else None,
            )
        return _before_sleep

    # ============= 查询 =============

    async def get_by_link_id(self, link_id: str) -> PaymentRequestDTO:
        """按 link_id 读取（惰性过期并幂等写回）"""
        parsed = LinkId.parse(link_id)
        async with self._uow_factory() as uow:
            payment_request = await uow.payment_request_repository.get_by_link_id(parsed.value)
            if payment_request is None:
                raise PaymentRequestNotFoundException(parsed.value)
            domain_service = self._domain_service(uow)
            await domain_service.expire_if_due(payment_request)
            events = domain_service.clear_events()
        await self._publish(events)
        return self._to_dto(payment_request)

    async def get_payment_request(self, merchant_id: str, payment_request_id: str) -> PaymentRequestDTO:
        """商户读取自己的支付请求"""
        async with self._uow_factory() as uow:
            payment_request = await uow.payment_request_repository.get_by_id(payment_request_id)
            if payment_request is None or payment_request.merchant_id != merchant_id:
                raise PaymentRequestNotFoundException(payment_request_id)
            domain_service = self._domain_service(uow)
            await domain_service.expire_if_due(payment_request)
            events = domain_service.clear_events()
        await self._publish(events)
        return self._to_dto(payment_request)

    async def list_payment_requests(
        self,
        merchant_id: str,
        pagination: PaginationParams,
        *,
        status: Optional[PaymentRequestStatus] = None,
        settlement_status: Optional[SettlementStatus] = None,
    ) -> PaymentRequestPageDTO:
        """商户支付请求列表（按创建时间倒序）"""
        now = self._clock.now()
        async with self._uow_factory(readonly=True) as uow:
            repo = uow.payment_request_repository
            items = await repo.list_by_merchant(
                merchant_id,
                now=now,
                status=status,
                settlement_status=settlement_status,
                skip=pagination.skip,
                limit=pagination.limit,
            )
            total = await repo.count_by_merchant(
                merchant_id, now=now, status=status, settlement_status=settlement_status
            )

        size = pagination.size
        return PaymentRequestPageDTO(
            items=[self._to_dto(item, now) for item in items],
            total=total,
            page=pagination.page,
            size=size,
            pages=(total + size - 1) // size if size > 0 else 0,
        )

    # ============= 结算状态 =============

    async def transition_settlement(
        self,
        payment_request_id: str,
        new_status: SettlementStatus,
        actor: Actor,
        *,
        merchant_id: Optional[str] = None,
        evidence: Optional[dict] = None,
    ) -> PaymentRequestDTO:
        """按ID转换结算状态（商户/系统）"""
        async with self._uow_factory() as uow:
            domain_service = self._domain_service(uow)
            payment_request = await domain_service.transition_settlement(
                payment_request_id,
                new_status,
                actor,
                merchant_id=merchant_id,
                evidence=evidence,
            )
            events = domain_service.clear_events()
        self._log_transition(payment_request, events)
        await self._publish(events)
        return self._to_dto(payment_request)

    async def transition_by_link_id(self, link_id: str, new_status: SettlementStatus) -> PaymentRequestDTO:
        """买家通过公开链接转换结算状态（声明已付款/取消）"""
        parsed = LinkId.parse(link_id)
        async with self._uow_factory() as uow:
            existing = await uow.payment_request_repository.get_by_link_id(parsed.value)
            if existing is None:
                raise PaymentRequestNotFoundException(parsed.value)
            domain_service = self._domain_service(uow)
            payment_request = await domain_service.transition_settlement(
                existing.id, new_status, Actor.BUYER
            )
            events = domain_service.clear_events()
        self._log_transition(payment_request, events)
        await self._publish(events)
        return self._to_dto(payment_request)

    @staticmethod
    def _log_transition(payment_request: PaymentRequest, events: Iterable[PaymentRequestEvent]) -> None:
        for event in events:
            if event.event_type == "PAYMENT_REQUEST_SETTLEMENT_CHANGED":
                logger.info(
                    "settlement_status_changed",
                    payment_request_id=payment_request.id,
                    merchant_id=payment_request.merchant_id,
                    actor=event.actor,
                    **event.payload(),
                )

    # ============= 审计 =============

    async def _publish(self, events: Iterable[PaymentRequestEvent]) -> None:
        """事务提交后写审计；失败只记录日志，不回滚也不向上抛出"""
        if self._audit_sink is None:
            return
        for event in events:
            try:
                await self._audit_sink.record(event)
            except Exception:
                logger.exception(
                    "audit_record_failed",
                    event_type=event.event_type,
                    event_id=event.event_id,
                    payment_request_id=event.payment_request_id,
                )

    # ============= 转换 =============

    def _payment_url(self, link_id: str) -> str:
        return f"{self._config.payment_portal_url.rstrip('/')}/{link_id}"

    def _to_created_dto(self, payment_request: PaymentRequest) -> PaymentRequestCreatedDTO:
        return PaymentRequestCreatedDTO(
            id=payment_request.id,
            link_id=payment_request.link_id,
            order_date=payment_request.order_date,
            order_number=payment_request.order_number,
            amount=payment_request.amount,
            currency=payment_request.currency,
            expires_at=payment_request.expires_at,
            payment_url=self._payment_url(payment_request.link_id),
        )

    def _to_dto(self, payment_request: PaymentRequest, now=None) -> PaymentRequestDTO:
        now = now or self._clock.now()
        return PaymentRequestDTO(
            id=payment_request.id,
            merchant_id=payment_request.merchant_id,
            link_id=payment_request.link_id,
            order_date=payment_request.order_date,
            order_number=payment_request.order_number,
            amount=payment_request.amount,
            currency=payment_request.currency,
            description=payment_request.description,
            expiry_minutes=payment_request.expiry_minutes,
            expires_at=payment_request.expires_at,
            status=payment_request.effective_status(now),
            settlement_status=payment_request.settlement_status,
            created_by=payment_request.created_by.value,
            buyer_note=payment_request.buyer_note,
            created_by_ip=payment_request.created_by_ip,
            payment_url=self._payment_url(payment_request.link_id),
            created_at=payment_request.created_at,
            updated_at=payment_request.updated_at,
        )
