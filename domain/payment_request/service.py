"""
支付请求领域服务 - 处理创建与结算状态转换的业务逻辑
"""
from __future__ import annotations

import uuid
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from domain.common.clock import Clock, system_clock
from domain.common.exceptions import (
    DomainValidationException,
    MerchantSuspendedException,
    OrderConflictException,
    PaymentRequestNotFoundException,
)
from domain.common.timezones import TimezoneDateResolver, resolve_zone
from domain.merchant.entity import Merchant
from .allocation import OrderAllocator, QuotaGuard
from .entity import Actor, CreatedBy, PaymentRequest, SettlementStatus
from .events import PaymentRequestCreated, PaymentRequestExpired, SettlementStatusChanged
from .repository import PaymentRequestRepository
from .value_objects import MAX_ORDER_NUMBER


DEFAULT_ALLOWED_EXPIRY_MINUTES = (15, 30, 60, 120)
DEFAULT_EXPIRY_MINUTES = 60
DEFAULT_MAX_AMOUNT = Decimal("1000000000")


class CreationPolicy:
    """创建支付请求时的系统级参数"""

    def __init__(
        self,
        allowed_expiry_minutes: Iterable[int] = DEFAULT_ALLOWED_EXPIRY_MINUTES,
        default_expiry_minutes: int = DEFAULT_EXPIRY_MINUTES,
        max_amount: Decimal = DEFAULT_MAX_AMOUNT,
        max_orders_per_day: int = MAX_ORDER_NUMBER,
    ) -> None:
        self.allowed_expiry_minutes = tuple(allowed_expiry_minutes)
        self.default_expiry_minutes = default_expiry_minutes
        self.max_amount = Decimal(max_amount)
        self.max_orders_per_day = max_orders_per_day

    def resolve_expiry(self, merchant: Merchant, requested: Optional[int]) -> int:
        """请求值 -> 商户默认值 -> 系统默认值；结果必须在允许集合内"""
        allowed = tuple(merchant.allowed_expiry_minutes or self.allowed_expiry_minutes)
        effective = requested
        if effective is None:
            effective = merchant.default_payment_expiry_minutes or self.default_expiry_minutes
        if effective not in allowed:
            raise DomainValidationException(
                "Invalid expiry time. Must be one of "
                + ", ".join(str(m) for m in sorted(allowed))
                + " minutes",
                field="expiry_minutes",
                details={"allowed": sorted(allowed), "value": effective},
            )
        return effective

    def normalize_amount(self, amount) -> Decimal:
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
        except (InvalidOperation, ValueError, TypeError):
            raise DomainValidationException("Invalid amount format", field="amount")
        if not value.is_finite() or value <= 0:
            raise DomainValidationException(
                "Amount must be greater than zero", field="amount", details={"value": str(amount)}
            )
        if value > self.max_amount:
            raise DomainValidationException(
                "Amount exceeds maximum allowed",
                field="amount",
                details={"value": str(value), "max": str(self.max_amount)},
            )
        if value.as_tuple().exponent < -2:
            raise DomainValidationException(
                "Amount supports at most 2 decimal places", field="amount", details={"value": str(value)}
            )
        return value

    @staticmethod
    def normalize_currency(currency: Optional[str], merchant: Merchant) -> str:
        code = (currency or merchant.default_currency or "").strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise DomainValidationException(
                "Currency must be a 3-letter code", field="currency", details={"value": currency}
            )
        return code

    def validate(
        self,
        merchant: Merchant,
        amount,
        currency: Optional[str],
        expiry_minutes: Optional[int],
    ) -> Tuple[Decimal, str, int]:
        """无副作用的前置校验，可在开启事务之前调用；返回规范化后的 (金额, 币种, 过期分钟)"""
        if merchant.is_suspended:
            raise MerchantSuspendedException(merchant.id)
        resolve_zone(merchant.timezone)
        return (
            self.normalize_amount(amount),
            self.normalize_currency(currency, merchant),
            self.resolve_expiry(merchant, expiry_minutes),
        )


class PaymentRequestDomainService:
    """
    支付请求领域服务 - 编排复杂的业务流程

    职责：
    1. 创建前的业务校验（商户状态、金额、币种、过期时长）
    2. 在同一事务内完成配额校验、订单号分配与落库
    3. 结算状态转换与惰性过期写回
    4. 产生领域事件
    """

    def __init__(
        self,
        repository: PaymentRequestRepository,
        *,
        clock: Clock = system_clock,
        policy: Optional[CreationPolicy] = None,
    ):
        self.repository = repository
        self.clock = clock
        self.dates = TimezoneDateResolver(clock)
        self.policy = policy or CreationPolicy()
        self.allocator = OrderAllocator(repository, self.policy.max_orders_per_day)
        self.quota_guard = QuotaGuard(repository)
        self.events: List = []  # 领域事件收集

    async def create_payment_request(
        self,
        merchant: Merchant,
        *,
        amount,
        created_by: CreatedBy,
        currency: Optional[str] = None,
        description: Optional[str] = None,
        expiry_minutes: Optional[int] = None,
        created_by_ip: Optional[str] = None,
        buyer_note: Optional[str] = None,
    ) -> PaymentRequest:
        """
        创建支付请求（调用方负责提供事务边界）

        顺序：订单日期 -> 月度配额 -> 分配订单号 -> 生成 link_id -> 插入
        """
        value, code, expiry = self.policy.validate(merchant, amount, currency, expiry_minutes)
        now = self.dates.now()

        order_date = self.dates.current_order_date(merchant.timezone, at=now)
        await self.quota_guard.check_and_reserve(
            merchant.id, merchant.payment_link_monthly_limit, now, merchant.timezone
        )
        order_number = await self.allocator.allocate(merchant.id, order_date)

        payment_request = PaymentRequest.create(
            id=str(uuid.uuid4()),
            merchant_id=merchant.id,
            merchant_slug=merchant.slug,
            order_date=order_date,
            order_number=order_number,
            amount=value,
            currency=code,
            expiry_minutes=expiry,
            created_by=CreatedBy(created_by),
            now=now,
            description=description,
            created_by_ip=created_by_ip,
            buyer_note=buyer_note,
        )
        created = await self.repository.create(payment_request)

        self.events.append(PaymentRequestCreated(
            payment_request_id=created.id,
            merchant_id=created.merchant_id,
            actor=Actor.BUYER.value if created.created_by is CreatedBy.BUYER else Actor.MERCHANT.value,
            link_id=created.link_id,
            amount=str(created.amount),
            currency=created.currency,
            created_by=created.created_by.value,
        ))
        return created

    async def expire_if_due(self, payment_request: PaymentRequest) -> bool:
        """惰性过期写回；并发读者重复写回时只有一个生效"""
        now = self.clock.now()
        if not payment_request.is_expired(now):
            return False
        written = await self.repository.mark_expired(payment_request.id, now)
        payment_request.mark_expired(now)
        if written:
            self.events.append(PaymentRequestExpired(
                payment_request_id=payment_request.id,
                merchant_id=payment_request.merchant_id,
                actor=Actor.SYSTEM.value,
                expires_at=payment_request.expires_at,
            ))
        return written

    async def transition_settlement(
        self,
        payment_request_id: str,
        new_status: SettlementStatus,
        actor: Actor,
        *,
        merchant_id: Optional[str] = None,
        evidence: Optional[dict] = None,
    ) -> PaymentRequest:
        """
        结算状态转换

        业务规则：
        1. 支付请求必须存在；商户只能操作自己的支付请求
        2. 转换必须在状态图中且角色被允许
        3. 生命周期过期后不能再声明付款或取消
        """
        actor = Actor(actor)
        payment_request = await self.repository.get_by_id(payment_request_id, for_update=True)
        if payment_request is None:
            raise PaymentRequestNotFoundException(payment_request_id)
        if actor is Actor.MERCHANT and payment_request.merchant_id != merchant_id:
            raise PaymentRequestNotFoundException(payment_request_id)

        now = self.clock.now()
        was_expired = payment_request.is_expired(now)
        previous = payment_request.transition_settlement(new_status, actor, now)

        updated = await self.repository.update_state(payment_request, expected_settlement=previous)
        if not updated:
            raise OrderConflictException(
                "Payment request was modified concurrently. Please try again.",
                details={"payment_request_id": payment_request_id, "expected": previous.value},
            )

        if was_expired:
            self.events.append(PaymentRequestExpired(
                payment_request_id=payment_request.id,
                merchant_id=payment_request.merchant_id,
                actor=Actor.SYSTEM.value,
                expires_at=payment_request.expires_at,
            ))
        self.events.append(SettlementStatusChanged(
            payment_request_id=payment_request.id,
            merchant_id=payment_request.merchant_id,
            actor=actor.value,
            from_status=previous.value,
            to_status=payment_request.settlement_status.value,
            evidence=evidence,
        ))
        return payment_request

    def clear_events(self) -> List:
        """清空并返回领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
