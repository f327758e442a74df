"""
支付请求领域实体 - 支付请求聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from domain.common.exceptions import (
    AlreadyExpiredException,
    DomainValidationException,
    InvalidTransitionException,
    TransitionNotPermittedException,
)
from .value_objects import MAX_ORDER_NUMBER, generate_link_id


class PaymentRequestStatus(str, Enum):
    """生命周期状态（过期在读取时惰性计算）"""
    PENDING = "PENDING"
    EXPIRED = "EXPIRED"
    CANCELED = "CANCELED"


class SettlementStatus(str, Enum):
    """结算状态（业务结果）"""
    PENDING = "PENDING"
    CLAIMED_PAID = "CLAIMED_PAID"    # 买家声明已付款
    PAID = "PAID"                    # 凭证/商户确认到账
    SETTLED = "SETTLED"              # 已对账结算
    REJECTED = "REJECTED"
    REISSUED = "REISSUED"
    CANCELED = "CANCELED"


class CreatedBy(str, Enum):
    MERCHANT = "merchant"
    BUYER = "buyer"


class Actor(str, Enum):
    MERCHANT = "MERCHANT"
    BUYER = "BUYER"
    SYSTEM = "SYSTEM"


S = SettlementStatus

# (from, to) -> 允许发起该转换的角色
SETTLEMENT_TRANSITIONS: Dict[Tuple[SettlementStatus, SettlementStatus], FrozenSet[Actor]] = {
    (S.PENDING, S.CLAIMED_PAID): frozenset({Actor.BUYER}),
    (S.PENDING, S.CANCELED): frozenset({Actor.BUYER, Actor.MERCHANT}),
    (S.PENDING, S.REJECTED): frozenset({Actor.MERCHANT, Actor.SYSTEM}),
    (S.CLAIMED_PAID, S.PAID): frozenset({Actor.MERCHANT, Actor.SYSTEM}),
    (S.CLAIMED_PAID, S.REJECTED): frozenset({Actor.MERCHANT}),
    (S.PAID, S.SETTLED): frozenset({Actor.MERCHANT, Actor.SYSTEM}),
    (S.PAID, S.REJECTED): frozenset({Actor.MERCHANT, Actor.SYSTEM}),
    (S.SETTLED, S.REISSUED): frozenset({Actor.MERCHANT}),
    (S.REJECTED, S.REISSUED): frozenset({Actor.MERCHANT}),
}

# 生命周期已过期后禁止的目标状态
BLOCKED_AFTER_EXPIRY: FrozenSet[SettlementStatus] = frozenset({S.CLAIMED_PAID, S.CANCELED})


def allowed_targets(current: SettlementStatus) -> Tuple[SettlementStatus, ...]:
    return tuple(to for (frm, to) in SETTLEMENT_TRANSITIONS if frm == current)


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class PaymentRequest:
    """
    支付请求聚合根

    业务规则：
    1. link_id 全局唯一，(merchant_id, order_date, order_number) 唯一
    2. order_number 取值 1-9999，创建后不可变
    3. 金额必须大于0，货币代码为3位字母
    4. created_by_ip 仅在买家发起时存在
    5. 结算状态转换必须遵循状态机及角色权限
    """

    id: str
    merchant_id: str
    order_date: str
    order_number: int
    link_id: str
    amount: Decimal
    currency: str
    expiry_minutes: int
    expires_at: datetime
    created_by: CreatedBy
    status: PaymentRequestStatus = PaymentRequestStatus.PENDING
    settlement_status: SettlementStatus = SettlementStatus.PENDING
    description: Optional[str] = None
    created_by_ip: Optional[str] = None
    buyer_note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """初始化后验证"""
        self.created_by = CreatedBy(self.created_by)
        self.status = PaymentRequestStatus(self.status)
        self.settlement_status = SettlementStatus(self.settlement_status)
        self._validate_amount()
        self._validate_currency()
        self._validate_order_number()
        if self.created_by is not CreatedBy.BUYER and self.created_by_ip:
            raise DomainValidationException(
                "created_by_ip is only recorded for buyer-initiated requests",
                field="created_by_ip",
            )
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.expires_at = _ensure_utc(self.expires_at)

    def _validate_amount(self) -> None:
        if self.amount is None or self.amount <= 0:
            raise DomainValidationException(
                f"Amount must be greater than zero: {self.amount}",
                field="amount",
            )

    def _validate_currency(self) -> None:
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"Currency must be a 3-letter code: {self.currency}",
                field="currency",
            )

    def _validate_order_number(self) -> None:
        if not 1 <= self.order_number <= MAX_ORDER_NUMBER:
            raise DomainValidationException(
                f"Order number must be between 1 and {MAX_ORDER_NUMBER}",
                field="order_number",
            )

    @classmethod
    def create(
        cls,
        *,
        id: str,
        merchant_id: str,
        merchant_slug: str,
        order_date: str,
        order_number: int,
        amount: Decimal,
        currency: str,
        expiry_minutes: int,
        created_by: CreatedBy,
        now: datetime,
        description: Optional[str] = None,
        created_by_ip: Optional[str] = None,
        buyer_note: Optional[str] = None,
    ) -> "PaymentRequest":
        """构建新的支付请求（status/settlement_status 均为 PENDING）"""
        now = _ensure_utc(now)
        return cls(
            id=id,
            merchant_id=merchant_id,
            order_date=order_date,
            order_number=order_number,
            link_id=generate_link_id(merchant_slug, order_date, order_number),
            amount=amount,
            currency=currency.upper(),
            expiry_minutes=expiry_minutes,
            expires_at=now + timedelta(minutes=expiry_minutes),
            created_by=created_by,
            status=PaymentRequestStatus.PENDING,
            settlement_status=SettlementStatus.PENDING,
            description=description,
            created_by_ip=created_by_ip if created_by is CreatedBy.BUYER else None,
            buyer_note=buyer_note,
            created_at=now,
            updated_at=now,
        )

    # ============= 惰性过期 =============

    def is_expired(self, now: datetime) -> bool:
        """PENDING 且当前时刻晚于 expires_at"""
        return self.status is PaymentRequestStatus.PENDING and _ensure_utc(now) > self.expires_at

    def effective_status(self, now: datetime) -> PaymentRequestStatus:
        if self.is_expired(now):
            return PaymentRequestStatus.EXPIRED
        return self.status

    def mark_expired(self, now: datetime) -> bool:
        """把惰性计算出的过期落到实体上；已处理过则返回 False"""
        if not self.is_expired(now):
            return False
        self.status = PaymentRequestStatus.EXPIRED
        self.updated_at = _ensure_utc(now)
        return True

    # ============= 结算状态机 =============

    def transition_settlement(
        self,
        new_status: SettlementStatus,
        actor: Actor,
        now: datetime,
    ) -> SettlementStatus:
        """
        结算状态转换，返回转换前的状态

        校验顺序：状态图 -> 角色权限 -> 生命周期过期
        """
        new_status = SettlementStatus(new_status)
        actor = Actor(actor)
        current = self.settlement_status

        permitted = SETTLEMENT_TRANSITIONS.get((current, new_status))
        if permitted is None:
            raise InvalidTransitionException(current.value, new_status.value)
        if actor not in permitted:
            raise TransitionNotPermittedException(actor.value, current.value, new_status.value)

        if new_status in BLOCKED_AFTER_EXPIRY and (
            self.status is PaymentRequestStatus.EXPIRED or self.is_expired(now)
        ):
            raise AlreadyExpiredException(new_status.value, self.expires_at.isoformat())

        self.mark_expired(now)
        self.settlement_status = new_status
        if new_status is SettlementStatus.CANCELED:
            self.status = PaymentRequestStatus.CANCELED
        self.updated_at = _ensure_utc(now)
        return current
