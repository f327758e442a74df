"""
Payment request DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import ConfigDict, Field, field_validator

from application.dto import DTOBase
from domain.payment_request.entity import PaymentRequestStatus, SettlementStatus


class CreatePaymentRequestDTO(DTOBase):
    """商户发起的支付请求"""
    amount: Decimal = Field(..., description="金额，最多两位小数")
    currency: Optional[str] = Field(default=None, description="ISO-4217 货币代码，缺省为商户默认货币")
    description: Optional[str] = Field(default=None, max_length=500)
    expiry_minutes: Optional[int] = Field(default=None, description="过期分钟数，缺省为商户/系统默认值")

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().upper() or None


class BuyerCreatePaymentRequestDTO(CreatePaymentRequestDTO):
    """买家主动发起的支付请求"""
    buyer_note: Optional[str] = Field(default=None, max_length=500)


class PaymentRequestCreatedDTO(DTOBase):
    id: str
    link_id: str
    order_date: str
    order_number: int
    amount: Decimal
    currency: str
    expires_at: datetime
    payment_url: str


class PaymentRequestDTO(DTOBase):
    """支付请求视图（status 已按惰性过期计算）"""
    id: str
    merchant_id: str
    link_id: str
    order_date: str
    order_number: int
    amount: Decimal
    currency: str
    description: Optional[str] = None
    expiry_minutes: int
    expires_at: datetime
    status: PaymentRequestStatus
    settlement_status: SettlementStatus
    created_by: str
    buyer_note: Optional[str] = None
    created_by_ip: Optional[str] = None
    payment_url: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(use_enum_values=True)


class PublicPaymentRequestDTO(DTOBase):
    """买家可见的支付请求视图"""
    link_id: str
    amount: Decimal
    currency: str
    description: Optional[str] = None
    expires_at: datetime
    status: PaymentRequestStatus
    settlement_status: SettlementStatus
    created_at: datetime

    model_config = ConfigDict(use_enum_values=True, from_attributes=True)


class SettlementTransitionDTO(DTOBase):
    status: SettlementStatus = Field(..., description="目标结算状态")


class SystemSettlementTransitionDTO(SettlementTransitionDTO):
    evidence: Optional[dict[str, Any]] = Field(default=None, description="结算凭证（如交易哈希）")


class PaymentRequestPageDTO(DTOBase):
    items: List[PaymentRequestDTO]
    total: int
    page: int
    size: int
    pages: int
