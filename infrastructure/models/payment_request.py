"""
支付请求数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text,
    Index, ForeignKey, UniqueConstraint
)
from datetime import datetime, timezone

from .base import Base


class PaymentRequestModel(Base):
    """
    支付请求数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.payment_request.entity.PaymentRequest 中
    """
    __tablename__ = "payment_requests"

    # 主键
    id = Column(String(36), primary_key=True, comment="支付请求ID")

    # 订单标识
    merchant_id = Column(
        String(36),
        ForeignKey("merchants.id", ondelete="CASCADE"),
        nullable=False,
        comment="商户ID"
    )
    order_date = Column(String(8), nullable=False, comment="商户时区日期 YYYYMMDD")
    order_number = Column(Integer, nullable=False, comment="当日序号 1-9999")
    link_id = Column(String(128), nullable=False, comment="公开链接标识 slug/date/number")

    # 金额信息
    amount = Column(Numeric(precision=18, scale=2), nullable=False, comment="金额")
    currency = Column(String(3), nullable=False, comment="货币代码 ISO-4217")

    # 过期
    expiry_minutes = Column(Integer, nullable=False, comment="过期分钟数")
    expires_at = Column(DateTime(timezone=True), nullable=False, comment="过期时间")

    # 来源
    created_by = Column(String(16), nullable=False, comment="发起方: merchant/buyer")
    created_by_ip = Column(String(64), nullable=True, comment="买家IP")

    # 状态
    status = Column(String(16), nullable=False, default="PENDING", comment="生命周期: PENDING/EXPIRED/CANCELED")
    settlement_status = Column(String(32), nullable=False, default="PENDING", comment="结算状态")

    description = Column(Text, nullable=True, comment="描述")
    buyer_note = Column(Text, nullable=True, comment="买家备注")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    __table_args__ = (
        UniqueConstraint("link_id", name="uq_payment_requests_link_id"),
        UniqueConstraint("merchant_id", "order_date", "order_number", name="uq_payment_requests_merchant_order"),
        Index("ix_payment_requests_merchant_created", "merchant_id", "created_at"),
        Index("ix_payment_requests_merchant_status", "merchant_id", "status"),
    )

    def __repr__(self):
        return (
            f"<PaymentRequestModel(id='{self.id}', link_id='{self.link_id}', "
            f"status='{self.status}', settlement_status='{self.settlement_status}')>"
        )
