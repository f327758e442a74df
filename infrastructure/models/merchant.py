"""
商户数据库模型 - SQLAlchemy ORM模型
注意：商户数据由外部商户管理维护，本服务只读
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON
from datetime import datetime, timezone

from .base import Base


class MerchantModel(Base):
    """商户数据库模型"""
    __tablename__ = "merchants"

    id = Column(String(36), primary_key=True, comment="商户ID")
    slug = Column(String(64), unique=True, index=True, nullable=False, comment="URL 标识")
    timezone = Column(String(64), nullable=False, default="UTC", comment="IANA 时区名")
    default_currency = Column(String(3), nullable=False, default="USD", comment="默认货币")

    # 限额配置
    max_buyer_orders_per_hour = Column(Integer, nullable=False, default=1, comment="单IP每窗口买家下单上限")
    payment_link_monthly_limit = Column(Integer, nullable=False, default=0, comment="月度创建上限，0 表示不限")
    default_payment_expiry_minutes = Column(Integer, nullable=True, comment="默认过期分钟数")
    allowed_expiry_minutes = Column(JSON, nullable=True, comment="允许的过期分钟数列表")
    allow_unsolicited_payments = Column(Boolean, nullable=False, default=False, comment="是否允许买家主动发起")

    suspended_at = Column(DateTime(timezone=True), nullable=True, comment="暂停时间")
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self):
        return f"<MerchantModel(id='{self.id}', slug='{self.slug}', timezone='{self.timezone}')>"
