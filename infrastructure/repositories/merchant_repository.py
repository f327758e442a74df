"""
商户目录实现 - 只读访问 merchants 表
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.merchant.entity import Merchant
from domain.merchant.repository import MerchantDirectory
from infrastructure.models.merchant import MerchantModel


class SQLAlchemyMerchantDirectory(MerchantDirectory):
    """商户目录的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: MerchantModel) -> Merchant:
        """将数据库模型转换为领域实体"""
        allowed = model.allowed_expiry_minutes
        return Merchant(
            id=model.id,
            slug=model.slug,
            timezone=model.timezone,
            default_currency=model.default_currency,
            max_buyer_orders_per_hour=model.max_buyer_orders_per_hour,
            payment_link_monthly_limit=model.payment_link_monthly_limit,
            default_payment_expiry_minutes=model.default_payment_expiry_minutes,
            allowed_expiry_minutes=tuple(int(m) for m in allowed) if allowed else None,
            allow_unsolicited_payments=bool(model.allow_unsolicited_payments),
            suspended_at=model.suspended_at,
        )

    async def get_by_id(self, merchant_id: str) -> Optional[Merchant]:
        """根据ID获取商户"""
        result = await self.session.execute(
            select(MerchantModel).where(MerchantModel.id == merchant_id)
        )
        db_obj = result.scalar_one_or_none()
        return self._to_entity(db_obj) if db_obj else None

    async def get_by_slug(self, slug: str) -> Optional[Merchant]:
        """根据 slug 获取商户"""
        result = await self.session.execute(
            select(MerchantModel).where(MerchantModel.slug == slug)
        )
        db_obj = result.scalar_one_or_none()
        return self._to_entity(db_obj) if db_obj else None
