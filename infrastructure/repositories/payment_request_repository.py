"""
支付请求仓储实现 - 使用SQLAlchemy实现数据访问
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.common.exceptions import OrderConflictException
from domain.payment_request.entity import (
    CreatedBy,
    PaymentRequest,
    PaymentRequestStatus,
    SettlementStatus,
)
from domain.payment_request.repository import PaymentRequestRepository
from infrastructure.models.payment_request import PaymentRequestModel


logger = get_logger(__name__)

_CONFLICT_MARKERS = ("link_id", "order_number", "uq_payment_requests")


def _utc(dt: datetime) -> datetime:
    # SQLite 按字面值存储时间，统一转为 UTC 再绑定参数
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_order_conflict(exc: IntegrityError) -> bool:
    """唯一约束冲突是否落在 link_id 或 (merchant_id, order_date, order_number) 上"""
    msg = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in msg for marker in _CONFLICT_MARKERS)


class SQLAlchemyPaymentRequestRepository(PaymentRequestRepository):
    """支付请求仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentRequestModel) -> PaymentRequest:
        """将数据库模型转换为领域实体"""
        return PaymentRequest(
            id=model.id,
            merchant_id=model.merchant_id,
            order_date=model.order_date,
            order_number=model.order_number,
            link_id=model.link_id,
            amount=Decimal(str(model.amount)),
            currency=model.currency,
            expiry_minutes=model.expiry_minutes,
            expires_at=model.expires_at,
            created_by=CreatedBy(model.created_by),
            status=PaymentRequestStatus(model.status),
            settlement_status=SettlementStatus(model.settlement_status),
            description=model.description,
            created_by_ip=model.created_by_ip,
            buyer_note=model.buyer_note,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: PaymentRequest) -> PaymentRequestModel:
        """将领域实体转换为数据库模型"""
        return PaymentRequestModel(
            id=entity.id,
            merchant_id=entity.merchant_id,
            order_date=entity.order_date,
            order_number=entity.order_number,
            link_id=entity.link_id,
            amount=entity.amount,
            currency=entity.currency,
            expiry_minutes=entity.expiry_minutes,
            expires_at=entity.expires_at,
            created_by=entity.created_by.value,
            status=entity.status.value,
            settlement_status=entity.settlement_status.value,
            description=entity.description,
            created_by_ip=entity.created_by_ip,
            buyer_note=entity.buyer_note,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, payment_request: PaymentRequest) -> PaymentRequest:
        """插入支付请求；唯一约束冲突转为 OrderConflictException"""
        db_obj = self._to_model(payment_request)
        self.session.add(db_obj)
        try:
            await self.session.flush()
        except IntegrityError as e:
            if is_order_conflict(e):
                logger.info(
                    "payment_request_create_conflict",
                    merchant_id=payment_request.merchant_id,
                    order_date=payment_request.order_date,
                    order_number=payment_request.order_number,
                )
                raise OrderConflictException(
                    details={
                        "merchant_id": payment_request.merchant_id,
                        "order_date": payment_request.order_date,
                        "order_number": payment_request.order_number,
                    }
                ) from e
            raise
        return self._to_entity(db_obj)

    async def get_by_id(self, payment_request_id: str, *, for_update: bool = False) -> Optional[PaymentRequest]:
        """根据ID获取支付请求"""
        query = select(PaymentRequestModel).where(PaymentRequestModel.id == payment_request_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        db_obj = result.scalar_one_or_none()
        return self._to_entity(db_obj) if db_obj else None

    async def get_by_link_id(self, link_id: str) -> Optional[PaymentRequest]:
        """根据 link_id 获取支付请求"""
        result = await self.session.execute(
            select(PaymentRequestModel).where(PaymentRequestModel.link_id == link_id)
        )
        db_obj = result.scalar_one_or_none()
        return self._to_entity(db_obj) if db_obj else None

    async def get_max_order_number(self, merchant_id: str, order_date: str) -> Optional[int]:
        """读取 (merchant_id, order_date) 下当前最大订单号"""
        result = await self.session.execute(
            select(func.max(PaymentRequestModel.order_number)).where(
                PaymentRequestModel.merchant_id == merchant_id,
                PaymentRequestModel.order_date == order_date,
            )
        )
        value = result.scalar_one_or_none()
        return int(value) if value is not None else None

    async def count_created_between(self, merchant_id: str, start: datetime, end: datetime) -> int:
        """统计 [start, end) 内创建的数量"""
        result = await self.session.execute(
            select(func.count(PaymentRequestModel.id)).where(
                PaymentRequestModel.merchant_id == merchant_id,
                PaymentRequestModel.created_at >= _utc(start),
                PaymentRequestModel.created_at < _utc(end),
            )
        )
        return result.scalar_one()

    def _filters(
        self,
        merchant_id: str,
        now: datetime,
        status: Optional[PaymentRequestStatus],
        settlement_status: Optional[SettlementStatus],
    ) -> list:
        now = _utc(now)
        conditions = [PaymentRequestModel.merchant_id == merchant_id]
        pending = PaymentRequestStatus.PENDING.value
        if status is PaymentRequestStatus.EXPIRED:
            conditions.append(or_(
                PaymentRequestModel.status == PaymentRequestStatus.EXPIRED.value,
                and_(PaymentRequestModel.status == pending, PaymentRequestModel.expires_at < now),
            ))
        elif status is PaymentRequestStatus.PENDING:
            conditions.append(PaymentRequestModel.status == pending)
            conditions.append(PaymentRequestModel.expires_at >= now)
        elif status is not None:
            conditions.append(PaymentRequestModel.status == status.value)
        if settlement_status is not None:
            conditions.append(PaymentRequestModel.settlement_status == settlement_status.value)
        return conditions

    async def list_by_merchant(
        self,
        merchant_id: str,
        *,
        now: datetime,
        status: Optional[PaymentRequestStatus] = None,
        settlement_status: Optional[SettlementStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[PaymentRequest]:
        """获取商户的支付请求列表"""
        query = (
            select(PaymentRequestModel)
            .where(*self._filters(merchant_id, now, status, settlement_status))
            .order_by(PaymentRequestModel.created_at.desc(), PaymentRequestModel.order_number.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def count_by_merchant(
        self,
        merchant_id: str,
        *,
        now: datetime,
        status: Optional[PaymentRequestStatus] = None,
        settlement_status: Optional[SettlementStatus] = None,
    ) -> int:
        """统计商户的支付请求数量"""
        result = await self.session.execute(
            select(func.count(PaymentRequestModel.id)).where(
                *self._filters(merchant_id, now, status, settlement_status)
            )
        )
        return result.scalar_one()

    async def update_state(self, payment_request: PaymentRequest, *, expected_settlement: SettlementStatus) -> bool:
        """以读取时的结算状态为条件更新，返回是否命中"""
        result = await self.session.execute(
            update(PaymentRequestModel)
            .where(
                PaymentRequestModel.id == payment_request.id,
                PaymentRequestModel.settlement_status == SettlementStatus(expected_settlement).value,
            )
            .values(
                status=payment_request.status.value,
                settlement_status=payment_request.settlement_status.value,
                updated_at=_utc(payment_request.updated_at),
            )
            .execution_options(synchronize_session=False)
        )
        updated = result.rowcount == 1
        if not updated:
            logger.info(
                "settlement_update_lost_race",
                payment_request_id=payment_request.id,
                expected=SettlementStatus(expected_settlement).value,
            )
        return updated

    async def mark_expired(self, payment_request_id: str, now: datetime) -> bool:
        """幂等写回过期状态"""
        now = _utc(now)
        result = await self.session.execute(
            update(PaymentRequestModel)
            .where(
                PaymentRequestModel.id == payment_request_id,
                PaymentRequestModel.status == PaymentRequestStatus.PENDING.value,
                PaymentRequestModel.expires_at < now,
            )
            .values(status=PaymentRequestStatus.EXPIRED.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
