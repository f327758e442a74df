"""
审计日志数据库模型
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, Index

from .base import Base


class AuditLogModel(Base):
    """支付请求审计记录（只追加）"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(36), unique=True, nullable=False, comment="事件ID")
    event_type = Column(String(64), nullable=False, comment="事件类型")
    payment_request_id = Column(String(36), nullable=False, comment="支付请求ID")
    merchant_id = Column(String(36), nullable=False, comment="商户ID")
    actor = Column(String(16), nullable=False, comment="操作方")
    payload = Column(JSON, nullable=True, comment="事件内容")
    occurred_at = Column(DateTime(timezone=True), nullable=False, comment="发生时间")

    __table_args__ = (
        Index("ix_audit_logs_payment_request", "payment_request_id", "occurred_at"),
    )

    def __repr__(self):
        return f"<AuditLogModel(id={self.id}, event_type='{self.event_type}', payment_request_id='{self.payment_request_id}')>"
