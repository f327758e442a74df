"""支付请求领域"""
from .entity import (
    Actor,
    CreatedBy,
    PaymentRequest,
    PaymentRequestStatus,
    SettlementStatus,
    SETTLEMENT_TRANSITIONS,
)
from .repository import PaymentRequestRepository
from .service import CreationPolicy, PaymentRequestDomainService
from .value_objects import LinkId, generate_link_id

__all__ = [
    "Actor",
    "CreatedBy",
    "PaymentRequest",
    "PaymentRequestStatus",
    "SettlementStatus",
    "SETTLEMENT_TRANSITIONS",
    "PaymentRequestRepository",
    "CreationPolicy",
    "PaymentRequestDomainService",
    "LinkId",
    "generate_link_id",
]
