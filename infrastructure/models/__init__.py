"""Infrastructure models package exports."""
from .base import Base, metadata
from .merchant import MerchantModel
from .payment_request import PaymentRequestModel
from .audit_log import AuditLogModel

__all__ = [
    "Base",
    "metadata",
    "MerchantModel",
    "PaymentRequestModel",
    "AuditLogModel",
]
