"""
Payment request domain events.

Dataclass events record lifecycle facts for the external audit collaborator.
Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
import uuid


@dataclass
class PaymentRequestEvent:
    payment_request_id: str
    merchant_id: str
    actor: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    event_type = "PAYMENT_REQUEST_EVENT"

    def payload(self) -> dict[str, Any]:
        return {}


@dataclass
class PaymentRequestCreated(PaymentRequestEvent):
    link_id: str = ""
    amount: str = ""
    currency: str = ""
    created_by: str = ""

    event_type = "PAYMENT_REQUEST_CREATED"

    def payload(self) -> dict[str, Any]:
        return {
            "link_id": self.link_id,
            "amount": self.amount,
            "currency": self.currency,
            "created_by": self.created_by,
        }


@dataclass
class SettlementStatusChanged(PaymentRequestEvent):
    from_status: str = ""
    to_status: str = ""
    evidence: Optional[dict] = None

    event_type = "PAYMENT_REQUEST_SETTLEMENT_CHANGED"

    def payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {"from": self.from_status, "to": self.to_status}
        if self.evidence:
            data["evidence"] = self.evidence
        return data


@dataclass
class PaymentRequestExpired(PaymentRequestEvent):
    expires_at: Optional[datetime] = None

    event_type = "PAYMENT_REQUEST_EXPIRED"

    def payload(self) -> dict[str, Any]:
        return {"expires_at": self.expires_at.isoformat() if self.expires_at else None}
