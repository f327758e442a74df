"""
Audit sink port.

Receives one record per payment request domain event after the triggering
transaction has committed.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.payment_request.events import PaymentRequestEvent


@runtime_checkable
class AuditSink(Protocol):
    async def record(self, event: PaymentRequestEvent) -> None: ...
