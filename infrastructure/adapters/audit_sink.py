"""Infrastructure adapters implementing the application AuditSink port."""
from __future__ import annotations

from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.audit import AuditSink
from core.logging_config import get_logger
from domain.payment_request.events import PaymentRequestEvent
from infrastructure.database import AsyncSessionLocal
from infrastructure.models.audit_log import AuditLogModel


logger = get_logger("audit")


class StructlogAuditSink(AuditSink):
    """Emit audit records as structured log lines only."""

    async def record(self, event: PaymentRequestEvent) -> None:
        logger.info(
            "audit_event",
            event_type=event.event_type,
            event_id=event.event_id,
            payment_request_id=event.payment_request_id,
            merchant_id=event.merchant_id,
            actor=event.actor,
            occurred_at=event.occurred_at.isoformat(),
            **event.payload(),
        )


class SQLAlchemyAuditSink(AuditSink):
    """Append audit records to ``audit_logs`` in a dedicated transaction."""

    def __init__(self, session_factory: Callable[[], AsyncSession] = AsyncSessionLocal):
        self._session_factory = session_factory

    async def record(self, event: PaymentRequestEvent) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(AuditLogModel(
                    event_id=event.event_id,
                    event_type=event.event_type,
                    payment_request_id=event.payment_request_id,
                    merchant_id=event.merchant_id,
                    actor=event.actor,
                    payload=_jsonable(event.payload()),
                    occurred_at=event.occurred_at,
                ))


def _jsonable(value):
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)
