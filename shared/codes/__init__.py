"""
Business codes shared across layers (Domain/Core/API).

Rendered as ``code`` in every response envelope; HTTP status is derived
from it in ``core.exceptions``.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # Parameter errors (1xxxx)
    PARAM_VALIDATION_ERROR = 10003

    # Business errors (2xxxx)
    NOT_FOUND = 20006

    # Payment request errors (21xxx)
    MONTHLY_QUOTA_EXCEEDED = 21001
    DAILY_LIMIT_EXCEEDED = 21002
    ORDER_CONFLICT = 21003
    INVALID_TRANSITION = 21004
    ALREADY_EXPIRED = 21005

    # Authorization errors (3xxxx)
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # System errors (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003
    CONFIGURATION_ERROR = 40004

    # Rate limiting (5xxxx)
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
