"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="ValidationError",
            details=details,
            field=field,
        )


class InvalidTimezoneException(BusinessException):
    """商户时区配置无效（配置错误，不回退到 UTC）"""

    def __init__(self, timezone_name: str):
        super().__init__(
            code=BusinessCode.CONFIGURATION_ERROR,
            message=f"Unknown timezone identifier: {timezone_name!r}",
            error_type="InvalidTimezone",
            details={"timezone": timezone_name},
            field="timezone",
        )


# ============= 商户 =============

class MerchantNotFoundException(BusinessException):
    def __init__(self, identifier: str):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Merchant not found",
            error_type="NotFound",
            details={"merchant": identifier},
        )


class MerchantSuspendedException(BusinessException):
    def __init__(self, merchant_id: str):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message="Merchant account suspended",
            error_type="Forbidden",
            details={"merchant_id": merchant_id},
        )


class UnsolicitedPaymentsDisabledException(BusinessException):
    def __init__(self, merchant_id: str):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message="This merchant does not accept unsolicited payments",
            error_type="Forbidden",
            details={"merchant_id": merchant_id},
        )


# ============= 限额 / 限流 =============

class BuyerRateLimitExceededException(BusinessException):
    def __init__(self, limit: int, current: int, retry_after: Optional[int] = None):
        details = {"limit": limit, "current": current}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(
            code=BusinessCode.TOO_MANY_REQUESTS,
            message=f"Rate limit exceeded. Maximum {limit} order(s) per hour.",
            error_type="RateLimitExceeded",
            details=details,
        )


class MonthlyQuotaExceededException(BusinessException):
    def __init__(self, limit: int, current: int):
        super().__init__(
            code=BusinessCode.MONTHLY_QUOTA_EXCEEDED,
            message=(
                "Monthly payment link limit reached. "
                f"This merchant is allowed {limit} link(s) per month."
            ),
            error_type="MonthlyQuotaExceeded",
            details={"limit": limit, "current": current},
        )


class DailyLimitExceededException(BusinessException):
    def __init__(self, order_date: str, limit: int):
        super().__init__(
            code=BusinessCode.DAILY_LIMIT_EXCEEDED,
            message=f"Daily order limit reached ({limit})",
            error_type="DailyLimitExceeded",
            details={"order_date": order_date, "limit": limit},
        )


class OrderConflictException(BusinessException):
    """并发冲突（可立即重试）"""

    def __init__(self, message: str = "Order number conflict. Please try again.", *, details: Optional[dict] = None):
        super().__init__(
            code=BusinessCode.ORDER_CONFLICT,
            message=message,
            error_type="OrderConflict",
            details=details,
        )


# ============= 支付请求 =============

class PaymentRequestNotFoundException(BusinessException):
    def __init__(self, identifier: str):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Payment request not found",
            error_type="NotFound",
            details={"payment_request": identifier},
        )


class InvalidLinkIdException(BusinessException):
    def __init__(self, link_id: str, reason: str):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=f"Invalid link id: {reason}",
            error_type="NotFound",
            details={"link_id": link_id},
            field="link_id",
        )


class InvalidTransitionException(BusinessException):
    def __init__(self, current: str, attempted: str):
        super().__init__(
            code=BusinessCode.INVALID_TRANSITION,
            message=f"Invalid settlement status transition from {current} to {attempted}",
            error_type="InvalidTransition",
            details={"from": current, "to": attempted},
            field="settlement_status",
        )


class AlreadyExpiredException(BusinessException):
    def __init__(self, attempted: str, expires_at: str):
        super().__init__(
            code=BusinessCode.ALREADY_EXPIRED,
            message=f"Payment request already expired; cannot transition to {attempted}",
            error_type="AlreadyExpired",
            details={"to": attempted, "expires_at": expires_at},
        )


class TransitionNotPermittedException(BusinessException):
    def __init__(self, actor: str, current: str, attempted: str):
        super().__init__(
            code=BusinessCode.FORBIDDEN,
            message=f"Actor {actor} may not move a payment request from {current} to {attempted}",
            error_type="Forbidden",
            details={"actor": actor, "from": current, "to": attempted},
        )
