from core.exceptions import business_code_to_http_status
from domain.common.exceptions import (
    AlreadyExpiredException,
    BuyerRateLimitExceededException,
    DailyLimitExceededException,
    DomainValidationException,
    InvalidLinkIdException,
    InvalidTimezoneException,
    InvalidTransitionException,
    MerchantSuspendedException,
    MonthlyQuotaExceededException,
    OrderConflictException,
    PaymentRequestNotFoundException,
)


def status_of(exc) -> int:
    return business_code_to_http_status(exc.code)


def test_business_errors_map_to_http_status():
    assert status_of(DomainValidationException("bad", field="amount")) == 422
    assert status_of(PaymentRequestNotFoundException("x")) == 404
    assert status_of(InvalidLinkIdException("x", "bad")) == 404
    assert status_of(MerchantSuspendedException("m")) == 403
    assert status_of(BuyerRateLimitExceededException(limit=1, current=1, retry_after=10)) == 429
    assert status_of(MonthlyQuotaExceededException(limit=2, current=2)) == 429
    assert status_of(DailyLimitExceededException("20251106", 9999)) == 429
    assert status_of(OrderConflictException()) == 409
    assert status_of(InvalidTransitionException("SETTLED", "PENDING")) == 409
    assert status_of(AlreadyExpiredException("CLAIMED_PAID", "2025-11-06T10:15:00+00:00")) == 409
    assert status_of(InvalidTimezoneException("Nowhere/City")) == 500


def test_unknown_code_defaults_to_bad_request():
    assert business_code_to_http_status(99999) == 400


def test_rate_limit_details_carry_retry_after():
    exc = BuyerRateLimitExceededException(limit=1, current=1, retry_after=120)
    assert exc.details == {"limit": 1, "current": 1, "retry_after": 120}
    assert "1 order(s) per hour" in exc.message
