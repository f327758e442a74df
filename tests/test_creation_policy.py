from datetime import datetime, timezone
from decimal import Decimal

import pytest

from domain.common.exceptions import (
    DomainValidationException,
    InvalidTimezoneException,
    MerchantSuspendedException,
)
from domain.merchant.entity import Merchant
from domain.payment_request import CreationPolicy


MERCHANT = Merchant(id="m-1", slug="shop", timezone="UTC", default_currency="EUR")


@pytest.fixture
def policy() -> CreationPolicy:
    return CreationPolicy(allowed_expiry_minutes=(15, 30, 60, 120), default_expiry_minutes=60)


def test_validate_normalizes(policy):
    amount, currency, expiry = policy.validate(MERCHANT, "12.5", None, None)
    assert amount == Decimal("12.5")
    assert currency == "EUR"
    assert expiry == 60


def test_expiry_must_be_in_allowed_set(policy):
    with pytest.raises(DomainValidationException) as exc_info:
        policy.validate(MERCHANT, Decimal("1"), "USD", 45)
    assert exc_info.value.field == "expiry_minutes"
    assert exc_info.value.details["allowed"] == [15, 30, 60, 120]


def test_merchant_expiry_settings_take_precedence(policy):
    merchant = Merchant(
        id="m-2",
        slug="shop2",
        timezone="UTC",
        default_payment_expiry_minutes=45,
        allowed_expiry_minutes=(45, 90),
    )
    assert policy.resolve_expiry(merchant, None) == 45
    assert policy.resolve_expiry(merchant, 90) == 90
    with pytest.raises(DomainValidationException):
        policy.resolve_expiry(merchant, 60)


@pytest.mark.parametrize("amount", ["0", "-5", "1.001", "abc", "1000000000.01", "NaN"])
def test_invalid_amounts(policy, amount):
    with pytest.raises(DomainValidationException) as exc_info:
        policy.normalize_amount(amount)
    assert exc_info.value.field == "amount"


@pytest.mark.parametrize("currency", ["US", "USDT", "U$D"])
def test_invalid_currency(policy, currency):
    with pytest.raises(DomainValidationException):
        policy.normalize_currency(currency, MERCHANT)


def test_suspended_merchant_rejected(policy):
    merchant = Merchant(
        id="m-3", slug="gone", timezone="UTC", suspended_at=datetime(2025, 1, 1, tzinfo=timezone.utc)
    )
    with pytest.raises(MerchantSuspendedException):
        policy.validate(merchant, Decimal("1"), "USD", 15)


def test_invalid_timezone_rejected(policy):
    merchant = Merchant(id="m-4", slug="lost", timezone="Nowhere/City")
    with pytest.raises(InvalidTimezoneException):
        policy.validate(merchant, Decimal("1"), "USD", 15)
