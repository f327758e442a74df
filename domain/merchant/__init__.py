"""Merchant domain exports."""
from .entity import Merchant
from .repository import MerchantDirectory

__all__ = ["Merchant", "MerchantDirectory"]
