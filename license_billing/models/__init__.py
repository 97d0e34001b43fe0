"""SQLAlchemy models."""

from license_billing.models.base import Base
from license_billing.models.license import (
    BillingCycle,
    GlobalLicense,
    LicenseAdjustment,
    PaymentTransaction,
)
from license_billing.models.reference import Currency, ExchangeRate, PaymentMethod, TaxRule

__all__ = [
    "Base",
    "GlobalLicense",
    "LicenseAdjustment",
    "BillingCycle",
    "PaymentTransaction",
    "Currency",
    "ExchangeRate",
    "TaxRule",
    "PaymentMethod",
]
